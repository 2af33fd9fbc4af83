import logging
import re
from abc import ABC, abstractmethod
from typing import Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from router_telemetry.domain.errors import ParseSkip

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

_SECTION_MARKER = re.compile(r'^===([A-Z0-9_]+)===$')


class OutputParser(ABC, Generic[T]):
    """Turns the raw text of one diagnostic script into a typed result."""

    facet: str = ""

    @abstractmethod
    def parse(self, output: str) -> T:
        pass


def split_sections(output: str) -> Dict[str, List[str]]:
    """
    Split marker-delimited script output into ``{section: [lines]}``.

    Lines before the first marker are ignored. Blank lines are dropped.
    """
    sections: Dict[str, List[str]] = {}
    current: Optional[str] = None
    for raw_line in output.splitlines():
        line = raw_line.strip()
        match = _SECTION_MARKER.match(line)
        if match:
            current = match.group(1)
            sections.setdefault(current, [])
            continue
        if current is None or not line:
            continue
        sections[current].append(line)
    return sections


def parse_lines(lines: Iterable[str], parse_line: Callable[[str], R], facet: str = "") -> List[R]:
    """Apply ``parse_line`` to every line, dropping lines that raise ParseSkip."""
    records: List[R] = []
    for line in lines:
        try:
            records.append(parse_line(line))
        except ParseSkip as e:
            logger.debug(f"Skipping {facet or 'output'} line: {e}")
    return records
