"""
Safe numeric coercion for values scraped from shell output.

Optional fields pass ``default=None`` so "unknown" stays distinguishable
from a real zero; required counters pass ``default=0``.
"""

from typing import Any, Optional

_EMPTY_TOKENS = {"", "n/a", "na", "none", "null", "-", "*"}


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().rstrip("%").strip()
    if text.lower() in _EMPTY_TOKENS:
        return None
    return text


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    text = _clean(value)
    if text is None:
        return default
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return default


def to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    text = _clean(value)
    if text is None:
        return default
    try:
        return float(text)
    except ValueError:
        return default


def to_flag(value: Any) -> bool:
    """nvram style boolean: only a literal ``1`` means enabled."""
    return _clean(value) == "1"


def to_text(value: Any, default: Optional[str] = None) -> Optional[str]:
    text = _clean(value)
    return text if text is not None else default
