from dataclasses import dataclass
from typing import Optional

from router_telemetry.infrastructure.parsers.base import OutputParser
from router_telemetry.utils.coercion import to_int, to_text


@dataclass(frozen=True)
class InterfaceCounters:
    interface: Optional[str]
    rx_bytes: int
    tx_bytes: int


class InterfaceCountersParser(OutputParser[Optional[InterfaceCounters]]):
    """Parse ``ifname|rx_bytes|tx_bytes``; None when the counters are unreadable."""

    facet = "bandwidth"

    def parse(self, output: str) -> Optional[InterfaceCounters]:
        line = next((l.strip() for l in output.splitlines() if l.count("|") >= 2), None)
        if line is None:
            return None
        interface, rx, tx = line.split("|")[:3]
        rx_bytes = to_int(rx)
        tx_bytes = to_int(tx)
        if rx_bytes is None or tx_bytes is None:
            return None
        return InterfaceCounters(interface=to_text(interface), rx_bytes=rx_bytes, tx_bytes=tx_bytes)
