from dataclasses import dataclass
from typing import Optional

from router_telemetry.infrastructure.parsers.base import OutputParser, parse_lines, split_sections
from router_telemetry.infrastructure.parsers.topology_parser import (
    parse_association_line,
    parse_lease_line,
    parse_neighbor_line,
)
from router_telemetry.infrastructure.scripts.router_scripts import (
    SECTION_DHCP,
    SECTION_NEIGHBORS,
    SECTION_WIRELESS,
)
from router_telemetry.utils.mac import normalize_mac


@dataclass
class DeviceDetail:
    mac_address: str
    ip_address: Optional[str] = None
    hostname: Optional[str] = None
    wireless_interface: Optional[str] = None
    wireless_band: Optional[str] = None
    signal_strength: Optional[int] = None
    neighbor_state: Optional[str] = None

    @property
    def is_wireless(self) -> bool:
        return self.wireless_interface is not None

    @property
    def is_present(self) -> bool:
        return self.is_wireless or self.neighbor_state is not None


class DeviceDetailParser(OutputParser[DeviceDetail]):
    """Parse ``device_detail_script`` output for one MAC, ignoring other MACs the grep let through."""

    facet = "device detail"

    def __init__(self, mac_address: str):
        self.mac_address = normalize_mac(mac_address) or mac_address

    def _matches(self, raw_mac: str) -> bool:
        return normalize_mac(raw_mac) == self.mac_address

    def parse(self, output: str) -> DeviceDetail:
        sections = split_sections(output)
        detail = DeviceDetail(mac_address=self.mac_address)

        for lease in parse_lines(sections.get(SECTION_DHCP, []), parse_lease_line, self.facet):
            if self._matches(lease.mac):
                detail.ip_address = lease.ip_address
                detail.hostname = lease.hostname
                break

        associations = [a for a in parse_lines(sections.get(SECTION_WIRELESS, []), parse_association_line, self.facet)
                        if self._matches(a.mac)]
        if associations:
            best = max(associations, key=lambda a: a.rssi if a.rssi is not None else -1000)
            detail.wireless_interface = best.interface
            detail.wireless_band = best.band
            detail.signal_strength = best.rssi

        for entry in parse_lines(sections.get(SECTION_NEIGHBORS, []), parse_neighbor_line, self.facet):
            if self._matches(entry.mac):
                detail.neighbor_state = entry.state
                detail.ip_address = detail.ip_address or entry.ip_address
                break

        return detail
