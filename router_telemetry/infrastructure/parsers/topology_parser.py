"""
Parsers for the topology script sections.

Each ``parse_*_line`` function handles one line and raises ``ParseSkip``
when the line does not have the expected shape.
"""

import re
from typing import Dict, Iterable, List, Optional, Tuple

from router_telemetry.domain.entities.topology import (
    DhcpLease,
    MainUnitIdentity,
    MeshMember,
    NeighborEntry,
    TopologySnapshot,
    WirelessAssociation,
)
from router_telemetry.domain.errors import ParseSkip
from router_telemetry.infrastructure.parsers.base import OutputParser, parse_lines, split_sections
from router_telemetry.infrastructure.scripts.router_scripts import (
    SECTION_DHCP,
    SECTION_MAIN_UNIT,
    SECTION_MESH,
    SECTION_NEIGHBORS,
    SECTION_NODE_ASSOC,
    SECTION_WIRELESS,
)
from router_telemetry.utils.coercion import to_int, to_text

TOPOLOGY_SECTIONS = (
    SECTION_DHCP,
    SECTION_WIRELESS,
    SECTION_NEIGHBORS,
    SECTION_MAIN_UNIT,
    SECTION_MESH,
    SECTION_NODE_ASSOC,
)

# wl<unit>_nband values
_NBAND_TO_BAND = {"2": "2.4GHz", "1": "5GHz", "4": "6GHz"}
_UNIT_TO_BAND = {"wl0": "2.4GHz", "wl1": "5GHz", "wl2": "6GHz"}
_LITERAL_BANDS = {"2.4GHz", "5GHz", "6GHz"}

_IPV4 = re.compile(r'^\d{1,3}(\.\d{1,3}){3}$')
_NEIGHBOR = re.compile(
    r'^(?P<ip>\S+)\s+dev\s+(?P<iface>\S+)\s+lladdr\s+(?P<mac>\S+)\s+(?:router\s+)?(?P<state>[A-Z]+)'
)
_LIVE_NEIGHBOR_STATES = {"REACHABLE", "STALE", "DELAY", "PROBE", "PERMANENT", "NOARP"}
_MAC_SHAPE = re.compile(r'^[0-9A-Fa-f]{2}([:\-]?[0-9A-Fa-f]{2}){5}$')


def resolve_band(unit: Optional[str], nband: Optional[str]) -> Optional[str]:
    """Map the radio's nband (or its unit index as a fallback) to a band label."""
    nband = (nband or "").strip()
    if nband in _LITERAL_BANDS:
        return nband
    if nband in _NBAND_TO_BAND:
        return _NBAND_TO_BAND[nband]
    return _UNIT_TO_BAND.get((unit or "").strip())


def parse_lease_line(line: str) -> DhcpLease:
    """``<expiry> <mac> <ip> <hostname> [client-id]`` from dnsmasq."""
    parts = line.split()
    if len(parts) < 4:
        raise ParseSkip(line, "lease line has fewer than 4 fields")
    expires, mac, ip_address, hostname = parts[:4]
    if "." not in ip_address and ":" not in ip_address:
        raise ParseSkip(line, "lease line has no IP address")
    return DhcpLease(
        mac=mac,
        ip_address=ip_address,
        hostname=to_text(hostname),
        expires=to_int(expires),
    )


def parse_association_line(line: str) -> WirelessAssociation:
    """``unit|ifname|nband|mac|rssi`` from the association loop."""
    parts = [p.strip() for p in line.split("|")]
    if len(parts) < 5:
        raise ParseSkip(line, "association line has fewer than 5 fields")
    unit, _ifname, nband, mac, rssi = parts[:5]
    if not mac:
        raise ParseSkip(line, "association line has no MAC")
    return WirelessAssociation(
        mac=mac,
        interface=unit,
        band=resolve_band(unit, nband),
        rssi=to_int(rssi),
    )


def parse_neighbor_line(line: str) -> NeighborEntry:
    """``<ip> dev <iface> lladdr <mac> [router] <STATE>`` from ``ip neigh``."""
    match = _NEIGHBOR.match(line)
    if not match:
        raise ParseSkip(line, "not an ip-neigh entry with lladdr")
    state = match.group("state")
    if state not in _LIVE_NEIGHBOR_STATES:
        raise ParseSkip(line, f"neighbor state {state} is not live")
    return NeighborEntry(
        mac=match.group("mac"),
        ip_address=match.group("ip"),
        interface=match.group("iface"),
        state=state,
    )


def parse_main_unit(lines: Iterable[str]) -> Optional[MainUnitIdentity]:
    values: Dict[str, str] = {}
    for line in lines:
        key, sep, value = line.partition("=")
        if sep:
            values[key.strip()] = value.strip()
    if not values:
        return None
    firmware = to_text(values.get("FIRMWARE"))
    if firmware and firmware.strip(".") == "":
        firmware = None
    return MainUnitIdentity(
        model=to_text(values.get("MODEL")),
        lan_ip=to_text(values.get("LAN_IP")),
        lan_mac=to_text(values.get("LAN_MAC")),
        firmware=firmware,
        uptime=to_int(values.get("UPTIME")),
    )


def parse_mesh_members(lines: Iterable[str]) -> List[MeshMember]:
    """
    Parse ``cfg_clientlist``: ``<``-separated entries of ``>``-separated fields.

    The IPv4 and MAC fields are located by shape because the field order
    differs between firmware releases; the first remaining non-numeric field
    is kept as the alias.
    """
    members: List[MeshMember] = []
    raw = "".join(lines)
    for entry in raw.split("<"):
        fields = [f.strip() for f in entry.split(">") if f.strip()]
        if not fields:
            continue
        mac = next((f for f in fields if _MAC_SHAPE.match(f)), None)
        if mac is None:
            continue
        ip_address = next((f for f in fields if _IPV4.match(f)), None)
        alias = next((f for f in fields if f not in (mac, ip_address) and not f.isdigit()), None)
        members.append(MeshMember(mac=mac, ip_address=ip_address, alias=alias))
    return members


def parse_node_associations(lines: Iterable[str]) -> Tuple[Dict[str, List[WirelessAssociation]], List[str]]:
    """
    Group association lines under their ``NODE:<ip>`` header.

    Returns:
        (associations keyed by node IP, IPs of nodes that could not be queried)
    """
    by_node: Dict[str, List[WirelessAssociation]] = {}
    unreachable: List[str] = []
    current: Optional[str] = None
    for line in lines:
        if line.startswith("NODE_ERROR:"):
            node_ip = line.split(":", 1)[1].strip()
            unreachable.append(node_ip)
            by_node.pop(node_ip, None)
            current = None
            continue
        if line.startswith("NODE:"):
            current = line.split(":", 1)[1].strip()
            by_node.setdefault(current, [])
            continue
        if current is None:
            continue
        by_node[current].extend(parse_lines([line], parse_association_line, "node association"))
    return by_node, unreachable


class TopologyParser(OutputParser[TopologySnapshot]):
    facet = "topology"

    def parse(self, output: str) -> TopologySnapshot:
        return self.parse_sections(split_sections(output))

    def parse_sections(self, sections: Dict[str, List[str]]) -> TopologySnapshot:
        """Build a snapshot; sections absent from ``sections`` are reported as failed."""
        snapshot = TopologySnapshot()
        snapshot.failed_sections = [name for name in TOPOLOGY_SECTIONS if name not in sections]

        snapshot.dhcp_clients = parse_lines(sections.get(SECTION_DHCP, []), parse_lease_line, "lease")
        snapshot.wireless_clients = parse_lines(
            sections.get(SECTION_WIRELESS, []), parse_association_line, "association"
        )
        snapshot.wired_clients = parse_lines(
            sections.get(SECTION_NEIGHBORS, []), parse_neighbor_line, "neighbor"
        )
        snapshot.main_unit = parse_main_unit(sections.get(SECTION_MAIN_UNIT, []))
        snapshot.aimesh_nodes = parse_mesh_members(sections.get(SECTION_MESH, []))
        snapshot.node_devices, snapshot.unreachable_nodes = parse_node_associations(
            sections.get(SECTION_NODE_ASSOC, [])
        )
        return snapshot
