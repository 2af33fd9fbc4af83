"""
Raw per-source records produced by the topology parser.

MAC addresses are kept exactly as the router printed them; validation and
normalization belong to the fusion engine.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class DhcpLease:
    mac: str
    ip_address: str
    hostname: Optional[str]
    expires: Optional[int] = None


@dataclass(frozen=True)
class WirelessAssociation:
    mac: str
    interface: str
    band: Optional[str]
    rssi: Optional[int]


@dataclass(frozen=True)
class NeighborEntry:
    mac: str
    ip_address: str
    interface: Optional[str]
    state: str


@dataclass(frozen=True)
class MeshMember:
    mac: str
    ip_address: Optional[str]
    alias: Optional[str] = None


@dataclass(frozen=True)
class MainUnitIdentity:
    model: Optional[str]
    lan_ip: Optional[str]
    lan_mac: Optional[str]
    firmware: Optional[str] = None
    uptime: Optional[int] = None


@dataclass
class TopologySnapshot:
    dhcp_clients: List[DhcpLease] = field(default_factory=list)
    wireless_clients: List[WirelessAssociation] = field(default_factory=list)
    wired_clients: List[NeighborEntry] = field(default_factory=list)
    aimesh_nodes: List[MeshMember] = field(default_factory=list)
    node_devices: Dict[str, List[WirelessAssociation]] = field(default_factory=dict)
    main_unit: Optional[MainUnitIdentity] = None
    failed_sections: List[str] = field(default_factory=list)
    unreachable_nodes: List[str] = field(default_factory=list)
