"""
Device fusion engine.

Merges the per-source records of a ``TopologySnapshot`` into one Device per
MAC address, following a fixed source precedence:

    1. associations reported by mesh nodes
    2. associations on the main unit's radios
    3. wired neighbor entries on the LAN bridge
    4. DHCP leases with no live presence

A MAC claimed by a higher-precedence source is skipped by the lower ones.
Within a source, duplicate entries for the same MAC are resolved by a total
order so the result does not depend on the order lines were printed in.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple, TypeVar

from router_telemetry.domain.entities.device import (
    AiMeshNode,
    ConnectionType,
    Device,
    DeviceType,
    MeshRole,
    NodeStatus,
)
from router_telemetry.domain.entities.topology import (
    DhcpLease,
    MeshMember,
    NeighborEntry,
    TopologySnapshot,
    WirelessAssociation,
)
from router_telemetry.utils.mac import mac_oui, mac_suffix, normalize_mac

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAIN_ROUTER_ID = "main-router"
MAIN_ROUTER_NAME = "Main Router"

OUI_DEVICE_TYPES = {
    "00:50:56": DeviceType.VIRTUAL_MACHINE,
    "00:0C:29": DeviceType.VIRTUAL_MACHINE,
    "00:1C:14": DeviceType.VIRTUAL_MACHINE,
    "B8:27:EB": DeviceType.RASPBERRY_PI,
    "DC:A6:32": DeviceType.RASPBERRY_PI,
    "E4:5F:01": DeviceType.RASPBERRY_PI,
}

# Checked in order; more specific keywords come first (ipad before iphone/phone)
HOSTNAME_KEYWORDS: List[Tuple[Tuple[str, ...], DeviceType]] = [
    (("raspberrypi", "raspberry"), DeviceType.RASPBERRY_PI),
    (("ipad", "tablet", "galaxy-tab", "kindle"), DeviceType.TABLET),
    (("iphone", "android", "pixel", "galaxy", "phone"), DeviceType.PHONE),
    (("macbook", "laptop", "notebook", "thinkpad"), DeviceType.LAPTOP),
    (("imac", "desktop", "workstation", "windows"), DeviceType.DESKTOP),
    (("appletv", "roku", "chromecast", "firestick", "bravia", "tv"), DeviceType.TV),
    (("echo", "sonos", "homepod", "speaker", "nest-audio"), DeviceType.SPEAKER),
    (("printer", "epson", "canon", "brother"), DeviceType.PRINTER),
    (("camera", "wyze", "arlo", "ipcam"), DeviceType.CAMERA),
]

# Most reachable first
_NEIGHBOR_STATE_RANK = {
    "REACHABLE": 0,
    "DELAY": 1,
    "PROBE": 2,
    "STALE": 3,
    "PERMANENT": 4,
    "NOARP": 5,
}


def classify_device(mac: str, hostname: Optional[str]) -> DeviceType:
    """OUI match wins over hostname keywords."""
    by_oui = OUI_DEVICE_TYPES.get(mac_oui(mac))
    if by_oui is not None:
        return by_oui
    if hostname:
        name = hostname.lower()
        for keywords, device_type in HOSTNAME_KEYWORDS:
            if any(k in name for k in keywords):
                return device_type
    return DeviceType.UNKNOWN


def _rssi_rank(rssi: Optional[int]) -> float:
    return -rssi if rssi is not None else float("inf")


def _expiry_rank(expires: Optional[int]) -> float:
    return -expires if expires is not None else float("inf")


@dataclass
class _NodeRef:
    id: str
    name: str
    mac_address: Optional[str]


@dataclass
class FusionResult:
    devices: List[Device] = field(default_factory=list)
    mesh_nodes: List[AiMeshNode] = field(default_factory=list)
    dropped_macs: List[str] = field(default_factory=list)

    def device_by_mac(self, mac_address: str) -> Optional[Device]:
        return next((d for d in self.devices if d.mac_address == mac_address), None)


class DeviceFusionEngine:
    """Stateless: every call to ``fuse`` works only from its arguments."""

    def fuse(self, snapshot: TopologySnapshot, now: datetime) -> FusionResult:
        """
        Fuse one topology snapshot.

        Args:
            snapshot: Parsed topology
            now: Observation time stamped on online devices

        Returns:
            FusionResult with devices and mesh nodes sorted for stable output
        """
        result = FusionResult()
        dropped: Set[str] = set()

        leases = self._best_by_mac(
            snapshot.dhcp_clients, dropped,
            key=lambda l: (_expiry_rank(l.expires), l.ip_address, l.hostname or ""),
        )
        neighbors = self._best_by_mac(
            snapshot.wired_clients, dropped,
            key=lambda n: (_NEIGHBOR_STATE_RANK.get(n.state, 99), n.ip_address, n.interface or ""),
        )

        router, members = self._build_mesh(snapshot, dropped)
        router_ref = _NodeRef(router.id, router.name, router.mac_address)
        member_by_ip = {m.ip_address: m for m in members if m.ip_address}
        infrastructure_macs = {n.mac_address for n in [router] + members if n.mac_address}

        devices: Dict[str, Device] = {}

        # 1. Mesh node associations, pooled across nodes
        node_associations: List[Tuple[str, WirelessAssociation]] = [
            (node_ip, assoc)
            for node_ip in sorted(snapshot.node_devices)
            for assoc in snapshot.node_devices[node_ip]
        ]
        best_node_assoc = self._best_by_mac(
            node_associations, dropped,
            mac_of=lambda item: item[1].mac,
            key=lambda item: (_rssi_rank(item[1].rssi), item[0], item[1].interface, item[1].band or ""),
        )
        for mac, (node_ip, assoc) in best_node_assoc.items():
            if mac in infrastructure_macs:
                continue
            member = member_by_ip.get(node_ip)
            if member is not None:
                node_ref = _NodeRef(member.id, member.name, member.mac_address)
            else:
                node_ref = _NodeRef(node_ip, f"AiMesh-{node_ip}", None)
            devices[mac] = self._wireless_device(mac, assoc, node_ref, leases, neighbors, now)

        # 2. Main unit associations
        main_assoc = self._best_by_mac(
            snapshot.wireless_clients, dropped,
            key=lambda a: (_rssi_rank(a.rssi), a.interface, a.band or ""),
        )
        for mac, assoc in main_assoc.items():
            if mac in devices or mac in infrastructure_macs:
                continue
            devices[mac] = self._wireless_device(mac, assoc, router_ref, leases, neighbors, now)

        # 3. Wired neighbors
        for mac, entry in neighbors.items():
            if mac in devices or mac in infrastructure_macs:
                continue
            lease = leases.get(mac)
            hostname = lease.hostname if lease else None
            devices[mac] = Device(
                mac_address=mac,
                name=self._device_name(mac, hostname),
                ip_address=lease.ip_address if lease else entry.ip_address,
                hostname=hostname,
                device_type=classify_device(mac, hostname),
                is_online=True,
                connection_type=ConnectionType.ETHERNET,
                connected_at=now,
                last_seen=now,
            )

        # 4. DHCP-only leases
        for mac, lease in leases.items():
            if mac in devices or mac in infrastructure_macs:
                continue
            devices[mac] = Device(
                mac_address=mac,
                name=self._device_name(mac, lease.hostname),
                ip_address=lease.ip_address,
                hostname=lease.hostname,
                device_type=classify_device(mac, lease.hostname),
                is_online=False,
                connection_type=ConnectionType.UNKNOWN,
            )

        result.devices = [devices[mac] for mac in sorted(devices)]
        result.mesh_nodes = self._count_devices([router] + members, result.devices)
        result.dropped_macs = sorted(dropped)

        logger.info(
            f"Fused {len(result.devices)} devices "
            f"({sum(1 for d in result.devices if d.is_online)} online), "
            f"{len(result.mesh_nodes)} mesh nodes"
        )
        return result

    def _best_by_mac(self, records: Iterable[T], dropped: Set[str], key, mac_of=None) -> Dict[str, T]:
        """
        Index ``records`` by canonical MAC, keeping the record ranked first by ``key``.

        Records whose MAC is not exactly 12 hex digits are dropped and the raw
        value is added to ``dropped``.
        """
        mac_of = mac_of or (lambda r: r.mac)
        best: Dict[str, T] = {}
        for record in records:
            raw = mac_of(record)
            mac = normalize_mac(raw)
            if mac is None:
                if raw not in dropped:
                    logger.warning(f"Dropping record with invalid MAC address: {raw!r}")
                dropped.add(raw)
                continue
            current = best.get(mac)
            if current is None or key(record) < key(current):
                best[mac] = record
        return best

    def _device_name(self, mac: str, hostname: Optional[str]) -> str:
        return hostname or f"Device-{mac_suffix(mac)}"

    def _wireless_device(self,
                         mac: str,
                         assoc: WirelessAssociation,
                         node: _NodeRef,
                         leases: Dict[str, DhcpLease],
                         neighbors: Dict[str, NeighborEntry],
                         now: datetime) -> Device:
        lease = leases.get(mac)
        neighbor = neighbors.get(mac)
        hostname = lease.hostname if lease else None
        if lease:
            ip_address = lease.ip_address
        else:
            ip_address = neighbor.ip_address if neighbor else None
        return Device(
            mac_address=mac,
            name=self._device_name(mac, hostname),
            ip_address=ip_address,
            hostname=hostname,
            device_type=classify_device(mac, hostname),
            is_online=True,
            connection_type=ConnectionType.from_band(assoc.band),
            signal_strength=assoc.rssi,
            wireless_interface=assoc.interface,
            wireless_band=assoc.band,
            aimesh_node=node.name,
            aimesh_node_mac=node.mac_address,
            connected_at=now,
            last_seen=now,
        )

    def _build_mesh(self, snapshot: TopologySnapshot, dropped: Set[str]) -> Tuple[AiMeshNode, List[AiMeshNode]]:
        """Main unit as the single router, remaining mesh members as nodes."""
        main = snapshot.main_unit
        main_mac = normalize_mac(main.lan_mac) if main else None
        main_ip = main.lan_ip if main else None

        if main is not None and (main_mac or main_ip):
            router = AiMeshNode(
                id=main_mac or MAIN_ROUTER_ID,
                name=main.model or MAIN_ROUTER_NAME,
                role=MeshRole.ROUTER,
                mac_address=main_mac,
                ip_address=main_ip,
                firmware_version=main.firmware,
                uptime=main.uptime,
            )
        else:
            logger.warning("Main unit identity unavailable, using placeholder router")
            router = AiMeshNode(id=MAIN_ROUTER_ID, name=MAIN_ROUTER_NAME, role=MeshRole.ROUTER)

        unreachable = set(snapshot.unreachable_nodes)
        members = self._best_by_mac(
            snapshot.aimesh_nodes, dropped,
            key=lambda m: (m.ip_address or "", m.alias or ""),
        )
        nodes: List[AiMeshNode] = []
        for mac in sorted(members):
            member: MeshMember = members[mac]
            if mac == main_mac or (main_ip and member.ip_address == main_ip):
                continue
            nodes.append(AiMeshNode(
                id=mac,
                name=member.alias or f"AiMesh-{mac_suffix(mac)}",
                role=MeshRole.NODE,
                status=NodeStatus.OFFLINE if member.ip_address in unreachable else NodeStatus.ONLINE,
                mac_address=mac,
                ip_address=member.ip_address,
            ))
        return router, nodes

    def _count_devices(self, nodes: List[AiMeshNode], devices: List[Device]) -> List[AiMeshNode]:
        counts: Dict[str, int] = {}
        for device in devices:
            if device.aimesh_node is not None:
                key = device.aimesh_node_mac or device.aimesh_node
                counts[key] = counts.get(key, 0) + 1
        for node in nodes:
            node.connected_device_count = counts.get(node.mac_address or node.name, 0)
        return nodes
