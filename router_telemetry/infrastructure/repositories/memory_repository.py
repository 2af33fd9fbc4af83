from collections import deque
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from router_telemetry.domain.entities.device import (
    AiMeshNode,
    BandwidthSample,
    Device,
    RouterFeatures,
    RouterStatus,
    WifiNetwork,
)
from router_telemetry.domain.repositories.storage import TelemetryStorage

DEFAULT_BANDWIDTH_RETENTION = 100


class MemoryTelemetryStorage(TelemetryStorage):
    def __init__(self, bandwidth_retention: int = DEFAULT_BANDWIDTH_RETENTION):
        self.devices: Dict[str, Device] = {}
        self.wifi_networks: Dict[Tuple[str, str], WifiNetwork] = {}
        self.mesh_nodes: Dict[str, AiMeshNode] = {}
        self.router_status: Optional[RouterStatus] = None
        self.router_features: Optional[RouterFeatures] = None
        self.bandwidth_samples: deque = deque(maxlen=bandwidth_retention)

    async def list_devices(self) -> List[Device]:
        return [self.devices[mac] for mac in sorted(self.devices)]

    async def get_device_by_mac(self, mac_address: str) -> Optional[Device]:
        return self.devices.get(mac_address)

    async def create_device(self, device: Device) -> Device:
        if device.mac_address in self.devices:
            raise ValueError(f"Device {device.mac_address} already exists")
        self.devices[device.mac_address] = device
        return device

    async def update_device(self, mac_address: str, changes: Dict[str, Any]) -> Optional[Device]:
        existing = self.devices.get(mac_address)
        if existing is None:
            return None
        updated = replace(existing, **changes)
        self.devices[mac_address] = updated
        return updated

    async def list_wifi_networks(self) -> List[WifiNetwork]:
        return list(self.wifi_networks.values())

    async def upsert_wifi_network(self, network: WifiNetwork) -> WifiNetwork:
        self.wifi_networks[(network.ssid, network.band)] = network
        return network

    async def get_router_status(self) -> Optional[RouterStatus]:
        return self.router_status

    async def upsert_router_status(self, status: RouterStatus) -> RouterStatus:
        self.router_status = status
        return status

    async def get_router_features(self) -> Optional[RouterFeatures]:
        return self.router_features

    async def upsert_router_features(self, features: RouterFeatures) -> RouterFeatures:
        self.router_features = features
        return features

    async def add_bandwidth_sample(self, sample: BandwidthSample) -> BandwidthSample:
        self.bandwidth_samples.append(sample)
        return sample

    async def list_bandwidth_samples(self, limit: Optional[int] = None) -> List[BandwidthSample]:
        samples = list(self.bandwidth_samples)
        if limit is not None:
            samples = samples[-limit:] if limit > 0 else []
        return samples

    async def list_mesh_nodes(self) -> List[AiMeshNode]:
        return list(self.mesh_nodes.values())

    async def upsert_mesh_node(self, node: AiMeshNode) -> AiMeshNode:
        self.mesh_nodes[node.id] = node
        return node

    async def delete_mesh_node(self, node_id: str) -> bool:
        return self.mesh_nodes.pop(node_id, None) is not None
