from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from router_telemetry.domain.entities.device import (
    AiMeshNode,
    BandwidthSample,
    Device,
    RouterFeatures,
    RouterStatus,
    WifiNetwork,
)


class TelemetryStorage(ABC):
    """Storage collaborator consumed by the sync orchestrator and jobs."""

    @abstractmethod
    async def list_devices(self) -> List[Device]:
        pass

    @abstractmethod
    async def get_device_by_mac(self, mac_address: str) -> Optional[Device]:
        pass

    @abstractmethod
    async def create_device(self, device: Device) -> Device:
        pass

    @abstractmethod
    async def update_device(self, mac_address: str, changes: Dict[str, Any]) -> Optional[Device]:
        pass

    @abstractmethod
    async def list_wifi_networks(self) -> List[WifiNetwork]:
        pass

    @abstractmethod
    async def upsert_wifi_network(self, network: WifiNetwork) -> WifiNetwork:
        """Create or replace the network keyed by (ssid, band)."""
        pass

    @abstractmethod
    async def get_router_status(self) -> Optional[RouterStatus]:
        pass

    @abstractmethod
    async def upsert_router_status(self, status: RouterStatus) -> RouterStatus:
        pass

    @abstractmethod
    async def get_router_features(self) -> Optional[RouterFeatures]:
        pass

    @abstractmethod
    async def upsert_router_features(self, features: RouterFeatures) -> RouterFeatures:
        pass

    @abstractmethod
    async def add_bandwidth_sample(self, sample: BandwidthSample) -> BandwidthSample:
        """Append a sample, evicting the oldest beyond the retention bound."""
        pass

    @abstractmethod
    async def list_bandwidth_samples(self, limit: Optional[int] = None) -> List[BandwidthSample]:
        """Most recent samples, oldest first."""
        pass

    @abstractmethod
    async def list_mesh_nodes(self) -> List[AiMeshNode]:
        pass

    @abstractmethod
    async def upsert_mesh_node(self, node: AiMeshNode) -> AiMeshNode:
        pass

    @abstractmethod
    async def delete_mesh_node(self, node_id: str) -> bool:
        """Returns False when no node has ``node_id``."""
        pass
