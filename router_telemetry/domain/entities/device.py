from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Dict, Any
from enum import Enum


class ConnectionType(str, Enum):
    ETHERNET = "ethernet"
    WIFI_24 = "2.4GHz WiFi"
    WIFI_5 = "5GHz WiFi"
    WIFI_6 = "6GHz WiFi"
    UNKNOWN = "unknown"

    @classmethod
    def from_band(cls, band: Optional[str]) -> "ConnectionType":
        return _BAND_TO_CONNECTION.get(band or "", cls.UNKNOWN)


_BAND_TO_CONNECTION = {
    "2.4GHz": ConnectionType.WIFI_24,
    "5GHz": ConnectionType.WIFI_5,
    "6GHz": ConnectionType.WIFI_6,
}


class DeviceType(str, Enum):
    PHONE = "phone"
    TABLET = "tablet"
    LAPTOP = "laptop"
    DESKTOP = "desktop"
    TV = "tv"
    SPEAKER = "speaker"
    PRINTER = "printer"
    CAMERA = "camera"
    VIRTUAL_MACHINE = "virtual-machine"
    RASPBERRY_PI = "raspberry-pi"
    UNKNOWN = "unknown"


class MeshRole(str, Enum):
    ROUTER = "router"
    NODE = "node"


class NodeStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class SecurityMode(str, Enum):
    OPEN = "Open"
    WEP = "WEP"
    WPA = "WPA"
    WPA2 = "WPA2"
    WPA3 = "WPA3"


class JobStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"


@dataclass
class Device:
    mac_address: str
    name: str
    ip_address: Optional[str] = None
    hostname: Optional[str] = None
    device_type: DeviceType = DeviceType.UNKNOWN
    is_online: bool = False
    connection_type: ConnectionType = ConnectionType.UNKNOWN
    signal_strength: Optional[int] = None
    wireless_interface: Optional[str] = None
    wireless_band: Optional[str] = None
    aimesh_node: Optional[str] = None
    aimesh_node_mac: Optional[str] = None
    download_speed: Optional[float] = None
    upload_speed: Optional[float] = None
    connected_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None


@dataclass
class AiMeshNode:
    id: str
    name: str
    role: MeshRole
    status: NodeStatus = NodeStatus.ONLINE
    mac_address: Optional[str] = None
    ip_address: Optional[str] = None
    signal_strength: Optional[int] = None
    connected_device_count: int = 0
    firmware_version: Optional[str] = None
    uptime: Optional[int] = None
    bandwidth: Optional[Dict[str, float]] = None


@dataclass
class WifiNetwork:
    ssid: str
    band: str
    channel: Optional[int] = None
    is_enabled: bool = False
    security_mode: SecurityMode = SecurityMode.OPEN
    is_guest: bool = False
    connected_device_count: int = 0
    interface: Optional[str] = None


@dataclass
class WifiInventory:
    networks: List[WifiNetwork] = field(default_factory=list)
    active_interface_count: int = 0
    active_guest_count: int = 0


@dataclass
class RouterStatus:
    model: str
    firmware: str
    ip_address: str
    uptime: int
    cpu_usage: float
    memory_usage: float
    memory_total: float
    temperature: Optional[float] = None
    storage_usage: Optional[float] = None
    storage_total: Optional[float] = None
    load_average: Optional[str] = None
    cpu_cores: Optional[int] = None
    cpu_model: Optional[str] = None
    last_updated: Optional[datetime] = None


@dataclass
class RouterFeatures:
    adaptive_qos_enabled: bool = False
    qos_mode: Optional[str] = None
    ai_protection_enabled: bool = False
    malware_blocking: bool = False
    vulnerability_protection: bool = False
    vpn_server_enabled: bool = False
    vpn_protocol: Optional[str] = None
    aimesh_is_master: bool = True
    aimesh_node_count: int = 0
    aimesh_peers: List[str] = field(default_factory=list)
    wireless_clients_24ghz: int = 0
    wireless_clients_5ghz: int = 0
    wireless_clients_6ghz: int = 0
    wireless_clients_total: int = 0
    wifi_network_count: Optional[int] = None
    guest_network_count: Optional[int] = None
    last_updated: Optional[datetime] = None


@dataclass
class BandwidthSample:
    timestamp: datetime
    download_speed: Optional[float]
    upload_speed: Optional[float]
    total_download: float
    total_upload: float
    interface: Optional[str] = None


@dataclass
class ScheduledJob:
    id: str
    name: str
    description: str
    schedule: str
    enabled: bool = True
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    status: JobStatus = JobStatus.IDLE
    error_message: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "schedule": self.schedule,
            "enabled": self.enabled,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "status": self.status.value,
            "error_message": self.error_message,
        }
