"""Models for router telemetry data."""

from sqlalchemy import Column, BigInteger, String, Integer, Float, Boolean, Text, DateTime, JSON, UniqueConstraint
from router_telemetry.utils.database import Base


class DeviceModel(Base):
    """Model for devices seen on the network."""
    __tablename__ = 'devices'

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    mac_address = Column(String(17), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    ip_address = Column(String(45))
    hostname = Column(String(200))
    device_type = Column(String(30), nullable=False, default="unknown")
    is_online = Column(Boolean, nullable=False, default=False)

    # Link
    connection_type = Column(String(20), nullable=False, default="unknown")
    signal_strength = Column(Integer)
    wireless_interface = Column(String(20))
    wireless_band = Column(String(10))
    aimesh_node = Column(String(200))
    aimesh_node_mac = Column(String(17))

    # Throughput (Mbps)
    download_speed = Column(Float)
    upload_speed = Column(Float)

    connected_at = Column(DateTime(timezone=True))
    last_seen = Column(DateTime(timezone=True))


class WifiNetworkModel(Base):
    """Model for configured wireless networks."""
    __tablename__ = 'wifi_networks'
    __table_args__ = (UniqueConstraint('ssid', 'band', name='uq_wifi_networks_ssid_band'),)

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    ssid = Column(String(64), nullable=False)
    band = Column(String(10), nullable=False)
    channel = Column(Integer)
    is_enabled = Column(Boolean, nullable=False, default=False)
    security_mode = Column(String(10), nullable=False, default="Open")
    is_guest = Column(Boolean, nullable=False, default=False)
    connected_device_count = Column(Integer, nullable=False, default=0)
    interface = Column(String(20))


class RouterStatusModel(Base):
    """Single-row snapshot of router vitals."""
    __tablename__ = 'router_status'

    id = Column(Integer, primary_key=True)
    model = Column(String(100), nullable=False)
    firmware = Column(String(100), nullable=False)
    ip_address = Column(String(45), nullable=False)
    uptime = Column(Integer, nullable=False, default=0)
    cpu_usage = Column(Float, nullable=False, default=0)

    # MB
    memory_usage = Column(Float, nullable=False, default=0)
    memory_total = Column(Float, nullable=False, default=0)
    storage_usage = Column(Float)
    storage_total = Column(Float)

    temperature = Column(Float)
    load_average = Column(String(50))
    cpu_cores = Column(Integer)
    cpu_model = Column(String(200))
    last_updated = Column(DateTime(timezone=True))


class RouterFeaturesModel(Base):
    """Single-row snapshot of vendor feature flags."""
    __tablename__ = 'router_features'

    id = Column(Integer, primary_key=True)
    adaptive_qos_enabled = Column(Boolean, default=False)
    qos_mode = Column(String(30))
    ai_protection_enabled = Column(Boolean, default=False)
    malware_blocking = Column(Boolean, default=False)
    vulnerability_protection = Column(Boolean, default=False)
    vpn_server_enabled = Column(Boolean, default=False)
    vpn_protocol = Column(String(30))

    # AiMesh
    aimesh_is_master = Column(Boolean, default=True)
    aimesh_node_count = Column(Integer, default=0)
    aimesh_peers = Column(Text)  # space separated MACs

    wireless_clients_24ghz = Column(Integer, default=0)
    wireless_clients_5ghz = Column(Integer, default=0)
    wireless_clients_6ghz = Column(Integer, default=0)
    wireless_clients_total = Column(Integer, default=0)
    wifi_network_count = Column(Integer)
    guest_network_count = Column(Integer)
    last_updated = Column(DateTime(timezone=True))


class BandwidthSampleModel(Base):
    """Model for WAN bandwidth samples."""
    __tablename__ = 'bandwidth_data'

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    download_speed = Column(Float)  # Mbps
    upload_speed = Column(Float)
    total_download = Column(Float, nullable=False, default=0)  # GB
    total_upload = Column(Float, nullable=False, default=0)
    interface = Column(String(20))


class AiMeshNodeModel(Base):
    """Model for mesh units (main router and satellite nodes)."""
    __tablename__ = 'aimesh_nodes'

    id = Column(String(50), primary_key=True)
    name = Column(String(200), nullable=False)
    role = Column(String(10), nullable=False)  # router, node
    status = Column(String(10), nullable=False, default="online")
    mac_address = Column(String(17))
    ip_address = Column(String(45))
    signal_strength = Column(Integer)
    connected_device_count = Column(Integer, default=0)
    firmware_version = Column(String(100))
    uptime = Column(Integer)
    bandwidth = Column(JSON)
