from .device import (
    AiMeshNode,
    BandwidthSample,
    ConnectionType,
    Device,
    DeviceType,
    JobStatus,
    MeshRole,
    NodeStatus,
    RouterFeatures,
    RouterStatus,
    ScheduledJob,
    SecurityMode,
    WifiInventory,
    WifiNetwork,
)
from .topology import (
    DhcpLease,
    MainUnitIdentity,
    MeshMember,
    NeighborEntry,
    TopologySnapshot,
    WirelessAssociation,
)
