from .base import OutputParser, parse_lines, split_sections
from .bandwidth_parser import InterfaceCounters, InterfaceCountersParser
from .device_detail_parser import DeviceDetail, DeviceDetailParser
from .features_parser import RouterFeaturesParser
from .status_parser import SystemStatusParser
from .topology_parser import TopologyParser
from .wifi_parser import WifiInventoryParser
