"""
Single-facet collectors: system vitals, WiFi inventory, WAN bandwidth and
vendor feature flags.

Each collector runs one dedicated script. A failing command yields ``None``
("no data for this facet"); an unusable channel raises.
"""

import logging
from datetime import datetime
from typing import Callable, Generic, Optional, TypeVar

from router_telemetry.domain.entities.device import (
    BandwidthSample,
    RouterFeatures,
    RouterStatus,
    WifiInventory,
)
from router_telemetry.domain.errors import CommandError, NotConnectedError
from router_telemetry.infrastructure.parsers.bandwidth_parser import InterfaceCounters, InterfaceCountersParser
from router_telemetry.infrastructure.parsers.base import OutputParser
from router_telemetry.infrastructure.parsers.features_parser import RouterFeaturesParser
from router_telemetry.infrastructure.parsers.status_parser import SystemStatusParser
from router_telemetry.infrastructure.parsers.wifi_parser import WifiInventoryParser
from router_telemetry.infrastructure.scripts import router_scripts
from router_telemetry.utils.timezone import now_in

logger = logging.getLogger(__name__)

T = TypeVar("T")

BYTES_PER_GB = 1024 ** 3


class FacetCollector(Generic[T]):
    """Runs ``script()`` and hands its output to ``parser``."""

    def __init__(self, channel, parser: OutputParser, clock: Callable[[], datetime] = now_in):
        self.channel = channel
        self.parser = parser
        self.clock = clock

    def script(self) -> str:
        raise NotImplementedError

    async def _run(self) -> Optional[str]:
        if not self.channel.is_active():
            raise NotConnectedError()
        try:
            return await self.channel.execute(self.script())
        except CommandError as e:
            logger.error(f"❌ {self.parser.facet} collection failed: {str(e)}")
            return None

    async def collect(self) -> Optional[T]:
        """
        Returns:
            Parsed facet, or None when the script failed

        Raises:
            NotConnectedError: channel inactive
            SSHConnectionError: transport lost
        """
        output = await self._run()
        if output is None:
            return None
        return self.parser.parse(output)


class SystemStatusCollector(FacetCollector[RouterStatus]):
    def __init__(self, channel, clock: Callable[[], datetime] = now_in):
        super().__init__(channel, SystemStatusParser(), clock)

    def script(self) -> str:
        return router_scripts.system_status_script()

    async def collect(self) -> Optional[RouterStatus]:
        status = await super().collect()
        if status is None:
            return None
        status.last_updated = self.clock()
        logger.debug(f"Router status: cpu={status.cpu_usage}% mem={status.memory_usage}/{status.memory_total}MB")
        return status


class WifiCollector(FacetCollector[WifiInventory]):
    def __init__(self, channel, clock: Callable[[], datetime] = now_in):
        super().__init__(channel, WifiInventoryParser(), clock)

    def script(self) -> str:
        return router_scripts.wifi_inventory_script()


class BandwidthCollector(FacetCollector[BandwidthSample]):
    """
    Samples WAN byte counters and derives speed from the previous reading.

    The first sample, and any sample after a counter reset, has no speed.
    """

    def __init__(self,
                 channel,
                 wan_interface: Optional[str] = None,
                 clock: Callable[[], datetime] = now_in):
        super().__init__(channel, InterfaceCountersParser(), clock)
        self.wan_interface = wan_interface
        self._previous: Optional[InterfaceCounters] = None
        self._previous_at: Optional[datetime] = None

    def script(self) -> str:
        return router_scripts.bandwidth_script(self.wan_interface)

    def reset(self) -> None:
        self._previous = None
        self._previous_at = None

    async def collect(self) -> Optional[BandwidthSample]:
        counters = await super().collect()
        if counters is None:
            return None

        taken_at = self.clock()
        download_speed = upload_speed = None
        previous, previous_at = self._previous, self._previous_at

        if previous is not None and previous.interface == counters.interface:
            elapsed = (taken_at - previous_at).total_seconds()
            rx_delta = counters.rx_bytes - previous.rx_bytes
            tx_delta = counters.tx_bytes - previous.tx_bytes
            if elapsed > 0 and rx_delta >= 0 and tx_delta >= 0:
                download_speed = round(rx_delta * 8 / 1_000_000 / elapsed, 2)
                upload_speed = round(tx_delta * 8 / 1_000_000 / elapsed, 2)
            else:
                logger.info(f"Bandwidth counters on {counters.interface} reset, skipping speed for this sample")

        self._previous = counters
        self._previous_at = taken_at

        return BandwidthSample(
            timestamp=taken_at,
            download_speed=download_speed,
            upload_speed=upload_speed,
            total_download=round(counters.rx_bytes / BYTES_PER_GB, 3),
            total_upload=round(counters.tx_bytes / BYTES_PER_GB, 3),
            interface=counters.interface,
        )


class FeatureCollector(FacetCollector[RouterFeatures]):
    def __init__(self, channel, clock: Callable[[], datetime] = now_in):
        super().__init__(channel, RouterFeaturesParser(), clock)

    def script(self) -> str:
        return router_scripts.router_features_script()

    async def collect(self, wifi: Optional[WifiInventory] = None) -> Optional[RouterFeatures]:
        """
        Args:
            wifi: Inventory from the same pass; provides the live network counts
        """
        features = await super().collect()
        if features is None:
            return None
        if wifi is not None:
            features.wifi_network_count = wifi.active_interface_count
            features.guest_network_count = wifi.active_guest_count
        features.last_updated = self.clock()
        return features
