import logging
from datetime import datetime
from typing import Any, Callable, Dict, List

from router_telemetry.domain.entities.device import ConnectionType, Device
from router_telemetry.domain.errors import CommandError, NotConnectedError
from router_telemetry.domain.repositories.storage import TelemetryStorage
from router_telemetry.infrastructure.parsers.device_detail_parser import DeviceDetail, DeviceDetailParser
from router_telemetry.infrastructure.scripts import router_scripts
from router_telemetry.utils.timezone import now_in

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5


class DeviceDetailService:
    """
    Per-device probe for a rotating slice of stored devices.

    Each call to ``enrich_batch`` refreshes at most ``batch_size`` devices and
    advances a cursor, so every stored device is visited over successive ticks
    without a single tick issuing one command per device.
    """

    def __init__(self,
                 channel,
                 storage: TelemetryStorage,
                 batch_size: int = DEFAULT_BATCH_SIZE,
                 lan_interface: str = "br0",
                 clock: Callable[[], datetime] = now_in):
        self.channel = channel
        self.storage = storage
        self.batch_size = max(1, batch_size)
        self.lan_interface = lan_interface
        self.clock = clock
        self._cursor = 0

    def _next_slice(self, devices: List[Device]) -> List[Device]:
        if not devices:
            self._cursor = 0
            return []
        start = self._cursor % len(devices)
        count = min(self.batch_size, len(devices))
        batch = [devices[(start + i) % len(devices)] for i in range(count)]
        self._cursor = (start + count) % len(devices)
        return batch

    async def probe(self, mac_address: str) -> DeviceDetail:
        output = await self.channel.execute(router_scripts.device_detail_script(mac_address, self.lan_interface))
        return DeviceDetailParser(mac_address).parse(output)

    def _changes_for(self, device: Device, detail: DeviceDetail, now: datetime) -> Dict[str, Any]:
        if not detail.is_present:
            return {"is_online": False} if device.is_online else {}

        changes: Dict[str, Any] = {"is_online": True, "last_seen": now}
        if device.connected_at is None:
            changes["connected_at"] = now
        if detail.ip_address:
            changes["ip_address"] = detail.ip_address
        if detail.hostname:
            changes["hostname"] = detail.hostname
        if detail.is_wireless:
            changes["wireless_interface"] = detail.wireless_interface
            changes["wireless_band"] = detail.wireless_band
            changes["signal_strength"] = detail.signal_strength
            changes["connection_type"] = ConnectionType.from_band(detail.wireless_band)
        return changes

    async def enrich_batch(self) -> int:
        """
        Refresh the next slice of stored devices.

        Returns:
            Number of devices updated

        Raises:
            NotConnectedError: channel inactive
        """
        if not self.channel.is_active():
            raise NotConnectedError()

        devices = await self.storage.list_devices()
        batch = self._next_slice(devices)
        updated = 0
        now = self.clock()

        for device in batch:
            try:
                detail = await self.probe(device.mac_address)
            except CommandError as e:
                logger.warning(f"Detail probe failed for {device.mac_address}: {str(e)}")
                continue

            changes = self._changes_for(device, detail, now)
            if changes:
                await self.storage.update_device(device.mac_address, changes)
                updated += 1

        logger.info(f"Device detail sync refreshed {updated}/{len(batch)} devices")
        return updated
