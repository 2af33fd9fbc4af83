"""
Explicit wiring of one router connection and everything that talks through it.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from router_telemetry.application.services.background_jobs import JobScheduler
from router_telemetry.application.services.device_detail_service import DeviceDetailService
from router_telemetry.application.services.sync_service import SyncService
from router_telemetry.domain.errors import RouterTelemetryError
from router_telemetry.domain.repositories.storage import TelemetryStorage
from router_telemetry.infrastructure.ssh.router_ssh_client import ConnectionDescriptor, RouterSSHClient

logger = logging.getLogger(__name__)


@dataclass
class RouterContext:
    descriptor: ConnectionDescriptor
    channel: RouterSSHClient
    storage: TelemetryStorage
    sync_service: SyncService
    detail_service: DeviceDetailService
    scheduler: JobScheduler

    async def start(self, initial_sync: bool = True) -> None:
        """Connect, optionally run one full sync, then start the enabled jobs."""
        await self.channel.connect(self.descriptor)
        if initial_sync:
            try:
                report = await self.sync_service.sync_all()
                logger.info(f"Initial sync: {report.as_dict()}")
            except RouterTelemetryError as e:
                logger.error(f"❌ Initial sync failed: {str(e)}")
        self.scheduler.start_all()

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()
        await self.channel.disconnect()

    def get_status(self) -> Dict[str, Any]:
        return {
            "host": self.descriptor.host,
            "port": self.descriptor.port,
            "sync": self.sync_service.get_status(),
            "jobs": [job.as_dict() for job in self.scheduler.get_jobs()],
        }
