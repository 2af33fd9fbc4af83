from functools import lru_cache
from typing import Optional

from router_telemetry.application.context import RouterContext
from router_telemetry.application.services.background_jobs import JobScheduler
from router_telemetry.application.services.device_detail_service import DeviceDetailService
from router_telemetry.application.services.job_definitions import register_default_jobs
from router_telemetry.application.services.status_collectors import (
    BandwidthCollector,
    FeatureCollector,
    SystemStatusCollector,
    WifiCollector,
)
from router_telemetry.application.services.sync_service import SyncService
from router_telemetry.application.services.topology_collector import TopologyCollector
from router_telemetry.config.settings import Settings, settings as default_settings
from router_telemetry.domain.repositories.storage import TelemetryStorage
from router_telemetry.infrastructure.repositories.memory_repository import MemoryTelemetryStorage
from router_telemetry.infrastructure.ssh.router_ssh_client import ConnectionDescriptor, RouterSSHClient
from router_telemetry.utils.database import create_db_engine, create_session_factory, init_db


def build_storage(settings: Settings) -> TelemetryStorage:
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "memory":
        return MemoryTelemetryStorage(bandwidth_retention=settings.BANDWIDTH_RETENTION)
    if backend == "sql":
        from router_telemetry.infrastructure.repositories.sql_repository import SqlTelemetryStorage

        engine = create_db_engine(settings.DATABASE_URL)
        init_db(engine)
        return SqlTelemetryStorage(create_session_factory(engine), bandwidth_retention=settings.BANDWIDTH_RETENTION)
    raise ValueError(f"Unknown STORAGE_BACKEND '{settings.STORAGE_BACKEND}' (expected memory or sql)")


def build_context(settings: Optional[Settings] = None, storage: Optional[TelemetryStorage] = None) -> RouterContext:
    settings = settings or default_settings
    descriptor = ConnectionDescriptor(
        host=settings.ROUTER_SSH_HOST,
        port=settings.ROUTER_SSH_PORT,
        username=settings.ROUTER_SSH_USERNAME,
        password=settings.ROUTER_SSH_PASSWORD,
    )
    channel = RouterSSHClient(
        connect_timeout=settings.SSH_CONNECT_TIMEOUT,
        command_timeout=settings.SSH_COMMAND_TIMEOUT,
    )
    storage = storage or build_storage(settings)

    scheduler = JobScheduler(timezone=settings.SCHEDULER_TIMEZONE)
    clock = scheduler.clock

    sync_service = SyncService(
        channel,
        storage,
        topology_collector=TopologyCollector(
            channel,
            lan_interface=settings.LAN_BRIDGE_INTERFACE,
            node_user=settings.MESH_NODE_USERNAME,
        ),
        status_collector=SystemStatusCollector(channel, clock),
        wifi_collector=WifiCollector(channel, clock),
        bandwidth_collector=BandwidthCollector(channel, wan_interface=settings.WAN_INTERFACE, clock=clock),
        feature_collector=FeatureCollector(channel, clock),
        clock=clock,
    )
    detail_service = DeviceDetailService(
        channel,
        storage,
        batch_size=settings.DETAIL_SYNC_BATCH_SIZE,
        lan_interface=settings.LAN_BRIDGE_INTERFACE,
        clock=clock,
    )
    register_default_jobs(scheduler, sync_service, detail_service)

    return RouterContext(
        descriptor=descriptor,
        channel=channel,
        storage=storage,
        sync_service=sync_service,
        detail_service=detail_service,
        scheduler=scheduler,
    )


@lru_cache()
def get_context() -> RouterContext:
    return build_context(default_settings)
