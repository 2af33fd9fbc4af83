from typing import List

from router_telemetry.application.services.background_jobs import JobScheduler
from router_telemetry.application.services.device_detail_service import DeviceDetailService
from router_telemetry.application.services.sync_service import SyncService
from router_telemetry.domain.entities.device import ScheduledJob

DEVICE_DISCOVERY = "device-discovery"
DEVICE_DETAIL_SYNC = "device-detail-sync"
BANDWIDTH_MONITORING = "bandwidth-monitoring"
ROUTER_HEALTH_CHECK = "router-health-check"
WIFI_NETWORK_SCAN = "wifi-network-scan"


def register_default_jobs(scheduler: JobScheduler,
                          sync_service: SyncService,
                          detail_service: DeviceDetailService) -> List[ScheduledJob]:
    """Register the standard telemetry jobs (timers are not started)."""
    return [
        scheduler.register(
            DEVICE_DISCOVERY,
            "Device Discovery",
            "Scans for new devices and updates device information",
            "*/2 * * * *",
            sync_service.sync_devices,
        ),
        scheduler.register(
            DEVICE_DETAIL_SYNC,
            "Device Detail Sync",
            "Updates detailed device information (connection type, signal strength)",
            "*/5 * * * *",
            detail_service.enrich_batch,
        ),
        scheduler.register(
            BANDWIDTH_MONITORING,
            "Bandwidth Monitoring",
            "Collects WAN bandwidth usage samples",
            "*/10 * * * * *",
            sync_service.sync_bandwidth,
        ),
        scheduler.register(
            ROUTER_HEALTH_CHECK,
            "Router Health Check",
            "Monitors router status and system resources",
            "*/3 * * * *",
            sync_service.sync_status,
        ),
        scheduler.register(
            WIFI_NETWORK_SCAN,
            "WiFi Network Scan",
            "Updates WiFi network information and router features",
            "*/10 * * * *",
            sync_service.sync_wifi_and_features,
            enabled=False,
        ),
    ]
