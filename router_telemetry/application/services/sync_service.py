"""
Sync orchestrator: runs every collector against the router and writes the
results to storage.
"""

import asyncio
import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from router_telemetry.application.services.device_fusion import MAIN_ROUTER_ID, DeviceFusionEngine, FusionResult
from router_telemetry.application.services.status_collectors import (
    BandwidthCollector,
    FeatureCollector,
    SystemStatusCollector,
    WifiCollector,
)
from router_telemetry.application.services.topology_collector import TopologyCollector
from router_telemetry.domain.entities.device import (
    AiMeshNode,
    BandwidthSample,
    Device,
    MeshRole,
    RouterFeatures,
    RouterStatus,
    WifiInventory,
)
from router_telemetry.domain.errors import NotConnectedError
from router_telemetry.domain.repositories.storage import TelemetryStorage
from router_telemetry.infrastructure.scripts.router_scripts import SECTION_MESH
from router_telemetry.utils.timezone import now_in

logger = logging.getLogger(__name__)

BRANCHES = ("status", "topology", "bandwidth", "features")

# Stored values kept when a fresh observation has nothing for them
_KEEP_WHEN_MISSING = {"ip_address", "hostname", "last_seen", "connected_at", "download_speed", "upload_speed"}


@dataclass
class SyncReport:
    skipped: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    completed: List[str] = field(default_factory=list)
    no_data: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    device_count: int = 0

    @property
    def success(self) -> bool:
        return not self.skipped and not self.errors

    def as_dict(self) -> Dict[str, Any]:
        return {
            "skipped": self.skipped,
            "success": self.success,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "completed": list(self.completed),
            "no_data": list(self.no_data),
            "errors": dict(self.errors),
            "device_count": self.device_count,
        }


class SyncService:
    """Orchestrates full and per-facet syncs; only one full pass runs at a time."""

    def __init__(self,
                 channel,
                 storage: TelemetryStorage,
                 topology_collector: Optional[TopologyCollector] = None,
                 fusion_engine: Optional[DeviceFusionEngine] = None,
                 status_collector: Optional[SystemStatusCollector] = None,
                 wifi_collector: Optional[WifiCollector] = None,
                 bandwidth_collector: Optional[BandwidthCollector] = None,
                 feature_collector: Optional[FeatureCollector] = None,
                 clock: Callable[[], datetime] = now_in):
        self.channel = channel
        self.storage = storage
        self.topology_collector = topology_collector or TopologyCollector(channel)
        self.fusion_engine = fusion_engine or DeviceFusionEngine()
        self.status_collector = status_collector or SystemStatusCollector(channel, clock)
        self.wifi_collector = wifi_collector or WifiCollector(channel, clock)
        self.bandwidth_collector = bandwidth_collector or BandwidthCollector(channel, clock=clock)
        self.feature_collector = feature_collector or FeatureCollector(channel, clock)
        self.clock = clock

        self.is_syncing = False
        self.last_report: Optional[SyncReport] = None

    async def sync_all(self) -> SyncReport:
        """
        Run every branch concurrently and persist what succeeded.

        Returns:
            SyncReport; ``skipped=True`` when another pass was already running

        Raises:
            NotConnectedError: channel inactive (nothing is written)
        """
        if self.is_syncing:
            logger.warning("Sync already in progress, skipping")
            return SyncReport(skipped=True)
        if not self.channel.is_active():
            logger.error("❌ Cannot sync: SSH channel is not connected")
            raise NotConnectedError()

        self.is_syncing = True
        report = SyncReport(started_at=self.clock())
        logger.info("🔄 Starting full router sync")
        try:
            outcomes = await asyncio.gather(
                self.sync_status(),
                self.sync_devices(),
                self.sync_bandwidth(),
                self.sync_wifi_and_features(),
                return_exceptions=True,
            )
            for branch, outcome in zip(BRANCHES, outcomes):
                if isinstance(outcome, BaseException):
                    error_msg = str(outcome) or type(outcome).__name__
                    report.errors[branch] = error_msg
                    logger.error(f"❌ Sync branch '{branch}' failed: {error_msg}")
                elif outcome is None:
                    report.no_data.append(branch)
                else:
                    report.completed.append(branch)
                    if isinstance(outcome, FusionResult):
                        report.device_count = len(outcome.devices)
        finally:
            self.is_syncing = False
            report.finished_at = self.clock()
            self.last_report = report

        logger.info(
            f"✅ Sync finished: completed={report.completed} no_data={report.no_data} "
            f"errors={list(report.errors)}"
        )
        return report

    async def sync_status(self) -> Optional[RouterStatus]:
        status = await self.status_collector.collect()
        if status is not None:
            await self.storage.upsert_router_status(status)
        return status

    async def sync_devices(self) -> Optional[FusionResult]:
        """Collect topology, fuse it and persist devices and mesh nodes."""
        snapshot = await self.topology_collector.collect()
        now = self.clock()
        result = self.fusion_engine.fuse(snapshot, now)

        complete = not snapshot.failed_sections and not snapshot.unreachable_nodes
        await self.persist_devices(result.devices, now, mark_missing_offline=complete)
        await self.persist_mesh_nodes(result.mesh_nodes, prune_members=SECTION_MESH not in snapshot.failed_sections)
        return result

    async def persist_devices(self, devices: List[Device], now: datetime, mark_missing_offline: bool = False) -> None:
        """
        Write fused devices, last writer wins per MAC.

        Args:
            devices: Fused devices from one pass
            mark_missing_offline: Mark stored devices absent from ``devices`` offline;
                only safe when the pass saw every source
        """
        seen = set()
        for device in devices:
            seen.add(device.mac_address)
            existing = await self.storage.get_device_by_mac(device.mac_address)
            if existing is None:
                await self.storage.create_device(device)
                continue
            await self.storage.update_device(device.mac_address, self._merge_changes(existing, device))

        if not mark_missing_offline:
            return
        for stored in await self.storage.list_devices():
            if stored.mac_address not in seen and stored.is_online:
                logger.info(f"Device {stored.mac_address} ({stored.name}) went offline")
                await self.storage.update_device(stored.mac_address, {"is_online": False})

    def _merge_changes(self, existing: Device, fresh: Device) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        for f in fields(Device):
            if f.name == "mac_address":
                continue
            value = getattr(fresh, f.name)
            if value is None and f.name in _KEEP_WHEN_MISSING:
                continue
            changes[f.name] = value
        # Without a lease the fused name and type are fallbacks
        if fresh.hostname is None and existing.hostname:
            changes.pop("name")
            changes.pop("device_type")
        # Keep the start of an ongoing session
        if existing.is_online and existing.connected_at is not None and fresh.is_online:
            changes["connected_at"] = existing.connected_at
        return changes

    async def persist_mesh_nodes(self, nodes: List[AiMeshNode], prune_members: bool = False) -> None:
        """
        Write fused mesh nodes, keeping a single router record in storage.

        A placeholder router never replaces an identified one. When the main
        unit is identified, any other stored router record is removed.

        Args:
            nodes: Fused router followed by member nodes
            prune_members: Delete stored member nodes absent from ``nodes``;
                only safe when the membership list was read
        """
        router = next(n for n in nodes if n.role == MeshRole.ROUTER)
        stored = await self.storage.list_mesh_nodes()
        identified = [n.id for n in stored if n.role == MeshRole.ROUTER and n.id != MAIN_ROUTER_ID]

        if router.id == MAIN_ROUTER_ID and identified:
            logger.warning("Main unit not identified this pass, keeping stored router record")
            router_ids = set(identified)
        else:
            router_ids = {router.id}
            await self.storage.upsert_mesh_node(router)
            for other in stored:
                if other.role == MeshRole.ROUTER and other.id != router.id:
                    logger.info(f"Removing stale router record {other.id}")
                    await self.storage.delete_mesh_node(other.id)

        member_ids = set()
        for node in nodes:
            # The main unit is listed among the members when its identity is missing
            if node.role == MeshRole.ROUTER or node.id in router_ids:
                continue
            member_ids.add(node.id)
            await self.storage.upsert_mesh_node(node)

        if not prune_members:
            return
        for other in stored:
            if other.role == MeshRole.NODE and other.id not in member_ids and other.id not in router_ids:
                logger.info(f"Mesh node {other.id} ({other.name}) left the mesh")
                await self.storage.delete_mesh_node(other.id)

    async def sync_bandwidth(self) -> Optional[BandwidthSample]:
        sample = await self.bandwidth_collector.collect()
        if sample is not None:
            await self.storage.add_bandwidth_sample(sample)
        return sample

    async def sync_wifi(self) -> Optional[WifiInventory]:
        inventory = await self.wifi_collector.collect()
        if inventory is not None:
            for network in inventory.networks:
                await self.storage.upsert_wifi_network(network)
        return inventory

    async def sync_features(self, wifi: Optional[WifiInventory] = None) -> Optional[RouterFeatures]:
        features = await self.feature_collector.collect(wifi)
        if features is None:
            return None
        if wifi is None:
            # No inventory this pass, carry the last known counts forward
            stored = await self.storage.get_router_features()
            if stored is not None:
                if features.wifi_network_count is None:
                    features.wifi_network_count = stored.wifi_network_count
                if features.guest_network_count is None:
                    features.guest_network_count = stored.guest_network_count
        await self.storage.upsert_router_features(features)
        return features

    async def sync_wifi_and_features(self) -> Optional[RouterFeatures]:
        wifi = await self.sync_wifi()
        return await self.sync_features(wifi)

    def get_status(self) -> Dict[str, Any]:
        return {
            "is_syncing": self.is_syncing,
            "connected": self.channel.is_active(),
            "last_report": self.last_report.as_dict() if self.last_report else None,
        }
