"""
Unit tests for router_telemetry.application.services.sync_service
"""

import asyncio
import unittest
from datetime import datetime, timedelta, timezone

from router_telemetry.application.services.sync_service import SyncService
from router_telemetry.domain.entities.device import AiMeshNode, ConnectionType, Device, DeviceType, MeshRole
from router_telemetry.domain.errors import CommandError, NotConnectedError, SSHConnectionError
from router_telemetry.infrastructure.repositories.memory_repository import MemoryTelemetryStorage

from fakes import (
    FEATURES_SCRIPT,
    STATUS_SCRIPT,
    TOPOLOGY_SCRIPT,
    WIFI_SCRIPT,
    FakeChannel,
    healthy_router,
    topology_without,
)

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
EARLIER = NOW - timedelta(hours=1)


class GatedChannel(FakeChannel):
    """Holds every command until ``gate`` is set."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def execute(self, command, timeout=None):
        await self.gate.wait()
        return await super().execute(command, timeout)


def make_service(channel, storage=None):
    return SyncService(channel, storage or MemoryTelemetryStorage(), clock=lambda: NOW)


def partial_router(*missing_sections):
    return healthy_router(FakeChannel().on(TOPOLOGY_SCRIPT, topology_without(*missing_sections)))


class TestSyncAll(unittest.IsolatedAsyncioTestCase):

    async def test_full_sync_persists_every_facet(self):
        storage = MemoryTelemetryStorage()
        report = await make_service(healthy_router(), storage).sync_all()

        self.assertTrue(report.success)
        self.assertEqual(report.completed, ["status", "topology", "bandwidth", "features"])
        self.assertEqual(report.device_count, 5)
        self.assertEqual(len(await storage.list_devices()), 5)
        self.assertEqual(len(await storage.list_wifi_networks()), 4)
        self.assertEqual(len(await storage.list_bandwidth_samples()), 1)
        self.assertEqual((await storage.get_router_status()).model, "RT-AX86U")
        self.assertEqual((await storage.get_router_features()).wifi_network_count, 3)

        nodes = await storage.list_mesh_nodes()
        self.assertEqual(sorted(n.role for n in nodes), [MeshRole.NODE, MeshRole.ROUTER])

    async def test_inactive_channel_writes_nothing(self):
        storage = MemoryTelemetryStorage()
        service = make_service(FakeChannel(active=False), storage)

        with self.assertRaises(NotConnectedError):
            await service.sync_all()

        self.assertEqual(await storage.list_devices(), [])
        self.assertIsNone(await storage.get_router_status())
        self.assertFalse(service.is_syncing)

    async def test_single_flight(self):
        channel = healthy_router(GatedChannel())
        service = make_service(channel)

        first = asyncio.create_task(service.sync_all())
        await asyncio.sleep(0)
        self.assertTrue(service.is_syncing)

        second = await service.sync_all()
        self.assertTrue(second.skipped)
        self.assertFalse(second.success)

        channel.gate.set()
        report = await first
        self.assertTrue(report.success)
        self.assertFalse(service.is_syncing)

    async def test_branch_failure_is_isolated(self):
        channel = healthy_router(FakeChannel().on(STATUS_SCRIPT, SSHConnectionError("connection reset")))
        storage = MemoryTelemetryStorage()
        report = await make_service(channel, storage).sync_all()

        self.assertEqual(report.errors, {"status": "connection reset"})
        self.assertEqual(report.completed, ["topology", "bandwidth", "features"])
        self.assertFalse(report.success)
        self.assertEqual(len(await storage.list_devices()), 5)
        self.assertIsNone(await storage.get_router_status())

    async def test_failed_command_is_no_data(self):
        channel = healthy_router(FakeChannel().on(FEATURES_SCRIPT, CommandError("features", 1, "nvram: error")))
        report = await make_service(channel).sync_all()

        self.assertEqual(report.no_data, ["features"])
        self.assertTrue(report.success)

    async def test_status_summary(self):
        service = make_service(healthy_router())
        self.assertIsNone(service.get_status()["last_report"])

        await service.sync_all()
        status = service.get_status()
        self.assertTrue(status["connected"])
        self.assertFalse(status["is_syncing"])
        self.assertEqual(status["last_report"]["device_count"], 5)
        self.assertEqual(status["last_report"]["finished_at"], NOW.isoformat())


class TestPersistence(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.storage = MemoryTelemetryStorage()
        self.service = make_service(healthy_router(), self.storage)

    async def test_missing_values_do_not_overwrite(self):
        await self.storage.create_device(Device(
            mac_address="AA:BB:CC:DD:EE:FF", name="phone", ip_address="192.168.1.50",
            hostname="phone", download_speed=3.5,
        ))
        fresh = Device(mac_address="AA:BB:CC:DD:EE:FF", name="Device-EE:FF", is_online=True,
                       connection_type=ConnectionType.WIFI_5, connected_at=NOW, last_seen=NOW)
        await self.service.persist_devices([fresh], NOW)

        stored = await self.storage.get_device_by_mac("AA:BB:CC:DD:EE:FF")
        self.assertEqual(stored.ip_address, "192.168.1.50")
        self.assertEqual(stored.hostname, "phone")
        self.assertEqual(stored.download_speed, 3.5)
        self.assertEqual(stored.connection_type, ConnectionType.WIFI_5)
        self.assertTrue(stored.is_online)

    async def test_connected_at_kept_while_online(self):
        await self.storage.create_device(Device(
            mac_address="AA:BB:CC:DD:EE:FF", name="phone", is_online=True, connected_at=EARLIER,
        ))
        fresh = Device(mac_address="AA:BB:CC:DD:EE:FF", name="phone", is_online=True,
                       connected_at=NOW, last_seen=NOW)
        await self.service.persist_devices([fresh], NOW)

        stored = await self.storage.get_device_by_mac("AA:BB:CC:DD:EE:FF")
        self.assertEqual(stored.connected_at, EARLIER)
        self.assertEqual(stored.last_seen, NOW)

    async def test_connected_at_resets_after_offline(self):
        await self.storage.create_device(Device(
            mac_address="AA:BB:CC:DD:EE:FF", name="phone", is_online=False, connected_at=EARLIER,
        ))
        fresh = Device(mac_address="AA:BB:CC:DD:EE:FF", name="phone", is_online=True,
                       connected_at=NOW, last_seen=NOW)
        await self.service.persist_devices([fresh], NOW)

        stored = await self.storage.get_device_by_mac("AA:BB:CC:DD:EE:FF")
        self.assertEqual(stored.connected_at, NOW)

    async def test_missing_devices_marked_offline(self):
        await self.storage.create_device(Device(mac_address="00:00:00:00:00:01", name="gone", is_online=True))
        await self.service.sync_devices()

        stored = await self.storage.get_device_by_mac("00:00:00:00:00:01")
        self.assertFalse(stored.is_online)

    async def test_incomplete_snapshot_keeps_missing_devices(self):
        partial = "===DHCP_LEASES===\n169000000 AA:BB:CC:DD:EE:FF 192.168.1.50 myphone *\n"
        service = make_service(FakeChannel().on(TOPOLOGY_SCRIPT, partial), self.storage)
        await self.storage.create_device(Device(mac_address="00:00:00:00:00:01", name="kept", is_online=True))

        result = await service.sync_devices()

        self.assertEqual(len(result.devices), 1)
        stored = await self.storage.get_device_by_mac("00:00:00:00:00:01")
        self.assertTrue(stored.is_online)

    async def test_repeated_sync_is_stable(self):
        await self.service.sync_devices()
        first = await self.storage.list_devices()
        await self.service.sync_devices()
        self.assertEqual(await self.storage.list_devices(), first)

    async def test_missing_leases_keep_name_and_type(self):
        await self.service.sync_devices()
        before = await self.storage.get_device_by_mac("AA:BB:CC:DD:EE:FF")
        self.assertEqual((before.name, before.device_type), ("myphone", DeviceType.PHONE))

        await make_service(partial_router("DHCP_LEASES", "MAIN_UNIT"), self.storage).sync_devices()

        after = await self.storage.get_device_by_mac("AA:BB:CC:DD:EE:FF")
        self.assertEqual(after.name, "myphone")
        self.assertEqual(after.hostname, "myphone")
        self.assertEqual(after.device_type, DeviceType.PHONE)
        self.assertEqual(after.ip_address, "192.168.1.50")
        self.assertTrue(after.is_online)

    async def test_missing_leases_for_unnamed_device_still_fall_back(self):
        await self.storage.create_device(Device(mac_address="AA:BB:CC:DD:EE:FF", name="Device-EE:FF"))
        await make_service(partial_router("DHCP_LEASES"), self.storage).sync_devices()

        stored = await self.storage.get_device_by_mac("AA:BB:CC:DD:EE:FF")
        self.assertEqual(stored.name, "Device-EE:FF")
        self.assertEqual(stored.device_type, DeviceType.UNKNOWN)


class TestMeshPersistence(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.storage = MemoryTelemetryStorage()

    async def routers_and_nodes(self):
        nodes = await self.storage.list_mesh_nodes()
        routers = sorted(n.id for n in nodes if n.role == MeshRole.ROUTER)
        members = sorted(n.id for n in nodes if n.role == MeshRole.NODE)
        return routers, members

    async def test_unidentified_main_unit_keeps_stored_router(self):
        await make_service(healthy_router(), self.storage).sync_devices()
        await make_service(partial_router("DHCP_LEASES", "MAIN_UNIT"), self.storage).sync_devices()

        routers, members = await self.routers_and_nodes()
        self.assertEqual(routers, ["04:42:1A:00:00:01"])
        self.assertEqual(members, ["04:42:1A:00:00:02"])

    async def test_identified_router_replaces_placeholder(self):
        await make_service(partial_router("MAIN_UNIT"), self.storage).sync_devices()
        routers, _ = await self.routers_and_nodes()
        self.assertEqual(routers, ["main-router"])

        await make_service(healthy_router(), self.storage).sync_devices()

        routers, members = await self.routers_and_nodes()
        self.assertEqual(routers, ["04:42:1A:00:00:01"])
        self.assertEqual(members, ["04:42:1A:00:00:02"])

    async def test_departed_member_removed(self):
        await self.storage.upsert_mesh_node(AiMeshNode(
            id="04:42:1A:00:00:09", name="AiMesh-00:09", role=MeshRole.NODE, mac_address="04:42:1A:00:00:09"))

        await make_service(healthy_router(), self.storage).sync_devices()

        _, members = await self.routers_and_nodes()
        self.assertEqual(members, ["04:42:1A:00:00:02"])

    async def test_member_kept_when_membership_unread(self):
        await self.storage.upsert_mesh_node(AiMeshNode(
            id="04:42:1A:00:00:09", name="AiMesh-00:09", role=MeshRole.NODE, mac_address="04:42:1A:00:00:09"))

        await make_service(partial_router("MESH_NODES"), self.storage).sync_devices()

        routers, members = await self.routers_and_nodes()
        self.assertEqual(routers, ["04:42:1A:00:00:01"])
        self.assertIn("04:42:1A:00:00:09", members)


class TestFeatureCounts(unittest.IsolatedAsyncioTestCase):

    async def test_counts_carried_forward_without_inventory(self):
        storage = MemoryTelemetryStorage()
        await make_service(healthy_router(), storage).sync_wifi_and_features()
        self.assertEqual((await storage.get_router_features()).wifi_network_count, 3)

        channel = healthy_router(FakeChannel().on(WIFI_SCRIPT, CommandError("wifi", 1, "wl: not found")))
        features = await make_service(channel, storage).sync_wifi_and_features()

        self.assertIsNotNone(features)
        stored = await storage.get_router_features()
        self.assertEqual(stored.wifi_network_count, 3)
        self.assertEqual(stored.guest_network_count, 1)
