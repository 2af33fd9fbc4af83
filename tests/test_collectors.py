"""
Unit tests for the topology and facet collectors and the device detail service.
"""

import re
import unittest
from datetime import datetime, timedelta, timezone

from router_telemetry.application.services.device_detail_service import DeviceDetailService
from router_telemetry.application.services.status_collectors import (
    BandwidthCollector,
    FeatureCollector,
    SystemStatusCollector,
    WifiCollector,
)
from router_telemetry.application.services.topology_collector import TopologyCollector
from router_telemetry.domain.entities.device import ConnectionType, Device
from router_telemetry.domain.errors import CommandError, NotConnectedError
from router_telemetry.infrastructure.parsers.base import split_sections
from router_telemetry.infrastructure.repositories.memory_repository import MemoryTelemetryStorage

from fakes import (
    BANDWIDTH_SCRIPT,
    DETAIL_SCRIPT,
    FEATURES_SCRIPT,
    STATUS_SCRIPT,
    TOPOLOGY_OUTPUT,
    WIFI_SCRIPT,
    FakeChannel,
    bandwidth_output,
    healthy_router,
)

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Returns T0, then advances by ``step`` on every call."""

    def __init__(self, step=timedelta(seconds=10)):
        self.current = T0 - step
        self.step = step

    def __call__(self):
        self.current += self.step
        return self.current


class TestTopologyCollector(unittest.IsolatedAsyncioTestCase):

    async def test_collect(self):
        snapshot = await TopologyCollector(healthy_router()).collect()
        self.assertEqual(len(snapshot.dhcp_clients), 5)
        self.assertEqual(snapshot.main_unit.model, "RT-AX86U")
        self.assertEqual(snapshot.failed_sections, [])

    async def test_script_uses_lan_interface(self):
        channel = healthy_router()
        await TopologyCollector(channel, lan_interface="br1").collect()
        self.assertIn(" dev br1 ", channel.commands[0])

    async def test_inactive_channel(self):
        with self.assertRaises(NotConnectedError):
            await TopologyCollector(FakeChannel(active=False)).collect()

    async def test_falls_back_to_sections(self):
        sections = split_sections(TOPOLOGY_OUTPUT)

        def respond(command):
            if "===END===" in command:
                raise CommandError(command, 1, "sh: syntax error")
            name = re.search(r"===(\w+)===", command).group(1)
            if name == "WIRELESS":
                raise CommandError(command, 1, "wl: not found")
            return f"==={name}===\n" + "\n".join(sections[name]) + "\n"

        channel = FakeChannel().on("===", respond)
        snapshot = await TopologyCollector(channel).collect()

        self.assertEqual(snapshot.failed_sections, ["WIRELESS"])
        self.assertEqual(snapshot.wireless_clients, [])
        self.assertEqual(len(snapshot.dhcp_clients), 5)
        self.assertEqual(len(snapshot.aimesh_nodes), 2)
        # composite attempt plus one command per section
        self.assertEqual(len(channel.commands), 7)


class TestFacetCollectors(unittest.IsolatedAsyncioTestCase):

    async def test_status_sets_last_updated(self):
        status = await SystemStatusCollector(healthy_router(), clock=lambda: T0).collect()
        self.assertEqual(status.model, "RT-AX86U")
        self.assertEqual(status.last_updated, T0)

    async def test_failed_command_means_no_data(self):
        channel = FakeChannel().on(STATUS_SCRIPT, CommandError("status", 1, "top: not found"))
        self.assertIsNone(await SystemStatusCollector(channel).collect())
        self.assertIsNone(await WifiCollector(FakeChannel()).collect())
        self.assertIsNone(await FeatureCollector(FakeChannel()).collect())

    async def test_inactive_channel_raises(self):
        for collector in (SystemStatusCollector(FakeChannel(active=False)),
                          WifiCollector(FakeChannel(active=False)),
                          BandwidthCollector(FakeChannel(active=False))):
            with self.subTest(collector=type(collector).__name__):
                with self.assertRaises(NotConnectedError):
                    await collector.collect()

    async def test_wifi(self):
        inventory = await WifiCollector(healthy_router()).collect()
        self.assertEqual(len(inventory.networks), 4)
        self.assertEqual(inventory.active_interface_count, 3)

    async def test_features_take_network_counts_from_wifi(self):
        channel = healthy_router()
        wifi = await WifiCollector(channel).collect()
        features = await FeatureCollector(channel, clock=lambda: T0).collect(wifi)
        self.assertEqual(features.wifi_network_count, 3)
        self.assertEqual(features.guest_network_count, 1)
        self.assertEqual(features.last_updated, T0)

    async def test_features_without_wifi(self):
        features = await FeatureCollector(healthy_router()).collect()
        self.assertIsNone(features.wifi_network_count)


class TestBandwidthCollector(unittest.IsolatedAsyncioTestCase):

    def make_collector(self, *outputs, wan_interface=None):
        queue = list(outputs)
        channel = FakeChannel().on(BANDWIDTH_SCRIPT, lambda command: queue.pop(0))
        return BandwidthCollector(channel, wan_interface=wan_interface, clock=SteppingClock()), channel

    async def test_first_sample_has_no_speed(self):
        collector, _ = self.make_collector(bandwidth_output(1_000_000, 500_000))
        sample = await collector.collect()
        self.assertIsNone(sample.download_speed)
        self.assertIsNone(sample.upload_speed)
        self.assertEqual(sample.timestamp, T0)
        self.assertEqual(sample.interface, "eth0")
        self.assertEqual(sample.total_download, round(1_000_000 / 1024 ** 3, 3))

    async def test_speed_from_delta(self):
        collector, _ = self.make_collector(
            bandwidth_output(1_000_000, 500_000),
            bandwidth_output(2_250_000, 750_000),
        )
        await collector.collect()
        sample = await collector.collect()
        # 1.25 MB over 10 s
        self.assertEqual(sample.download_speed, 1.0)
        self.assertEqual(sample.upload_speed, 0.2)

    async def test_counter_reset(self):
        collector, _ = self.make_collector(
            bandwidth_output(5_000_000, 5_000_000),
            bandwidth_output(100, 100),
            bandwidth_output(1_250_100, 100),
        )
        await collector.collect()
        after_reset = await collector.collect()
        self.assertIsNone(after_reset.download_speed)
        recovered = await collector.collect()
        self.assertEqual(recovered.download_speed, 1.0)
        self.assertEqual(recovered.upload_speed, 0.0)

    async def test_interface_change(self):
        collector, _ = self.make_collector(
            bandwidth_output(1_000_000, 500_000, "eth0"),
            bandwidth_output(2_000_000, 600_000, "ppp0"),
        )
        await collector.collect()
        self.assertIsNone((await collector.collect()).download_speed)

    async def test_reset_forgets_previous(self):
        collector, _ = self.make_collector(
            bandwidth_output(1_000_000, 500_000),
            bandwidth_output(2_000_000, 600_000),
        )
        await collector.collect()
        collector.reset()
        self.assertIsNone((await collector.collect()).download_speed)

    async def test_configured_wan_interface(self):
        collector, channel = self.make_collector(bandwidth_output(1, 1, "eth9"), wan_interface="eth9")
        await collector.collect()
        self.assertIn("IF=eth9", channel.commands[0])

    async def test_unreadable_counters(self):
        collector, _ = self.make_collector("eth0||\n")
        self.assertIsNone(await collector.collect())


def detail_response(online_macs, wireless_macs=()):
    """Answer the detail probe: leases for every MAC, presence only for ``online_macs``."""

    def respond(command):
        mac = re.search(r'MAC="([^"]+)"', command).group(1)
        lines = ["===DHCP_LEASES===", f"1 {mac} 192.168.1.{int(mac[-2:], 16)} host-{mac[-2:]} *", "===WIRELESS==="]
        if mac in wireless_macs:
            lines.append(f"wl1|eth7|1|{mac}|-55")
        lines.append("===NEIGHBORS===")
        if mac in online_macs:
            lines.append(f"192.168.1.{int(mac[-2:], 16)} dev br0 lladdr {mac.lower()} REACHABLE")
        lines.append("===END===")
        return "\n".join(lines) + "\n"

    return respond


class TestDeviceDetailService(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.storage = MemoryTelemetryStorage()
        self.macs = [f"00:11:22:33:44:{i:02X}" for i in range(1, 8)]
        for mac in self.macs:
            await self.storage.create_device(Device(mac_address=mac, name=mac, is_online=True,
                                                    connection_type=ConnectionType.ETHERNET))

    def probed(self, channel):
        return [re.search(r'MAC="([^"]+)"', c).group(1) for c in channel.commands]

    async def test_rotates_through_devices(self):
        channel = FakeChannel().on(DETAIL_SCRIPT, detail_response(set(self.macs)))
        service = DeviceDetailService(channel, self.storage, batch_size=5, clock=lambda: T0)

        self.assertEqual(await service.enrich_batch(), 5)
        self.assertEqual(self.probed(channel), self.macs[:5])

        channel.commands.clear()
        await service.enrich_batch()
        self.assertEqual(self.probed(channel), self.macs[5:] + self.macs[:3])

    async def test_neighbor_only_keeps_connection_type(self):
        mac = self.macs[0]
        channel = FakeChannel().on(DETAIL_SCRIPT, detail_response({mac}))
        service = DeviceDetailService(channel, self.storage, batch_size=1, clock=lambda: T0)
        await service.enrich_batch()

        device = await self.storage.get_device_by_mac(mac)
        self.assertTrue(device.is_online)
        self.assertEqual(device.connection_type, ConnectionType.ETHERNET)
        self.assertEqual(device.ip_address, "192.168.1.1")
        self.assertEqual(device.hostname, "host-01")
        self.assertEqual(device.last_seen, T0)
        self.assertEqual(device.connected_at, T0)

    async def test_wireless_detail_updates_band(self):
        mac = self.macs[0]
        channel = FakeChannel().on(DETAIL_SCRIPT, detail_response(set(), wireless_macs={mac}))
        service = DeviceDetailService(channel, self.storage, batch_size=1, clock=lambda: T0)
        await service.enrich_batch()

        device = await self.storage.get_device_by_mac(mac)
        self.assertEqual(device.connection_type, ConnectionType.WIFI_5)
        self.assertEqual(device.signal_strength, -55)
        self.assertEqual(device.wireless_band, "5GHz")

    async def test_absent_device_marked_offline(self):
        channel = FakeChannel().on(DETAIL_SCRIPT, detail_response(set()))
        service = DeviceDetailService(channel, self.storage, batch_size=2, clock=lambda: T0)
        self.assertEqual(await service.enrich_batch(), 2)

        device = await self.storage.get_device_by_mac(self.macs[0])
        self.assertFalse(device.is_online)
        # lease data alone does not refresh the record
        self.assertIsNone(device.ip_address)

    async def test_probe_failure_skips_device(self):
        channel = FakeChannel().on(DETAIL_SCRIPT, CommandError("detail", 1, "grep: error"))
        service = DeviceDetailService(channel, self.storage, batch_size=3)
        self.assertEqual(await service.enrich_batch(), 0)

    async def test_empty_storage(self):
        service = DeviceDetailService(FakeChannel(), MemoryTelemetryStorage())
        self.assertEqual(await service.enrich_batch(), 0)

    async def test_inactive_channel(self):
        service = DeviceDetailService(FakeChannel(active=False), self.storage)
        with self.assertRaises(NotConnectedError):
            await service.enrich_batch()
