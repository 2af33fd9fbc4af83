"""
Unit tests for router_telemetry.application.services.device_fusion
"""

import random
import unittest
from datetime import datetime, timezone

import pytest

from router_telemetry.application.services.device_fusion import (
    MAIN_ROUTER_ID,
    DeviceFusionEngine,
    classify_device,
)
from router_telemetry.domain.entities.device import ConnectionType, DeviceType, MeshRole, NodeStatus
from router_telemetry.domain.entities.topology import (
    DhcpLease,
    MainUnitIdentity,
    MeshMember,
    NeighborEntry,
    TopologySnapshot,
    WirelessAssociation,
)
from router_telemetry.infrastructure.parsers.topology_parser import TopologyParser

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def fuse(snapshot):
    return DeviceFusionEngine().fuse(snapshot, NOW)


class TestScenarios(unittest.TestCase):

    def test_dhcp_only_lease(self):
        snapshot = TopologyParser().parse(
            "===DHCP_LEASES===\n169000000 AA:BB:CC:DD:EE:FF 192.168.1.50 myphone *\n"
        )
        result = fuse(snapshot)

        self.assertEqual(len(result.devices), 1)
        device = result.devices[0]
        self.assertEqual(device.mac_address, "AA:BB:CC:DD:EE:FF")
        self.assertEqual(device.ip_address, "192.168.1.50")
        self.assertEqual(device.name, "myphone")
        self.assertFalse(device.is_online)
        self.assertEqual(device.connection_type, ConnectionType.UNKNOWN)
        self.assertIsNone(device.signal_strength)

    def test_lease_plus_association(self):
        snapshot = TopologyParser().parse(
            "===DHCP_LEASES===\n169000000 AA:BB:CC:DD:EE:FF 192.168.1.50 myphone *\n"
            "===WIRELESS===\nwl0|eth6|2|aa:bb:cc:dd:ee:ff|-52\n"
        )
        device = fuse(snapshot).devices[0]

        self.assertTrue(device.is_online)
        self.assertEqual(device.connection_type, ConnectionType.WIFI_24)
        self.assertEqual(device.connection_type.value, "2.4GHz WiFi")
        self.assertEqual(device.signal_strength, -52)
        self.assertEqual(device.name, "myphone")
        self.assertEqual(device.ip_address, "192.168.1.50")
        self.assertEqual(device.last_seen, NOW)

    def test_malformed_lease_yields_no_device(self):
        snapshot = TopologyParser().parse("===DHCP_LEASES===\n169000000 AA:BB:CC:DD:EE:FF\n")
        self.assertEqual(fuse(snapshot).devices, [])


class TestPrecedence(unittest.TestCase):

    def test_mesh_node_beats_main_unit_and_wired(self):
        mac = "aa:bb:cc:dd:ee:ff"
        snapshot = TopologySnapshot(
            wireless_clients=[WirelessAssociation(mac, "wl0", "2.4GHz", -70)],
            wired_clients=[NeighborEntry(mac, "192.168.1.50", "br0", "REACHABLE")],
            aimesh_nodes=[MeshMember("04:42:1A:00:00:02", "192.168.1.2", "Upstairs")],
            node_devices={"192.168.1.2": [WirelessAssociation(mac, "wl1", "5GHz", -45)]},
        )
        device = fuse(snapshot).devices[0]

        self.assertEqual(device.connection_type, ConnectionType.WIFI_5)
        self.assertEqual(device.signal_strength, -45)
        self.assertEqual(device.aimesh_node, "Upstairs")
        self.assertEqual(device.aimesh_node_mac, "04:42:1A:00:00:02")

    def test_main_unit_beats_wired(self):
        mac = "aa:bb:cc:dd:ee:ff"
        snapshot = TopologySnapshot(
            wireless_clients=[WirelessAssociation(mac, "wl1", "5GHz", -60)],
            wired_clients=[NeighborEntry(mac, "192.168.1.50", "br0", "REACHABLE")],
        )
        device = fuse(snapshot).devices[0]
        self.assertEqual(device.connection_type, ConnectionType.WIFI_5)
        # IP still cross-referenced from the neighbor table when no lease exists
        self.assertEqual(device.ip_address, "192.168.1.50")

    def test_wired_uses_lease_hostname(self):
        snapshot = TopologySnapshot(
            dhcp_clients=[DhcpLease("B8:27:EB:00:00:01", "192.168.1.70", "octopi", 1)],
            wired_clients=[NeighborEntry("b8:27:eb:00:00:01", "192.168.1.71", "br0", "REACHABLE")],
        )
        device = fuse(snapshot).devices[0]
        self.assertEqual(device.connection_type, ConnectionType.ETHERNET)
        self.assertEqual(device.name, "octopi")
        self.assertEqual(device.ip_address, "192.168.1.70")
        self.assertTrue(device.is_online)

    def test_one_record_per_mac(self):
        snapshot = TopologyParser().parse(
            "===DHCP_LEASES===\n"
            "1 aa:bb:cc:dd:ee:ff 192.168.1.50 a *\n"
            "2 AA-BB-CC-DD-EE-FF 192.168.1.51 b *\n"
            "===WIRELESS===\n"
            "wl0|eth6|2|AA:BB:CC:DD:EE:FF|-70\n"
            "wl1|eth7|1|aa:bb:cc:dd:ee:ff|-40\n"
        )
        result = fuse(snapshot)
        self.assertEqual(len(result.devices), 1)
        device = result.devices[0]
        # strongest RSSI and latest lease win
        self.assertEqual(device.signal_strength, -40)
        self.assertEqual(device.ip_address, "192.168.1.51")
        self.assertEqual(device.name, "b")


class TestValidationAndNaming(unittest.TestCase):

    def test_invalid_mac_dropped(self):
        snapshot = TopologySnapshot(
            dhcp_clients=[
                DhcpLease("ZZ:BB:CC:DD:EE:FF", "192.168.1.50", "bad", 1),
                DhcpLease("AA:BB:CC:DD:EE", "192.168.1.51", "short", 1),
                DhcpLease("00:11:22:33:44:55", "192.168.1.52", "good", 1),
            ],
        )
        result = fuse(snapshot)
        self.assertEqual([d.mac_address for d in result.devices], ["00:11:22:33:44:55"])
        self.assertEqual(result.dropped_macs, ["AA:BB:CC:DD:EE", "ZZ:BB:CC:DD:EE:FF"])

    def test_synthesized_name(self):
        snapshot = TopologySnapshot(dhcp_clients=[DhcpLease("11:22:33:44:55:66", "192.168.1.60", None, 1)])
        self.assertEqual(fuse(snapshot).devices[0].name, "Device-55:66")

    def test_classify_oui_beats_hostname(self):
        self.assertEqual(classify_device("B8:27:EB:00:00:01", "my-iphone"), DeviceType.RASPBERRY_PI)
        self.assertEqual(classify_device("00:50:56:00:00:01", None), DeviceType.VIRTUAL_MACHINE)

    def test_classify_hostname_keywords(self):
        self.assertEqual(classify_device("00:11:22:33:44:55", "Johns-iPad"), DeviceType.TABLET)
        self.assertEqual(classify_device("00:11:22:33:44:55", "Johns-iPhone"), DeviceType.PHONE)
        self.assertEqual(classify_device("00:11:22:33:44:55", "MacBook-Pro"), DeviceType.LAPTOP)
        self.assertEqual(classify_device("00:11:22:33:44:55", "Living-Room-TV"), DeviceType.TV)
        self.assertEqual(classify_device("00:11:22:33:44:55", "EPSON1234"), DeviceType.PRINTER)
        self.assertEqual(classify_device("00:11:22:33:44:55", "thing"), DeviceType.UNKNOWN)


class TestMeshNodes(unittest.TestCase):

    def test_placeholder_router(self):
        result = fuse(TopologySnapshot())
        self.assertEqual(len(result.mesh_nodes), 1)
        router = result.mesh_nodes[0]
        self.assertEqual(router.id, MAIN_ROUTER_ID)
        self.assertEqual(router.name, "Main Router")
        self.assertEqual(router.role, MeshRole.ROUTER)
        self.assertIsNone(router.mac_address)

    def test_unreachable_node_offline(self):
        snapshot = TopologySnapshot(
            main_unit=MainUnitIdentity("RT-AX86U", "192.168.1.1", "04:42:1A:00:00:01"),
            aimesh_nodes=[
                MeshMember("04:42:1A:00:00:01", "192.168.1.1"),
                MeshMember("04:42:1A:00:00:03", "192.168.1.3"),
            ],
            unreachable_nodes=["192.168.1.3"],
        )
        nodes = fuse(snapshot).mesh_nodes
        self.assertEqual([n.role for n in nodes], [MeshRole.ROUTER, MeshRole.NODE])
        self.assertEqual(nodes[1].status, NodeStatus.OFFLINE)
        self.assertEqual(nodes[1].name, "AiMesh-00:03")


def test_reference_topology(snapshot, now):
    result = DeviceFusionEngine().fuse(snapshot, now)
    by_mac = {d.mac_address: d for d in result.devices}

    assert sorted(by_mac) == [d.mac_address for d in result.devices]
    assert set(by_mac) == {
        "02:00:00:00:00:AA",
        "11:22:33:44:55:66",
        "AA:BB:CC:DD:EE:FF",
        "B8:27:EB:00:00:01",
        "DE:AD:BE:EF:00:01",
    }

    tv = by_mac["02:00:00:00:00:AA"]
    assert tv.aimesh_node_mac == "04:42:1A:00:00:02"
    assert tv.connection_type == ConnectionType.WIFI_5
    assert tv.device_type == DeviceType.TV

    phone = by_mac["AA:BB:CC:DD:EE:FF"]
    assert phone.aimesh_node == "RT-AX86U"
    assert phone.connection_type == ConnectionType.WIFI_24
    assert phone.device_type == DeviceType.PHONE

    assert by_mac["11:22:33:44:55:66"].name == "Device-55:66"
    assert by_mac["B8:27:EB:00:00:01"].connection_type == ConnectionType.ETHERNET
    assert by_mac["B8:27:EB:00:00:01"].device_type == DeviceType.RASPBERRY_PI
    assert by_mac["DE:AD:BE:EF:00:01"].is_online is False

    router, node = result.mesh_nodes
    assert router.id == "04:42:1A:00:00:01"
    assert router.connected_device_count == 2
    assert router.firmware_version == "3.0.0.4.388_22525"
    assert node.connected_device_count == 1


def test_fusion_is_idempotent(snapshot, now):
    engine = DeviceFusionEngine()
    assert engine.fuse(snapshot, now) == engine.fuse(snapshot, now)


@pytest.mark.parametrize("seed", [1, 7, 42])
def test_fusion_ignores_line_order(snapshot, now, seed):
    rng = random.Random(seed)
    shuffled = TopologySnapshot(
        dhcp_clients=rng.sample(snapshot.dhcp_clients, len(snapshot.dhcp_clients)),
        wireless_clients=rng.sample(snapshot.wireless_clients, len(snapshot.wireless_clients)),
        wired_clients=rng.sample(snapshot.wired_clients, len(snapshot.wired_clients)),
        aimesh_nodes=rng.sample(snapshot.aimesh_nodes, len(snapshot.aimesh_nodes)),
        node_devices=snapshot.node_devices,
        main_unit=snapshot.main_unit,
    )
    engine = DeviceFusionEngine()
    assert engine.fuse(shuffled, now) == engine.fuse(snapshot, now)
