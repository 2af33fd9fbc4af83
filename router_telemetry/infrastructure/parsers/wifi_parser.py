import logging

from router_telemetry.domain.entities.device import SecurityMode, WifiInventory, WifiNetwork
from router_telemetry.domain.errors import ParseSkip
from router_telemetry.infrastructure.parsers.base import OutputParser, parse_lines
from router_telemetry.infrastructure.parsers.topology_parser import resolve_band
from router_telemetry.utils.coercion import to_flag, to_int, to_text

logger = logging.getLogger(__name__)

_NET_FIELDS = 11


def security_from_akm(akm: str, wep: str = "0") -> SecurityMode:
    """
    Map nvram ``akm`` / ``wep_x`` values to a security mode.

    The strongest mode advertised wins, so a WPA2/WPA3 transition
    network reports WPA3.
    """
    tokens = (akm or "").lower().split()
    if "sae" in tokens:
        return SecurityMode.WPA3
    if "psk2" in tokens or "wpa2" in tokens:
        return SecurityMode.WPA2
    if "psk" in tokens or "wpa" in tokens:
        return SecurityMode.WPA
    if (wep or "0").strip() not in ("", "0"):
        return SecurityMode.WEP
    return SecurityMode.OPEN


def parse_network_line(line: str) -> WifiNetwork:
    if not line.startswith("NET|"):
        raise ParseSkip(line, "not a network line")
    fields = line.split("|", _NET_FIELDS - 1)
    if len(fields) < _NET_FIELDS:
        raise ParseSkip(line, "network line has missing fields")

    _, unit_if, ifname, nband, enabled, channel, akm, wep, state, clients, ssid = fields
    if not ssid.strip():
        raise ParseSkip(line, "network has no SSID")

    unit = unit_if.split(".", 1)[0]
    band = resolve_band(unit, nband)
    if band is None:
        raise ParseSkip(line, f"unknown band for {unit_if}")

    return WifiNetwork(
        ssid=ssid.strip(),
        band=band,
        channel=to_int(channel),
        is_enabled=to_flag(enabled) and state.strip() == "up",
        security_mode=security_from_akm(akm, wep),
        is_guest="." in unit_if,
        connected_device_count=to_int(clients, 0),
        interface=to_text(ifname),
    )


class WifiInventoryParser(OutputParser[WifiInventory]):
    facet = "wifi"

    def parse(self, output: str) -> WifiInventory:
        lines = [l.strip() for l in output.splitlines() if l.strip()]
        inventory = WifiInventory(
            networks=parse_lines((l for l in lines if l.startswith("NET|")), parse_network_line, self.facet)
        )

        count_line = next((l for l in lines if l.startswith("COUNT|")), None)
        if count_line is not None:
            parts = count_line.split("|")
            inventory.active_interface_count = to_int(parts[1] if len(parts) > 1 else None, 0)
            inventory.active_guest_count = to_int(parts[2] if len(parts) > 2 else None, 0)
        else:
            logger.warning("WiFi inventory output had no COUNT line, deriving counts from networks")
            inventory.active_interface_count = sum(1 for n in inventory.networks if n.is_enabled)
            inventory.active_guest_count = sum(1 for n in inventory.networks if n.is_enabled and n.is_guest)
        return inventory
