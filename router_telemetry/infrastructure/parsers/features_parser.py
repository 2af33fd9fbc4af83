from typing import Dict, List, Optional

from router_telemetry.domain.entities.device import RouterFeatures
from router_telemetry.infrastructure.parsers.base import OutputParser
from router_telemetry.infrastructure.parsers.topology_parser import resolve_band
from router_telemetry.utils.coercion import to_flag, to_int, to_text
from router_telemetry.utils.mac import normalize_mac

_FEATURE_FIELDS = 11

QOS_MODES = {
    "0": "traditional",
    "1": "adaptive",
    "2": "bandwidth-limiter",
    "3": "geforce-now",
}


def parse_band_clients(raw: str) -> Dict[str, int]:
    """``2:4,1:7`` -> ``{"2.4GHz": 4, "5GHz": 7}``; ``u<unit>`` keys fall back to the radio unit."""
    counts: Dict[str, int] = {}
    for pair in (raw or "").split(","):
        key, sep, value = pair.strip().partition(":")
        if not sep:
            continue
        if key.startswith("u"):
            band = resolve_band(f"wl{key[1:]}", None)
        else:
            band = resolve_band(None, key)
        if band is None:
            continue
        counts[band] = counts.get(band, 0) + to_int(value, 0)
    return counts


def parse_peers(raw: str, own_mac: Optional[str]) -> List[str]:
    """Canonical peer MACs, excluding the router's own LAN MAC, in first-seen order."""
    own = normalize_mac(own_mac)
    peers: List[str] = []
    for token in (raw or "").split():
        mac = normalize_mac(token)
        if mac and mac != own and mac not in peers:
            peers.append(mac)
    return peers


class RouterFeaturesParser(OutputParser[Optional[RouterFeatures]]):
    facet = "features"

    def parse(self, output: str) -> Optional[RouterFeatures]:
        line = next((l.strip() for l in output.splitlines() if "|" in l), None)
        if line is None:
            return None
        fields = line.split("|")
        fields += [""] * (_FEATURE_FIELDS - len(fields))

        (qos_enable, qos_type, protect, malware, vprot, vpn_enable, vpn_mode,
         cfg_master, lan_mac, band_clients, peers_raw) = fields[:_FEATURE_FIELDS]

        qos_type = (qos_type or "").strip()
        band_counts = parse_band_clients(band_clients)
        peers = parse_peers(peers_raw, lan_mac)

        # Standalone routers leave cfg_master unset
        is_master = True if not cfg_master.strip() else to_flag(cfg_master)

        return RouterFeatures(
            adaptive_qos_enabled=to_flag(qos_enable),
            qos_mode=QOS_MODES.get(qos_type, to_text(qos_type)),
            ai_protection_enabled=to_flag(protect),
            malware_blocking=to_flag(malware),
            vulnerability_protection=to_flag(vprot),
            vpn_server_enabled=to_flag(vpn_enable),
            vpn_protocol=to_text(vpn_mode),
            aimesh_is_master=is_master,
            aimesh_node_count=len(peers),
            aimesh_peers=peers,
            wireless_clients_24ghz=band_counts.get("2.4GHz", 0),
            wireless_clients_5ghz=band_counts.get("5GHz", 0),
            wireless_clients_6ghz=band_counts.get("6GHz", 0),
            wireless_clients_total=sum(band_counts.values()),
        )
