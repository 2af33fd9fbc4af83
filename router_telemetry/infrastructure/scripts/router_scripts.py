"""
Diagnostic shell scripts executed on the router.

These scripts are the wire contract between the collectors and the router:
every line they print is consumed by a parser in
``router_telemetry.infrastructure.parsers``. Scripts target the busybox
``ash`` shell shipped with Asuswrt / Merlin firmware.
"""

from collections import OrderedDict
from typing import Dict, Optional

SECTION_DHCP = "DHCP_LEASES"
SECTION_WIRELESS = "WIRELESS"
SECTION_NEIGHBORS = "NEIGHBORS"
SECTION_MAIN_UNIT = "MAIN_UNIT"
SECTION_MESH = "MESH_NODES"
SECTION_NODE_ASSOC = "NODE_ASSOC"
SECTION_END = "END"

LEASE_FILES = "/var/lib/misc/dnsmasq.leases /tmp/dnsmasq.leases /etc/dnsmasq.leases"
NODE_IDENTITY_FILE = "/jffs/.ssh/id_dropbear"


def section_marker(name: str) -> str:
    return f"==={name}==="


# One line per associated client: unit|ifname|nband|mac|rssi
WIRELESS_ASSOC_LOOP = (
    'for U in 0 1 2; do '
    'IFNAME=$(nvram get wl${U}_ifname); '
    '[ -n "$IFNAME" ] || continue; '
    'NBAND=$(nvram get wl${U}_nband); '
    'wl -i "$IFNAME" assoclist 2>/dev/null | while read -r _ MAC; do '
    '[ -n "$MAC" ] || continue; '
    'RSSI=$(wl -i "$IFNAME" rssi "$MAC" 2>/dev/null); '
    'echo "wl$U|$IFNAME|$NBAND|$MAC|${RSSI:-N/A}"; '
    'done; '
    'done'
)

# Prints the IPv4 address found in each cfg_clientlist entry
MESH_NODE_IPS = (
    "nvram get cfg_clientlist | tr '<' '\\n' | tr '>' ' ' | "
    "awk '{for (i = 1; i <= NF; i++) if ($i ~ /^[0-9]+\\.[0-9]+\\.[0-9]+\\.[0-9]+$/) {print $i; break}}'"
)


def dhcp_leases_command() -> str:
    return f"for F in {LEASE_FILES}; do [ -f \"$F\" ] && cat \"$F\" && break; done"


def wireless_command() -> str:
    return WIRELESS_ASSOC_LOOP


def neighbors_command(lan_interface: str = "br0") -> str:
    return f"ip neigh show 2>/dev/null | grep ' dev {lan_interface} '"


def main_unit_command() -> str:
    return (
        'echo "MODEL=$(nvram get productid)"; '
        'echo "FIRMWARE=$(nvram get firmver).$(nvram get buildno)"; '
        'echo "LAN_IP=$(nvram get lan_ipaddr)"; '
        'echo "LAN_MAC=$(nvram get lan_hwaddr)"; '
        "echo \"UPTIME=$(cut -d' ' -f1 /proc/uptime)\""
    )


def mesh_nodes_command() -> str:
    return "nvram get cfg_clientlist"


def node_associations_command(node_user: str = "admin") -> str:
    """
    Query each mesh node's association list through the router's dropbear client.

    A node that cannot be reached prints ``NODE_ERROR:<ip>`` instead of
    failing the whole script.
    """
    return (
        f'LAN_IP=$(nvram get lan_ipaddr); '
        f'for NODE in $({MESH_NODE_IPS}); do '
        f'[ "$NODE" = "$LAN_IP" ] && continue; '
        f'echo "NODE:$NODE"; '
        f"dbclient -y -i {NODE_IDENTITY_FILE} {node_user}@$NODE '{WIRELESS_ASSOC_LOOP}' 2>/dev/null "
        f'|| echo "NODE_ERROR:$NODE"; '
        f'done'
    )


def topology_sections(lan_interface: str = "br0", node_user: str = "admin") -> Dict[str, str]:
    """Section name -> command, in the order they appear in the composite script."""
    return OrderedDict([
        (SECTION_DHCP, dhcp_leases_command()),
        (SECTION_WIRELESS, wireless_command()),
        (SECTION_NEIGHBORS, neighbors_command(lan_interface)),
        (SECTION_MAIN_UNIT, main_unit_command()),
        (SECTION_MESH, mesh_nodes_command()),
        (SECTION_NODE_ASSOC, node_associations_command(node_user)),
    ])


def wrap_section(name: str, command: str) -> str:
    return f'echo "{section_marker(name)}"\n{{ {command} ; }} 2>/dev/null\n'


def topology_script(lan_interface: str = "br0", node_user: str = "admin") -> str:
    parts = [wrap_section(name, command)
             for name, command in topology_sections(lan_interface, node_user).items()]
    parts.append(f'echo "{section_marker(SECTION_END)}"\nexit 0\n')
    return "".join(parts)


def system_status_script() -> str:
    """Single pipe-separated line with the router vitals (memory and disk in kB)."""
    return (
        "MODEL=$(nvram get productid)\n"
        'FW="$(nvram get firmver).$(nvram get buildno)"\n'
        "IP=$(nvram get lan_ipaddr)\n"
        "UP=$(cut -d' ' -f1 /proc/uptime)\n"
        "CPU=$(top -bn1 2>/dev/null | grep -m1 '^CPU:' | awk '{gsub(\"%\", \"\", $8); print 100 - $8}')\n"
        "MEM=$(free | awk '/^Mem:/ {print $3\" \"$2}')\n"
        "TEMP=$(cat /sys/class/thermal/thermal_zone0/temp 2>/dev/null)\n"
        "DISK=$(df -k /jffs 2>/dev/null | awk 'NR==2 {print $3\" \"$2}')\n"
        "LOAD=$(cut -d' ' -f1-3 /proc/loadavg)\n"
        "CORES=$(grep -c ^processor /proc/cpuinfo)\n"
        "CPUMODEL=$(grep -m1 -iE '^(model name|Processor)' /proc/cpuinfo | cut -d: -f2- | sed 's/^ *//')\n"
        'echo "$MODEL|$FW|$IP|$UP|$CPU|${MEM% *}|${MEM#* }|$TEMP|${DISK% *}|${DISK#* }|$LOAD|$CORES|$CPUMODEL"\n'
    )


def wifi_inventory_script() -> str:
    """
    One ``NET|`` line per configured SSID plus a ``COUNT|`` line.

    The COUNT line counts interfaces whose live ``wl bss`` state is ``up``
    so that disabled or stale nvram entries are not reported as active.
    SSID is the last field because it may contain the separator.
    """
    return (
        "ACTIVE=0; GUEST=0\n"
        "for U in 0 1 2; do\n"
        "  NBAND=$(nvram get wl${U}_nband)\n"
        "  for IF in wl$U wl$U.1 wl$U.2 wl$U.3; do\n"
        "    SSID=$(nvram get ${IF}_ssid)\n"
        '    [ -n "$SSID" ] || continue\n'
        "    IFNAME=$(nvram get ${IF}_ifname)\n"
        '    [ -n "$IFNAME" ] || IFNAME=$IF\n'
        '    case "$IF" in\n'
        "      *.*) ENABLED=$(nvram get ${IF}_bss_enabled) ;;\n"
        "      *) ENABLED=$(nvram get ${IF}_radio) ;;\n"
        "    esac\n"
        "    CHANNEL=$(wl -i \"$IFNAME\" channel 2>/dev/null | awk '/current mac channel/ {print $4}')\n"
        '    [ -n "$CHANNEL" ] || CHANNEL=$(nvram get wl${U}_channel)\n'
        "    AKM=$(nvram get ${IF}_akm)\n"
        "    WEP=$(nvram get ${IF}_wep_x)\n"
        '    STATE=$(wl -i "$IFNAME" bss 2>/dev/null)\n'
        '    CLIENTS=$(wl -i "$IFNAME" assoclist 2>/dev/null | wc -l)\n'
        '    if [ "$STATE" = "up" ]; then\n'
        "      ACTIVE=$((ACTIVE + 1))\n"
        '      case "$IF" in *.*) GUEST=$((GUEST + 1)) ;; esac\n'
        "    fi\n"
        '    echo "NET|$IF|$IFNAME|$NBAND|$ENABLED|$CHANNEL|$AKM|$WEP|$STATE|$CLIENTS|$SSID"\n'
        "  done\n"
        "done\n"
        'echo "COUNT|$ACTIVE|$GUEST"\n'
    )


def bandwidth_script(wan_interface: Optional[str] = None) -> str:
    """``ifname|rx_bytes|tx_bytes`` for the WAN interface."""
    if wan_interface:
        select = f"IF={wan_interface}\n"
    else:
        select = 'IF=$(nvram get wan0_ifname)\n[ -n "$IF" ] || IF=eth0\n'
    return (
        select
        + 'echo "$IF|$(cat /sys/class/net/$IF/statistics/rx_bytes 2>/dev/null)'
          '|$(cat /sys/class/net/$IF/statistics/tx_bytes 2>/dev/null)"\n'
    )


def router_features_script() -> str:
    """
    Single line of vendor feature flags.

    Fields: qos_enable|qos_type|aiprotection|malware|vprot|vpn_enable|vpn_proto|
    cfg_master|lan_mac|band_clients|peers, where band_clients is a
    comma list of ``nband:count`` pairs from live association lists.
    """
    return (
        "CLIENTS=''\n"
        "for U in 0 1 2; do\n"
        "  IFNAME=$(nvram get wl${U}_ifname)\n"
        '  [ -n "$IFNAME" ] || continue\n'
        "  NBAND=$(nvram get wl${U}_nband)\n"
        '  N=$(wl -i "$IFNAME" assoclist 2>/dev/null | wc -l)\n'
        '  CLIENTS="$CLIENTS${CLIENTS:+,}${NBAND:-u$U}:$N"\n'
        "done\n"
        "PEERS=$(nvram get cfg_clientlist | tr '<' '\\n' | tr '>' ' ' | "
        "awk '{for (i = 1; i <= NF; i++) if (length($i) == 17 && $i ~ /^[0-9A-Fa-f][0-9A-Fa-f]:/) {printf \"%s \", $i; break}}')\n"
        'echo "$(nvram get qos_enable)|$(nvram get qos_type)|$(nvram get wrs_protect_enable)'
        '|$(nvram get wrs_mals_enable)|$(nvram get wrs_vp_enable)|$(nvram get VPNServer_enable)'
        '|$(nvram get VPNServer_mode)|$(nvram get cfg_master)|$(nvram get lan_hwaddr)|$CLIENTS|$PEERS"\n'
    )


def device_detail_script(mac: str, lan_interface: str = "br0") -> str:
    """
    Per-device probe: lease, live wireless association and neighbor state.

    Args:
        mac: Canonical MAC address (validated by the caller)
    """
    return (
        f'MAC="{mac}"\n'
        f'echo "{section_marker(SECTION_DHCP)}"\n'
        f"for F in {LEASE_FILES}; do [ -f \"$F\" ] && grep -i \"$MAC\" \"$F\" && break; done\n"
        f'echo "{section_marker(SECTION_WIRELESS)}"\n'
        f"{{ {WIRELESS_ASSOC_LOOP} ; }} 2>/dev/null | grep -i \"$MAC\"\n"
        f'echo "{section_marker(SECTION_NEIGHBORS)}"\n'
        f"ip neigh show 2>/dev/null | grep ' dev {lan_interface} ' | grep -i \"$MAC\"\n"
        f'echo "{section_marker(SECTION_END)}"\n'
        f"exit 0\n"
    )
