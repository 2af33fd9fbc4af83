"""
MAC address helpers shared by the parsers and the fusion engine.
"""

import re
from typing import Optional

_NON_HEX = re.compile(r'[^0-9a-fA-F]')


def normalize_mac(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a MAC address to the canonical ``AA:BB:CC:DD:EE:FF`` form.

    Separators of any style (``:``, ``-``, ``.``, spaces) are stripped first.
    Anything that does not leave exactly 12 hex digits is rejected.

    Args:
        raw: MAC address as printed by the router

    Returns:
        Canonical MAC, or None when the input is not a valid MAC
    """
    if not raw:
        return None

    # Reject tokens carrying letters outside the hex range (e.g. "N/A", "lladdr")
    stripped = re.sub(r'[\s:\-.]', '', raw)
    if _NON_HEX.search(stripped):
        return None
    if len(stripped) != 12:
        return None

    digits = stripped.upper()
    return ":".join(digits[i:i + 2] for i in range(0, 12, 2))


def is_valid_mac(raw: Optional[str]) -> bool:
    return normalize_mac(raw) is not None


def mac_suffix(mac: str, length: int = 5) -> str:
    """Return the tail of a canonical MAC, used for synthesized names."""
    return mac[-length:]


def mac_oui(mac: str) -> str:
    """Return the vendor prefix (first three octets) of a canonical MAC."""
    return mac[:8]
