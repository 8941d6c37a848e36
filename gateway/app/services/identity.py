from __future__ import annotations

import ipaddress
import string
from typing import Optional

_HEX_DIGITS = frozenset(string.hexdigits)
DEVICE_ID_LENGTH = 16


def is_valid_identity(token: object) -> bool:
    """A device identity is exactly 16 hexadecimal characters, any case."""
    if not isinstance(token, str) or len(token) != DEVICE_ID_LENGTH:
        return False
    return all(ch in _HEX_DIGITS for ch in token)


def canonical_ip(value: object) -> Optional[str]:
    """Return the compressed form of an IP literal, or None.

    IPv6 zone identifiers (``fe80::1%eth0``) are refused: the zone is local to
    the sender and would let one client mint unlimited identities.
    """
    if not isinstance(value, str):
        return None
    try:
        address = ipaddress.ip_address(value)
    except ValueError:
        return None
    if getattr(address, "scope_id", None):
        return None
    return str(address)


def is_valid_ip(value: object) -> bool:
    return canonical_ip(value) is not None


def normalize_identity(value: object, mode: str) -> Optional[str]:
    """Return the storage key for ``value`` under ``mode``, or None if invalid."""
    if mode == "ip":
        return canonical_ip(value)
    return value if is_valid_identity(value) else None


def validate_identity(value: object, mode: str) -> bool:
    """Validate an identity for the configured identity mode ('device' or 'ip')."""
    return normalize_identity(value, mode) is not None
