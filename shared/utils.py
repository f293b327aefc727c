from __future__ import annotations
import re
import socket
from typing import Any, Mapping

# ========================================
#           INPUT VALIDATION HELPERS
# ========================================
"""
This section contains helper functions the connector calls
to decide whether user supplied addresses and GTID positions
are well formed before anything is written to the socket.
"""

# GTID positions are 'domain-server_id-sequence', all non-negative integers
_GTID_RE = re.compile(r'^\d+-\d+-\d+$')


def is_ipv4_address(s: str) -> bool:
    """
    Returns True if the string is an IPv4 address the socket layer accepts.

    Uses inet_aton, so the shorthand forms ('127.1') are accepted as well.
    """
    try:
        socket.inet_aton(s)
        return True
    except (OSError, TypeError, ValueError):
        return False


def is_port(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= 65535


def is_gtid(s: str) -> bool:
    """
    Returns True for a 'domain-server_id-sequence' triple, e.g. '0-1-5'.
    """
    return bool(_GTID_RE.fullmatch(s))


def format_gtid(values: Mapping[str, str]) -> str:
    """Join the domain, server_id and sequence columns of a row into a GTID."""
    return f"{values['domain']}-{values['server_id']}-{values['sequence']}"
