from __future__ import annotations

from enum import Enum


CDC_CONNECTOR_ID = "CDC_CONNECTOR"
CDC_CONNECTOR_VERSION = "1.0.0"

# Acknowledgment sent by the server after both handshake steps
OK_RESPONSE = b"OK\n"

# In-band error marker at the start of a stream line
ERROR_PREFIX = b"ERR"

LINE_TERMINATOR = b"\n"

READBUF_SIZE = 1024


class OutputFormat(str, Enum):
    """Stream encodings a connector may register for."""

    JSON = "JSON"


class Command(str, Enum):
    """Client-to-server commands, sent without a line terminator."""

    REGISTER = "REGISTER"
    REQUEST_DATA = "REQUEST-DATA"
    CLOSE = "CLOSE"

    @classmethod
    def from_string(cls, value: str) -> Command:
        """Convert string to Command enum, raise ValueError if unknown."""
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown command: {value}")


def register_message(fmt: OutputFormat = OutputFormat.JSON) -> bytes:
    """REGISTER UUID=<connector-id>-<version>, TYPE=<format>"""
    return f"{Command.REGISTER.value} UUID={CDC_CONNECTOR_ID}-{CDC_CONNECTOR_VERSION}, TYPE={fmt.value}".encode()


def request_message(table: str, gtid: str = "") -> bytes:
    msg = f"{Command.REQUEST_DATA.value} {table}"
    if gtid:
        msg += f" {gtid}"
    return msg.encode()


def close_message() -> bytes:
    return Command.CLOSE.value.encode()


# Well-known columns present in every data event
GTID_FIELDS = ("domain", "server_id", "sequence")

# Fallback type names used when a schema field has no usable SQL type
NON_STRING_TYPE = "char(50)"
UNDEFINED_TYPE = "undefined"