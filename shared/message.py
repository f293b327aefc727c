from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict
import json


class CDCError(Exception):
    """Base class for every failure the connector reports."""
    pass
class AddressError(CDCError):
    """Raised when the target address cannot be parsed."""
    pass
class SocketError(CDCError):
    """Raised when the socket cannot be created, connected or made non-blocking."""
    pass
class CDCIOError(CDCError):
    """Raised on a fatal read, write or readiness-wait failure."""
    pass
class ConnectionClosedError(CDCIOError):
    """Raised when the peer closes the socket while data is expected."""
    pass
class CDCTimeoutError(CDCError):
    """Raised when no data arrives within the configured timeout."""
    pass
class AuthenticationError(CDCError):
    """Raised when the server rejects the credentials."""
    pass
class RegistrationError(CDCError):
    """Raised when the server rejects the connector registration."""
    pass
class ServerProtocolError(CDCError):
    """Raised when the server sends an in-band ERR line."""
    pass
class DecodeError(CDCError):
    """Raised on malformed JSON or a data event that does not match the schema."""
    pass
class ConnectionStateError(CDCError):
    """Raised when an operation is not valid in the current connection state."""
    pass


class MessageKind(str, Enum):
    SCHEMA = "schema"
    ROW = "row"


def _reject_constant(name: str) -> Any:
    # NaN, Infinity and -Infinity are not JSON
    raise ValueError(f"invalid literal {name}")


def is_schema_message(data: Any) -> bool:
    """
    A message announces a schema iff it has a "fields" key holding a
    non-empty array whose first element has a "name" key.
    """
    if not isinstance(data, dict):
        return False
    fields = data.get("fields")
    if not isinstance(fields, list) or not fields:
        return False
    first = fields[0]
    return isinstance(first, dict) and "name" in first


@dataclass(frozen=True)
class Message:
    """
    One decoded stream line:
    {"fields": [{"name": ..., "real_type" | "type": ...}, ...]}   (schema)
    {"domain": ..., "server_id": ..., "sequence": ..., <field>: ...}  (row)

    raw keeps the line text so the latest schema can be handed back verbatim.
    """
    kind: MessageKind
    raw: str
    data: Dict[str, Any]

    @property
    def is_schema(self) -> bool:
        return self.kind is MessageKind.SCHEMA

    @classmethod
    def from_line(cls, line: bytes) -> 'Message':
        """Parse one stream line into a classified Message"""
        try:
            text = line.decode("utf-8")
            data = json.loads(text, parse_constant=_reject_constant)
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"Failed to parse JSON: {e}")

        if not isinstance(data, dict):
            raise DecodeError(f"Failed to parse JSON: expected an object, got {type(data).__name__}")

        kind = MessageKind.SCHEMA if is_schema_message(data) else MessageKind.ROW
        return cls(kind=kind, raw=text, data=data)
