from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from shared.message import DecodeError, is_schema_message
from shared.protocol import NON_STRING_TYPE, UNDEFINED_TYPE


def field_name(entry: Dict[str, Any]) -> str:
    """Name of a schema field; missing names fall back to an empty string."""
    name = entry.get("name")
    if name is None:
        return ""
    if not isinstance(name, str):
        raise DecodeError(f"Schema field name must be a string, got {name!r}")
    return name


def field_type(entry: Dict[str, Any]) -> str:
    """
    SQL type of a schema field.

    real_type wins when present, else a string Avro "type" is used as-is.
    A non-string "type" (Avro unions and records) maps to char(50); a field
    with neither key is "undefined".
    """
    if "real_type" in entry:
        value = entry["real_type"]
    elif "type" in entry:
        value = entry["type"]
    else:
        return UNDEFINED_TYPE
    return value if isinstance(value, str) else NON_STRING_TYPE


@dataclass
class SchemaRegistry:
    """Ordered field names and types of the most recent schema announcement"""
    names: Tuple[str, ...] = ()
    types: Tuple[str, ...] = ()
    raw: str = ""
    version: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        if len(self.names) != len(self.types):
            raise ValueError("names and types must have the same length")

    def __len__(self) -> int:
        return len(self.names)

    def fields(self) -> Dict[str, str]:
        return dict(zip(self.names, self.types))

    def type_of(self, name: str) -> Optional[str]:
        return self.fields().get(name)

    def replace(self, data: Dict[str, Any], raw: str = "") -> None:
        """
        Replace the active schema with the one announced in ``data``.

        The replacement is total: nothing from the previous schema is kept.
        The new field lists are fully built before anything is swapped, so a
        failure leaves the registry untouched.
        """
        if not is_schema_message(data):
            raise DecodeError("Message is not a schema announcement")

        names: List[str] = []
        types: List[str] = []
        for entry in data["fields"]:
            if not isinstance(entry, dict):
                raise DecodeError(f"Schema field must be an object, got {entry!r}")
            names.append(field_name(entry))
            types.append(field_type(entry))

        self.names = tuple(names)
        self.types = tuple(types)
        self.raw = raw
        self.version += 1
