from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Tuple, Union

from shared.message import DecodeError
from shared.protocol import GTID_FIELDS
from shared.utils import format_gtid

from .schema import SchemaRegistry


@dataclass(frozen=True)
class Row:
    """
    One data event, frozen together with the field names and types that
    were active when it was decoded. A later schema announcement never
    changes a Row that was already returned.
    """
    names: Tuple[str, ...]
    types: Tuple[str, ...]
    values: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not len(self.values) == len(self.names) == len(self.types):
            raise ValueError("values, names and types must have the same length")

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(zip(self.names, self.values))

    def __getitem__(self, key: Union[int, str]) -> str:
        return self.value(key)

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def field_count(self) -> int:
        return len(self.values)

    def value(self, key: Union[int, str]) -> str:
        """Value by position or by field name; raises KeyError for an unknown name."""
        if isinstance(key, int):
            return self.values[key]
        try:
            return self.values[self.names.index(key)]
        except ValueError:
            raise KeyError(key) from None

    def key(self, index: int) -> str:
        return self.names[index]

    def type(self, index: int) -> str:
        return self.types[index]

    def keys(self) -> Tuple[str, ...]:
        return self.names

    def as_dict(self) -> Dict[str, str]:
        return dict(zip(self.names, self.values))

    def has_gtid(self) -> bool:
        return all(name in self.names for name in GTID_FIELDS)

    def gtid(self) -> str:
        """GTID of the event in 'domain-server_id-sequence' form"""
        return format_gtid({name: self.value(name) for name in GTID_FIELDS})


def json_to_string(value: Any) -> str:
    """Text form of a JSON scalar; null, objects and arrays become ''."""
    if isinstance(value, str):
        return value
    # bool before int: True/False are ints in Python
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def build_row(data: Dict[str, Any], schema: SchemaRegistry) -> Row:
    """
    Materialize a data event against the active schema.

    Every schema field must be present in ``data``; otherwise no Row is
    produced and the missing field is named in the DecodeError. Before any
    schema has been announced the Row has no fields.
    """
    values = []
    for name in schema.names:
        if name not in data:
            raise DecodeError(f"No value for key found: {name}")
        values.append(json_to_string(data[name]))

    return Row(names=schema.names, types=schema.types, values=tuple(values))
