"""Self-describing property values.

A :class:`Value` is a closed tagged union: the :class:`ValueKind` is fixed at
construction and the payload is stored in an immutable form (tuples, bytes,
read-only mappings), so values can be shared between settings safely.

Boxed kinds (string, string list, byte array, list, map) accept a ``None``
payload meaning "unset". Scalars always carry a concrete payload.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import Any

from netprofile.domain.errors import MalformedValue

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1


class ValueKind(IntEnum):
    """Value tags. The integer is the fixed ordinal used to order mixed kinds."""

    BOOL = 1
    INT64 = 2
    UINT64 = 3
    DOUBLE = 4
    STRING = 5
    STRING_LIST = 6
    BYTE_ARRAY = 7
    LIST = 8
    MAP = 9
    NESTED = 10
    STRUCT = 11  # reserved: no ordering is defined

    @property
    def nullable(self) -> bool:
        """Whether a ``None`` payload ("unset") is representable."""
        return self in _NULLABLE_KINDS


_NULLABLE_KINDS = frozenset(
    {
        ValueKind.STRING,
        ValueKind.STRING_LIST,
        ValueKind.BYTE_ARRAY,
        ValueKind.LIST,
        ValueKind.MAP,
    }
)


@dataclass(frozen=True)
class Value:
    """A tagged value. Build instances through the classmethod constructors."""

    kind: ValueKind
    payload: Any

    # --- constructors -------------------------------------------------

    @classmethod
    def boolean(cls, raw: bool) -> Value:
        if not isinstance(raw, bool):
            raise MalformedValue(f"expected bool, got {type(raw).__name__}")
        return cls(ValueKind.BOOL, raw)

    @classmethod
    def int64(cls, raw: int) -> Value:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise MalformedValue(f"expected int, got {type(raw).__name__}")
        if not INT64_MIN <= raw <= INT64_MAX:
            raise MalformedValue(f"{raw} is out of range for a signed 64-bit integer")
        return cls(ValueKind.INT64, raw)

    @classmethod
    def uint64(cls, raw: int) -> Value:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise MalformedValue(f"expected int, got {type(raw).__name__}")
        if not 0 <= raw <= UINT64_MAX:
            raise MalformedValue(f"{raw} is out of range for an unsigned 64-bit integer")
        return cls(ValueKind.UINT64, raw)

    @classmethod
    def double(cls, raw: float) -> Value:
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise MalformedValue(f"expected float, got {type(raw).__name__}")
        return cls(ValueKind.DOUBLE, float(raw))

    @classmethod
    def string(cls, raw: str | None) -> Value:
        if raw is not None and not isinstance(raw, str):
            raise MalformedValue(f"expected str, got {type(raw).__name__}")
        return cls(ValueKind.STRING, raw)

    @classmethod
    def string_list(cls, raw: Sequence[str] | None) -> Value:
        if raw is None:
            return cls(ValueKind.STRING_LIST, None)
        if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
            raise MalformedValue(f"expected a sequence of str, got {type(raw).__name__}")
        items = tuple(raw)
        for item in items:
            if not isinstance(item, str):
                raise MalformedValue(f"string list item must be str, got {type(item).__name__}")
        return cls(ValueKind.STRING_LIST, items)

    @classmethod
    def byte_array(cls, raw: bytes | bytearray | Sequence[int] | None) -> Value:
        if raw is None:
            return cls(ValueKind.BYTE_ARRAY, None)
        if isinstance(raw, (bytes, bytearray, memoryview)):
            return cls(ValueKind.BYTE_ARRAY, bytes(raw))
        if isinstance(raw, str) or not isinstance(raw, Sequence):
            raise MalformedValue(f"expected bytes, got {type(raw).__name__}")
        try:
            return cls(ValueKind.BYTE_ARRAY, bytes(raw))
        except (TypeError, ValueError) as exc:
            raise MalformedValue(f"invalid byte array: {exc}") from exc

    @classmethod
    def list(cls, raw: Sequence[Value] | None) -> Value:
        if raw is None:
            return cls(ValueKind.LIST, None)
        if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
            raise MalformedValue(f"expected a sequence of values, got {type(raw).__name__}")
        items = tuple(raw)
        for item in items:
            if not isinstance(item, Value):
                raise MalformedValue(f"list item must be a Value, got {type(item).__name__}")
        return cls(ValueKind.LIST, items)

    @classmethod
    def map(cls, raw: Mapping[str, Value] | None) -> Value:
        if raw is None:
            return cls(ValueKind.MAP, None)
        if not isinstance(raw, Mapping):
            raise MalformedValue(f"expected a mapping, got {type(raw).__name__}")
        entries: dict[str, Value] = {}
        for key, item in raw.items():
            if not isinstance(key, str):
                raise MalformedValue(f"map keys must be str, got {type(key).__name__}")
            if not isinstance(item, Value):
                raise MalformedValue(f"map entry {key!r} must be a Value, got {type(item).__name__}")
            entries[key] = item
        return cls(ValueKind.MAP, MappingProxyType(entries))

    @classmethod
    def nested(cls, inner: Value) -> Value:
        if not isinstance(inner, Value):
            raise MalformedValue(f"nested payload must be a Value, got {type(inner).__name__}")
        return cls(ValueKind.NESTED, inner)

    @classmethod
    def struct(cls, fields: Sequence[Value]) -> Value:
        items = tuple(fields)
        for item in items:
            if not isinstance(item, Value):
                raise MalformedValue(f"struct field must be a Value, got {type(item).__name__}")
        return cls(ValueKind.STRUCT, items)

    @classmethod
    def empty(cls, kind: ValueKind) -> Value:
        """Return the empty/default value of *kind*."""
        if kind.nullable:
            return cls(kind, None)
        if kind is ValueKind.BOOL:
            return cls(kind, False)
        if kind in (ValueKind.INT64, ValueKind.UINT64):
            return cls(kind, 0)
        if kind is ValueKind.DOUBLE:
            return cls(kind, 0.0)
        if kind is ValueKind.NESTED:
            return cls(kind, cls.string(None))
        return cls(kind, ())

    # --- conversion ---------------------------------------------------

    @classmethod
    def coerce(cls, kind: ValueKind, raw: Any) -> Value:
        """Return *raw* as a Value of *kind*.

        Accepts an existing Value of the same kind unchanged, or a plain
        Python object that the kind's constructor accepts.

        Raises:
            MalformedValue: If *raw* is a Value of another kind or cannot be
                converted.
        """
        if isinstance(raw, Value):
            if raw.kind is not kind:
                raise MalformedValue(f"expected {kind.name.lower()}, got {raw.kind.name.lower()}")
            return raw
        if raw is None and not kind.nullable:
            raise MalformedValue(f"{kind.name.lower()} cannot be unset")
        if kind is ValueKind.NESTED:
            return cls.nested(cls.from_python(raw))
        if kind in (ValueKind.LIST, ValueKind.STRUCT) and _is_sequence(raw):
            items = [cls.from_python(item) for item in raw]
            return cls.struct(items) if kind is ValueKind.STRUCT else cls.list(items)
        if kind is ValueKind.MAP and isinstance(raw, Mapping):
            raw = {key: cls.from_python(item) for key, item in raw.items()}
        if kind is ValueKind.STRUCT:
            raise MalformedValue(f"expected a sequence of fields, got {type(raw).__name__}")
        return _CONSTRUCTORS[kind](raw)

    @classmethod
    def from_python(cls, raw: Any) -> Value:
        """Infer a Value from a plain Python object.

        ``int`` maps to INT64 (UINT64 only above the signed range), lists of
        strings to STRING_LIST, other sequences to LIST, mappings to MAP.
        """
        if isinstance(raw, Value):
            return raw
        if isinstance(raw, bool):
            return cls.boolean(raw)
        if isinstance(raw, int):
            return cls.uint64(raw) if raw > INT64_MAX else cls.int64(raw)
        if isinstance(raw, float):
            return cls.double(raw)
        if isinstance(raw, str):
            return cls.string(raw)
        if isinstance(raw, (bytes, bytearray, memoryview)):
            return cls.byte_array(raw)
        if isinstance(raw, Mapping):
            return cls.map({key: cls.from_python(item) for key, item in raw.items()})
        if isinstance(raw, Sequence):
            if raw and all(isinstance(item, str) for item in raw):
                return cls.string_list(raw)
            return cls.list([cls.from_python(item) for item in raw])
        raise MalformedValue(f"cannot represent {type(raw).__name__} as a value")

    def to_python(self) -> Any:
        """Render the payload as plain Python objects (lists, dicts, bytes)."""
        if self.payload is None:
            return None
        if self.kind is ValueKind.STRING_LIST:
            return list(self.payload)
        if self.kind in (ValueKind.LIST, ValueKind.STRUCT):
            return [item.to_python() for item in self.payload]
        if self.kind is ValueKind.MAP:
            return {key: item.to_python() for key, item in self.payload.items()}
        if self.kind is ValueKind.NESTED:
            return self.payload.to_python()
        return self.payload

    def is_empty(self) -> bool:
        """Whether the value is unset or an empty string/container."""
        if self.payload is None:
            return True
        if self.kind is ValueKind.NESTED:
            return self.payload.is_empty()
        if self.kind in (ValueKind.BOOL, ValueKind.INT64, ValueKind.UINT64):
            return False
        if self.kind is ValueKind.DOUBLE:
            return math.isnan(self.payload)
        return len(self.payload) == 0

    def __repr__(self) -> str:
        return f"Value.{self.kind.name.lower()}({self.to_python()!r})"


def _is_sequence(raw: Any) -> bool:
    return isinstance(raw, Sequence) and not isinstance(raw, (str, bytes, bytearray))


_CONSTRUCTORS = {
    ValueKind.BOOL: Value.boolean,
    ValueKind.INT64: Value.int64,
    ValueKind.UINT64: Value.uint64,
    ValueKind.DOUBLE: Value.double,
    ValueKind.STRING: Value.string,
    ValueKind.STRING_LIST: Value.string_list,
    ValueKind.BYTE_ARRAY: Value.byte_array,
    ValueKind.LIST: Value.list,
    ValueKind.MAP: Value.map,
}
