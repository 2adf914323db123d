"""
otkit.core.values - Typed attribute values shared by every OTLP signal.

This module holds the value model produced by the decoder and consumed by
the query engine and the formatter. All classes are immutable.

Classes:
    ValueKind: Enumeration of the AnyValue variants
    AnyValue: Tagged union over string, bool, int, double, bytes, array and kvlist
    KeyValue: A single attribute (key plus AnyValue)
    Attributes: Ordered attribute list that preserves duplicate keys
    Resource: Entity producing the telemetry
    InstrumentationScope: Identity of the instrumentation library
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple


class ValueKind(Enum):
    """Variants of an AnyValue, one per oneof member of the wire message."""
    EMPTY = "empty"
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    DOUBLE = "double"
    BYTES = "bytes"
    ARRAY = "array"
    KVLIST = "kvlist"


_NUMERIC_KINDS = (ValueKind.INT, ValueKind.DOUBLE)


@dataclass(frozen=True)
class AnyValue:
    """A dynamically typed attribute value.

    The payload type depends on ``kind``:

    - STRING: str
    - BOOL: bool
    - INT: int (signed 64-bit)
    - DOUBLE: float
    - BYTES: bytes
    - ARRAY: tuple of AnyValue
    - KVLIST: tuple of KeyValue
    - EMPTY: None (no oneof member was set on the wire)

    Attributes:
        kind: The variant tag
        value: The variant payload
    """
    kind: ValueKind = ValueKind.EMPTY
    value: Any = None

    @classmethod
    def of(cls, value: Any) -> AnyValue:
        """Build an AnyValue from a plain Python object.

        Lists and tuples become arrays, mappings become key-value lists.

        Raises:
            TypeError: If the object has no AnyValue counterpart
        """
        if value is None:
            return cls()
        if isinstance(value, AnyValue):
            return value
        # bool first: bool is a subclass of int
        if isinstance(value, bool):
            return cls(ValueKind.BOOL, value)
        if isinstance(value, int):
            return cls(ValueKind.INT, value)
        if isinstance(value, float):
            return cls(ValueKind.DOUBLE, value)
        if isinstance(value, str):
            return cls(ValueKind.STRING, value)
        if isinstance(value, (bytes, bytearray)):
            return cls(ValueKind.BYTES, bytes(value))
        if isinstance(value, (list, tuple)):
            return cls(ValueKind.ARRAY, tuple(cls.of(item) for item in value))
        if isinstance(value, Mapping):
            return cls(
                ValueKind.KVLIST,
                tuple(KeyValue(str(k), cls.of(v)) for k, v in value.items()),
            )
        raise TypeError(f"Unsupported attribute value type: {type(value).__name__}")

    @property
    def is_empty(self) -> bool:
        return self.kind is ValueKind.EMPTY

    @property
    def is_numeric(self) -> bool:
        """True for INT and DOUBLE values. Booleans are not numeric."""
        return self.kind in _NUMERIC_KINDS

    def as_str(self) -> Optional[str]:
        return self.value if self.kind is ValueKind.STRING else None

    def as_bool(self) -> Optional[bool]:
        return self.value if self.kind is ValueKind.BOOL else None

    def as_int(self) -> Optional[int]:
        return self.value if self.kind is ValueKind.INT else None

    def as_float(self) -> Optional[float]:
        """Get the value as a float. INT values are widened."""
        if self.kind is ValueKind.DOUBLE:
            return self.value
        if self.kind is ValueKind.INT:
            return float(self.value)
        return None

    def as_bytes(self) -> Optional[bytes]:
        return self.value if self.kind is ValueKind.BYTES else None

    def as_array(self) -> Optional[Tuple[AnyValue, ...]]:
        return self.value if self.kind is ValueKind.ARRAY else None

    def as_kvlist(self) -> Optional[Tuple[KeyValue, ...]]:
        return self.value if self.kind is ValueKind.KVLIST else None

    def to_python(self) -> Any:
        """Convert to plain Python objects.

        Bytes become lowercase hex strings, arrays become lists and
        key-value lists become dicts (last duplicate key wins).
        """
        if self.kind is ValueKind.BYTES:
            return self.value.hex()
        if self.kind is ValueKind.ARRAY:
            return [item.to_python() for item in self.value]
        if self.kind is ValueKind.KVLIST:
            return {kv.key: kv.value.to_python() for kv in self.value}
        return self.value


@dataclass(frozen=True)
class KeyValue:
    """A single attribute."""
    key: str
    value: AnyValue = field(default_factory=AnyValue)


@dataclass(frozen=True)
class Attributes:
    """Ordered attribute list as found on the wire.

    Duplicate keys are kept in arrival order. Lookups by key resolve
    duplicates with last-wins semantics; ``get_all`` exposes every entry.

    Example:
        >>> attrs = Attributes.of({"http.method": "GET"})
        >>> attrs.get("http.method").as_str()
        'GET'
    """
    items: Tuple[KeyValue, ...] = ()

    @classmethod
    def of(cls, mapping: Mapping[str, Any]) -> Attributes:
        return cls(tuple(KeyValue(key, AnyValue.of(value)) for key, value in mapping.items()))

    def __iter__(self) -> Iterator[KeyValue]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)

    def get(self, key: str) -> Optional[AnyValue]:
        """Get the value for a key, the last occurrence winning."""
        for kv in reversed(self.items):
            if kv.key == key:
                return kv.value
        return None

    def get_all(self, key: str) -> List[AnyValue]:
        """Get every value recorded for a key, in arrival order."""
        return [kv.value for kv in self.items if kv.key == key]

    def has(self, key: str) -> bool:
        return any(kv.key == key for kv in self.items)

    def keys(self) -> List[str]:
        """Distinct keys in first-seen order."""
        seen: Dict[str, None] = {}
        for kv in self.items:
            seen.setdefault(kv.key, None)
        return list(seen)

    def to_dict(self) -> Dict[str, Any]:
        return {kv.key: kv.value.to_python() for kv in self.items}


@dataclass(frozen=True)
class Resource:
    """Attributes describing the entity producing telemetry.

    Attributes:
        attributes: Resource attributes (service.name and friends)
        dropped_attributes_count: Attributes discarded by the producer
    """
    attributes: Attributes = field(default_factory=Attributes)
    dropped_attributes_count: int = 0

    @property
    def service_name(self) -> Optional[str]:
        value = self.attributes.get("service.name")
        return value.as_str() if value is not None else None


@dataclass(frozen=True)
class InstrumentationScope:
    """Identity of an instrumentation library within a resource."""
    name: str = ""
    version: str = ""
    attributes: Attributes = field(default_factory=Attributes)
    dropped_attributes_count: int = 0
