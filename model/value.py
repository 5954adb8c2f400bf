# model/value.py

"""
Value domain for fact fields and variable assignments.

A fact field holds one of five kinds of value: integers, floats, strings,
byte blobs and node identifiers. Python's own types carry the first four;
`NodeId` wraps the textual form of a node/principal identifier so that it
never compares equal to a plain string.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Tuple, Union


@dataclass(frozen=True, slots=True, order=True)
class NodeId:
    """Identifier of a protocol node (textual principal form)."""
    text: str

    def __str__(self) -> str:
        return self.text


Value = Union[int, float, str, bytes, NodeId]


class ValueType(Enum):
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    BYTES = "bytes"
    NODE_ID = "node_id"

    def __str__(self) -> str:
        return self.value


_TYPE_NAMES = {
    "int": ValueType.INT,
    "integer": ValueType.INT,
    "float": ValueType.FLOAT,
    "string": ValueType.STRING,
    "str": ValueType.STRING,
    "bytes": ValueType.BYTES,
    "blob": ValueType.BYTES,
    "node_id": ValueType.NODE_ID,
    "node": ValueType.NODE_ID,
}

# Rank used to order values of different kinds deterministically.
_TYPE_RANK = {
    ValueType.INT: 0,
    ValueType.FLOAT: 0,
    ValueType.STRING: 1,
    ValueType.BYTES: 2,
    ValueType.NODE_ID: 3,
}


def parse_type_name(name: str) -> ValueType:
    """Map a type name as written in signature files to a ValueType."""
    try:
        return _TYPE_NAMES[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown value type '{name}'") from None


def type_of(value: Any) -> ValueType:
    """Return the ValueType of a Python value, or raise TypeError."""
    # bool is an int subclass but never a valid field value
    if isinstance(value, bool):
        raise TypeError(f"Boolean {value!r} is not a valid value")
    if isinstance(value, int):
        return ValueType.INT
    if isinstance(value, float):
        return ValueType.FLOAT
    if isinstance(value, str):
        return ValueType.STRING
    if isinstance(value, (bytes, bytearray)):
        return ValueType.BYTES
    if isinstance(value, NodeId):
        return ValueType.NODE_ID
    raise TypeError(f"Unsupported value {value!r} of type {type(value).__name__}")


def is_numeric(vtype: ValueType) -> bool:
    return vtype in (ValueType.INT, ValueType.FLOAT)


def coerce(value: Any, expected: ValueType) -> Value:
    """Convert `value` to the representation of `expected`.

    Exact matches pass through. Integers widen to floats, text is accepted for
    node identifiers, and hexadecimal text (optionally ``0x``-prefixed) for
    byte blobs. Anything else raises TypeError.
    """
    actual = type_of(value)
    if actual is expected:
        return bytes(value) if actual is ValueType.BYTES else value
    if expected is ValueType.FLOAT and actual is ValueType.INT:
        return float(value)
    if expected is ValueType.NODE_ID and actual is ValueType.STRING:
        return NodeId(value)
    if expected is ValueType.BYTES and actual is ValueType.STRING:
        digits = value[2:] if value.lower().startswith("0x") else value
        try:
            return bytes.fromhex(digits)
        except ValueError:
            raise TypeError(f"{value!r} is not a hexadecimal byte string") from None
    raise TypeError(f"Expected {expected}, got {actual} value {value!r}")


def sort_key(value: Value) -> Tuple[int, Any]:
    """Total order over mixed values, used to emit results deterministically."""
    vtype = type_of(value)
    if vtype is ValueType.NODE_ID:
        return (_TYPE_RANK[vtype], value.text)
    return (_TYPE_RANK[vtype], value)


def format_value(value: Value) -> str:
    """Render a value the way fact logs write it."""
    vtype = type_of(value)
    if vtype is ValueType.STRING:
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if vtype is ValueType.BYTES:
        return "0x" + bytes(value).hex()
    if vtype is ValueType.NODE_ID:
        escaped = value.text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return repr(value)
