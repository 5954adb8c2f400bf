# model/__init__.py

"""
Domain objects for the evaluator's input and state:
values and signatures, timestamped facts, closed time points (snapshots),
binding tables, and the window stores that retain them for temporal
operators. These types carry no evaluation logic.
"""

from .value import NodeId, Value, ValueType, coerce, parse_type_name, type_of, sort_key
from .fact import Fact, TimePoint
from .interval import Interval, UNBOUNDED
from .schema import RelationSchema, Signature, signature_from
from .binding import BindingTable, Assignment, Row
from .snapshot import Snapshot
from .window import WindowStore
from .errors import InputError, OutOfOrderFact, TypeMismatch, SignatureConflict

__all__ = [
    "NodeId",
    "Value",
    "ValueType",
    "coerce",
    "parse_type_name",
    "type_of",
    "sort_key",
    "Fact",
    "TimePoint",
    "Interval",
    "UNBOUNDED",
    "RelationSchema",
    "Signature",
    "signature_from",
    "BindingTable",
    "Assignment",
    "Row",
    "Snapshot",
    "WindowStore",
    "InputError",
    "OutOfOrderFact",
    "TypeMismatch",
    "SignatureConflict",
]
