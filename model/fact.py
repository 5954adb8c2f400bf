# model/fact.py

"""
Fact
====

Immutable timestamped observation: a relation name, an ordered tuple of
field values and the time at which it happened. Facts are append-only; a
fact emitted at a timestamp is never revised.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Tuple, Union

from .value import Value, format_value

TimePoint = Union[int, float]


@dataclass(frozen=True, slots=True)
class Fact:
    relation: str
    fields: Tuple[Value, ...] = field(default_factory=tuple)
    timestamp: TimePoint = 0

    def __post_init__(self):
        # accept any sequence, store a tuple so facts stay hashable
        if not isinstance(self.fields, tuple):
            object.__setattr__(self, "fields", tuple(self.fields))

    @property
    def arity(self) -> int:
        return len(self.fields)

    def __str__(self) -> str:
        args = ", ".join(format_value(v) for v in self.fields)
        return f"@{self.timestamp} {self.relation}({args})"
