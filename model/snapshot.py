# model/snapshot.py

"""
Snapshot: the closed database of one time point.

All facts sharing a timestamp form a single time point. Once the watermark
moves past that timestamp the facts are frozen into a Snapshot and handed to
every active rule exactly once.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Mapping

from .binding import Row
from .fact import Fact, TimePoint


@dataclass(frozen=True, slots=True, eq=False)
class Snapshot:
    index: int
    timestamp: TimePoint
    relations: Mapping[str, FrozenSet[Row]] = field(default_factory=dict)

    @classmethod
    def from_facts(cls, index: int, timestamp: TimePoint, facts: Iterable[Fact]) -> "Snapshot":
        grouped: Dict[str, set] = {}
        for fact in facts:
            if fact.timestamp != timestamp:
                raise ValueError(f"{fact} does not belong to time point {timestamp}")
            grouped.setdefault(fact.relation, set()).add(fact.fields)
        return cls(index, timestamp, {name: frozenset(rows) for name, rows in grouped.items()})

    def tuples(self, relation: str) -> FrozenSet[Row]:
        return self.relations.get(relation, frozenset())

    def __len__(self) -> int:
        return sum(len(rows) for rows in self.relations.values())

    def __str__(self) -> str:
        return f"#{self.index}@{self.timestamp} ({len(self)} facts)"
