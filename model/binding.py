# model/binding.py

"""
BindingTable
============

The set of variable assignments satisfying a formula node at one time point,
each paired with its derivation timestamp (when the supporting facts
occurred, as opposed to the time point being evaluated).

Assignments are stored positionally: `columns` is the sorted tuple of the
node's free variables and each row is a value tuple aligned with it. A row
maps to exactly one derivation timestamp; when the same assignment is
derived twice the more recent timestamp is kept.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .fact import TimePoint
from .value import Value, sort_key

Row = Tuple[Value, ...]
Assignment = Dict[str, Value]


def _row_key(row: Row) -> Tuple:
    return tuple(sort_key(v) for v in row)


@dataclass(slots=True)
class BindingTable:
    columns: Tuple[str, ...] = ()
    rows: Dict[Row, TimePoint] = field(default_factory=dict)

    def __post_init__(self):
        self.columns = tuple(self.columns)
        if list(self.columns) != sorted(set(self.columns)):
            raise ValueError(f"Columns must be sorted and unique, got {self.columns}")

    # --- construction ---------------------------------------------------

    @classmethod
    def empty(cls, columns: Iterable[str] = ()) -> "BindingTable":
        return cls(tuple(sorted(columns)))

    @classmethod
    def unit(cls, timestamp: TimePoint) -> "BindingTable":
        """Table holding only the empty assignment: a closed formula that holds."""
        return cls((), {(): timestamp})

    @classmethod
    def from_assignments(
        cls,
        assignments: Iterable[Mapping[str, Value]],
        timestamp: TimePoint,
        columns: Optional[Iterable[str]] = None,
    ) -> "BindingTable":
        assignments = list(assignments)
        if columns is None:
            columns = assignments[0].keys() if assignments else ()
        table = cls.empty(columns)
        for assignment in assignments:
            if set(assignment) != set(table.columns):
                raise ValueError(f"Assignment {assignment} is not over columns {table.columns}")
            table.add(tuple(assignment[c] for c in table.columns), timestamp)
        return table

    def add(self, row: Row, timestamp: TimePoint) -> None:
        current = self.rows.get(row)
        if current is None or timestamp > current:
            self.rows[row] = timestamp

    def copy(self) -> "BindingTable":
        return BindingTable(self.columns, dict(self.rows))

    # --- access ---------------------------------------------------------

    def assignment(self, row: Row) -> Assignment:
        return dict(zip(self.columns, row))

    def sorted_rows(self) -> List[Row]:
        return sorted(self.rows, key=_row_key)

    def assignments(self) -> List[Assignment]:
        """All assignments, in a deterministic order independent of insertion."""
        return [self.assignment(row) for row in self.sorted_rows()]

    def timestamp_of(self, assignment: Mapping[str, Value]) -> Optional[TimePoint]:
        return self.rows.get(tuple(assignment[c] for c in self.columns))

    def __len__(self) -> int:
        return len(self.rows)

    def __bool__(self) -> bool:
        return bool(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    def __contains__(self, assignment: object) -> bool:
        if not isinstance(assignment, Mapping) or set(assignment) != set(self.columns):
            return False
        return tuple(assignment[c] for c in self.columns) in self.rows

    # --- relational algebra ---------------------------------------------

    def positions(self, names: Sequence[str]) -> Tuple[int, ...]:
        index = {c: i for i, c in enumerate(self.columns)}
        return tuple(index[n] for n in names)

    def project(self, keep: Iterable[str]) -> "BindingTable":
        """Restrict to the columns in `keep`, merging rows that collide."""
        columns = tuple(sorted(set(keep)))
        missing = set(columns) - set(self.columns)
        if missing:
            raise ValueError(f"Cannot project onto unknown columns {sorted(missing)}")
        positions = self.positions(columns)
        result = BindingTable(columns)
        for row, ts in self.rows.items():
            result.add(tuple(row[p] for p in positions), ts)
        return result

    def union(self, other: "BindingTable") -> "BindingTable":
        if self.columns != other.columns:
            raise ValueError(f"Union over different columns {self.columns} and {other.columns}")
        result = self.copy()
        for row, ts in other.rows.items():
            result.add(row, ts)
        return result

    def join(self, other: "BindingTable") -> "BindingTable":
        """Natural equi-join on shared columns; derivation is the later of the two."""
        shared = tuple(c for c in self.columns if c in set(other.columns))
        columns = tuple(sorted(set(self.columns) | set(other.columns)))
        # each output column is read from (side, position)
        left_index = {c: i for i, c in enumerate(self.columns)}
        right_index = {c: i for i, c in enumerate(other.columns)}
        layout = [
            (0, left_index[c]) if c in left_index else (1, right_index[c])
            for c in columns
        ]
        left_key = self.positions(shared)
        right_key = other.positions(shared)

        buckets: Dict[Row, List[Tuple[Row, TimePoint]]] = {}
        for row, ts in other.rows.items():
            buckets.setdefault(tuple(row[p] for p in right_key), []).append((row, ts))

        result = BindingTable(columns)
        for row, ts in self.rows.items():
            for match, match_ts in buckets.get(tuple(row[p] for p in left_key), ()):
                sides = (row, match)
                result.add(tuple(sides[s][p] for s, p in layout), max(ts, match_ts))
        return result

    def anti_join(self, other: "BindingTable") -> "BindingTable":
        """Rows whose projection onto `other`'s columns is absent from `other`."""
        if not set(other.columns) <= set(self.columns):
            raise ValueError(
                f"Anti-join needs {other.columns} to be a subset of {self.columns}"
            )
        positions = self.positions(other.columns)
        result = BindingTable(self.columns)
        for row, ts in self.rows.items():
            if tuple(row[p] for p in positions) not in other.rows:
                result.rows[row] = ts
        return result

    def filter(self, predicate: Callable[[Assignment], bool]) -> "BindingTable":
        result = BindingTable(self.columns)
        for row, ts in self.rows.items():
            if predicate(self.assignment(row)):
                result.rows[row] = ts
        return result

    def extend(self, column: str, compute: Callable[[Assignment], Optional[Value]]) -> "BindingTable":
        """Add `column` computed from each assignment; rows computing None are dropped."""
        if column in self.columns:
            raise ValueError(f"Column '{column}' already bound")
        columns = tuple(sorted(self.columns + (column,)))
        result = BindingTable(columns)
        for row, ts in self.rows.items():
            assignment = self.assignment(row)
            value = compute(assignment)
            if value is None:
                continue
            assignment[column] = value
            result.add(tuple(assignment[c] for c in columns), ts)
        return result

    def __str__(self) -> str:
        body = ", ".join(
            "{" + ", ".join(f"{k}={v!r}" for k, v in a.items()) + "}" for a in self.assignments()
        )
        return f"[{body}]"
