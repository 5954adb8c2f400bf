# model/window.py

"""
WindowStore keeps the Binding Tables a temporal operator still needs.

Each entry is the table a child formula produced at one time point, keyed by
that time point's timestamp. Entries are split into two runs: `pending`
entries that are retained but not yet inside the operator's interval, and
`admitted` entries that currently count towards the answer. An in-range
index (row -> count, latest timestamp) over the admitted run lets the store
answer without re-scanning every retained table.

Entries are evicted as soon as they fall behind the operator's horizon,
which keeps memory proportional to the number of facts inside the interval
rather than to the length of the trace. Stores without an upper bound are
compacted instead, down to one retained copy of each row. An optional
retention limit caps the number of retained rows: overflowing it drops the
oldest rows, whole entries first, and marks the store as degraded.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple

from utils.logger import get_logger
from .binding import BindingTable, Row
from .fact import TimePoint

logger = get_logger(__name__)

Entry = Tuple[TimePoint, BindingTable]


@dataclass(slots=True)
class WindowStore:
    """
    Retained history for a single Once/Eventually node.

    Attributes:
      node_id: Preorder id of the formula node owning this store.
      columns: Free variables of the node's operand.
      retention_limit: Maximum number of retained rows, or None for no cap.
      degraded: Set once the retention limit forced data to be dropped.
    """
    node_id: int
    columns: Tuple[str, ...] = ()
    retention_limit: Optional[int] = None
    degraded: bool = False

    _pending: Deque[Entry] = field(default_factory=deque)
    _admitted: Deque[Entry] = field(default_factory=deque)
    _in_range: Dict[Row, List] = field(default_factory=dict)
    _retained_rows: int = 0
    _peak_rows: int = 0
    _dropped_rows: int = 0
    _last_timestamp: Optional[TimePoint] = None
    _size_warnings_enabled: bool = True

    def push(self, timestamp: TimePoint, table: BindingTable) -> None:
        """
        Retain the operand's table for the time point at `timestamp`.

        Tables must arrive in increasing timestamp order. Empty tables carry no
        information and are not stored.
        """
        if self._last_timestamp is not None and timestamp <= self._last_timestamp:
            raise ValueError(
                f"WindowStore {self.node_id}: timestamp {timestamp} does not follow {self._last_timestamp}"
            )
        self._last_timestamp = timestamp
        if not table:
            return
        self._pending.append((timestamp, table))
        self._retained_rows += len(table)
        if self._retained_rows > self._peak_rows:
            self._peak_rows = self._retained_rows
        if self.retention_limit is not None and self._retained_rows > self.retention_limit:
            self._enforce_retention_limit()

    def admit_until(self, upper: TimePoint) -> int:
        """Move pending entries with timestamp <= `upper` into the counted range."""
        admitted = 0
        while self._pending and self._pending[0][0] <= upper:
            timestamp, table = self._pending.popleft()
            for row in table:
                slot = self._in_range.get(row)
                if slot is None:
                    self._in_range[row] = [1, timestamp]
                else:
                    slot[0] += 1
                    slot[1] = timestamp
            self._admitted.append((timestamp, table))
            admitted += 1
        return admitted

    def evict_before(self, lower: TimePoint) -> int:
        """Drop every entry with timestamp < `lower`. Returns the number dropped."""
        evicted = 0
        while self._admitted and self._admitted[0][0] < lower:
            self._drop_admitted()
            evicted += 1
        if not self._admitted:
            while self._pending and self._pending[0][0] < lower:
                _, table = self._pending.popleft()
                self._retained_rows -= len(table)
                evicted += 1
        return evicted

    def compact(self) -> None:
        """
        Collapse the admitted run into a single entry holding each row once.

        Only valid for stores whose admitted entries are never evicted
        (unbounded look-back): row timestamps survive, entry boundaries do not.
        """
        if len(self._admitted) < 2:
            return
        rows = {row: slot[1] for row, slot in self._in_range.items()}
        for _, table in self._admitted:
            self._retained_rows -= len(table)
        self._admitted = deque([(self._admitted[-1][0], BindingTable(self.columns, rows))])
        for slot in self._in_range.values():
            slot[0] = 1
        self._retained_rows += len(rows)

    def snapshot(self) -> BindingTable:
        """Union of the admitted tables; each row carries its latest timestamp."""
        return BindingTable(self.columns, {row: slot[1] for row, slot in self._in_range.items()})

    def _drop_admitted(self) -> None:
        _, table = self._admitted.popleft()
        for row in table:
            slot = self._in_range[row]
            slot[0] -= 1
            if slot[0] == 0:
                del self._in_range[row]
        self._retained_rows -= len(table)

    def _enforce_retention_limit(self) -> None:
        dropped = 0
        # never drop the entry that was just pushed
        while self._retained_rows > self.retention_limit and len(self) > 1:
            before = self._retained_rows
            excess = self._retained_rows - self.retention_limit
            if self._admitted:
                if len(self._admitted[0][1]) > excess:
                    self._trim_oldest(self._admitted, excess, counted=True)
                else:
                    self._drop_admitted()
            elif len(self._pending[0][1]) > excess:
                self._trim_oldest(self._pending, excess, counted=False)
            else:
                _, table = self._pending.popleft()
                self._retained_rows -= len(table)
            dropped += before - self._retained_rows
        if dropped:
            self._dropped_rows += dropped
            if not self.degraded and self._size_warnings_enabled:
                logger.retention_degraded(self.node_id, self.retention_limit, dropped)
            self.degraded = True

    def _trim_oldest(self, entries: Deque[Entry], count: int, counted: bool) -> None:
        """Drop the `count` rows of the oldest entry with the earliest row timestamps."""
        timestamp, table = entries[0]
        ordered = sorted(table.rows.items(), key=lambda item: item[1])
        for row, _ in ordered[:count]:
            if counted:
                slot = self._in_range[row]
                slot[0] -= 1
                if slot[0] == 0:
                    del self._in_range[row]
        entries[0] = (timestamp, BindingTable(self.columns, dict(ordered[count:])))
        self._retained_rows -= count

    @property
    def retained_rows(self) -> int:
        return self._retained_rows

    @property
    def oldest(self) -> Optional[TimePoint]:
        if self._admitted:
            return self._admitted[0][0]
        if self._pending:
            return self._pending[0][0]
        return None

    def release(self) -> None:
        """Forget all retained tables."""
        self._pending.clear()
        self._admitted.clear()
        self._in_range.clear()
        self._retained_rows = 0

    def enable_size_warnings(self, enabled: bool = True) -> None:
        self._size_warnings_enabled = enabled

    def stats(self) -> Dict[str, object]:
        return {
            "node_id": self.node_id,
            "entries": len(self),
            "retained_rows": self._retained_rows,
            "in_range_rows": len(self._in_range),
            "peak_rows": self._peak_rows,
            "retention_limit": self.retention_limit,
            "dropped_rows": self._dropped_rows,
            "degraded": self.degraded,
        }

    def __len__(self) -> int:
        return len(self._pending) + len(self._admitted)

    def __bool__(self) -> bool:
        return len(self) > 0
