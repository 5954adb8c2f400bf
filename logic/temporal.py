# logic/temporal.py

"""
Bounded temporal operators.

ONCE[a,b] answers time point t from the operand's results at t' with
t - b <= t' <= t - a, which have all been seen by the time t closes. Its
window store keeps the operand tables of the trailing b time units.

EVENTUALLY[a,b] needs the operand's results at t' with t + a <= t' <= t + b,
so time point t is held as a pending obligation until the operand has
answered a time point beyond t + b, or the watermark has passed t + b
with the operand fully caught up. Later time points keep flowing in while
obligations wait; results leave in time point order.

Both operators purge their store on every round, including rounds that
only advance the watermark, so retention never exceeds what the next
answerable time point can still need.
"""

from __future__ import annotations
import math
from collections import deque
from typing import Deque, Iterator, List, Optional, Sequence, Tuple

from model.fact import TimePoint
from model.interval import Interval
from model.snapshot import Snapshot
from model.window import WindowStore
from .operators import Operator, Step

Pending = Tuple[int, TimePoint]


class TemporalOperator(Operator):
    def __init__(
        self,
        node_id: int,
        columns: Sequence[str],
        child: Operator,
        interval: Interval,
        retention_limit: Optional[int] = None,
        size_warnings: bool = True,
    ):
        super().__init__(node_id, columns)
        self.child = child
        self.interval = interval
        self.store = WindowStore(node_id, self.columns, retention_limit)
        self.store.enable_size_warnings(size_warnings)
        # closed time points not yet answered, oldest first
        self.awaiting: Deque[Pending] = deque()

    @property
    def children(self) -> Tuple[Operator, ...]:
        return (self.child,)

    def stores(self) -> Iterator[WindowStore]:
        yield self.store
        yield from super().stores()

    def release(self) -> None:
        self.store.release()
        self.awaiting.clear()
        super().release()


class OnceOperator(TemporalOperator):

    def step(self, batch: Sequence[Snapshot], watermark: TimePoint) -> List[Step]:
        lower, upper = self.interval.lower, self.interval.upper
        self.awaiting.extend((s.index, s.timestamp) for s in batch)
        out = []
        for s in self.child.step(batch, watermark):
            self.awaiting.popleft()
            self.store.push(s.timestamp, s.table)
            self.store.admit_until(s.timestamp - lower)
            if self.interval.bounded:
                self.store.evict_before(s.timestamp - upper)
            out.append(Step(s.index, s.timestamp, self.store.snapshot()))
        if self.interval.bounded:
            # nothing earlier than this can be in range of a later time point
            horizon = self.awaiting[0][1] if self.awaiting else watermark
            self.store.evict_before(horizon - upper)
        else:
            # unbounded look-back only needs each row once
            self.store.compact()
        return out

    def describe(self) -> str:
        return f"Once{self.interval}"


class EventuallyOperator(TemporalOperator):

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if not self.interval.bounded:
            raise ValueError(f"EVENTUALLY{self.interval} cannot be evaluated")
        self._last_closed: int = -1
        self._child_upto: int = -1
        self._child_upto_ts: TimePoint = -math.inf

    def step(self, batch: Sequence[Snapshot], watermark: TimePoint) -> List[Step]:
        for s in batch:
            self.awaiting.append((s.index, s.timestamp))
            self._last_closed = s.index
        out = []
        for s in self.child.step(batch, watermark):
            self.store.push(s.timestamp, s.table)
            self._child_upto, self._child_upto_ts = s.index, s.timestamp
            out.extend(self._resolve(watermark))
        out.extend(self._resolve(watermark))
        if not self.awaiting:
            # every later obligation starts at or after the watermark
            self.store.evict_before(watermark + self.interval.lower)
        return out

    def _resolvable(self, timestamp: TimePoint, watermark: TimePoint) -> bool:
        deadline = timestamp + self.interval.upper
        if self._child_upto_ts > deadline:
            return True
        return self._child_upto == self._last_closed and watermark > deadline

    def _resolve(self, watermark: TimePoint) -> List[Step]:
        out = []
        while self.awaiting and self._resolvable(self.awaiting[0][1], watermark):
            index, timestamp = self.awaiting.popleft()
            self.store.evict_before(timestamp + self.interval.lower)
            self.store.admit_until(timestamp + self.interval.upper)
            out.append(Step(index, timestamp, self.store.snapshot()))
        return out

    @property
    def pending(self) -> int:
        return len(self.awaiting)

    def describe(self) -> str:
        return f"Eventually{self.interval}"
