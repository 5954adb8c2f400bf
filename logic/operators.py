# logic/operators.py

"""
Operator tree skeleton.

A formula is compiled into a tree of operators mirroring its structure.
Each evaluation round hands every operator the batch of newly closed
snapshots and the current watermark; an operator answers with the Steps
(time point results) that have become final, strictly in time point order.

Most operators answer every time point immediately. Operators above an
Eventually may lag behind, so binary operators buffer whichever side runs
ahead and only combine results for the same time point.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, List, Sequence, Tuple

from model.binding import BindingTable
from model.fact import TimePoint
from model.snapshot import Snapshot
from model.window import WindowStore


@dataclass(frozen=True, slots=True)
class Step:
    """Final result of one operator at one time point."""
    index: int
    timestamp: TimePoint
    table: BindingTable


class Operator:
    """Base class: `columns` are the node's free variables, sorted."""

    def __init__(self, node_id: int, columns: Sequence[str]):
        self.node_id = node_id
        self.columns: Tuple[str, ...] = tuple(sorted(columns))

    @property
    def children(self) -> Tuple["Operator", ...]:
        return ()

    def step(self, batch: Sequence[Snapshot], watermark: TimePoint) -> List[Step]:
        raise NotImplementedError

    def stores(self) -> Iterator[WindowStore]:
        """Every window store in this subtree."""
        for child in self.children:
            yield from child.stores()

    def release(self) -> None:
        for child in self.children:
            child.release()

    def describe(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return f"{self.describe()}#{self.node_id}{list(self.columns)}"


class LeafOperator(Operator):
    """Computes each time point directly from its snapshot."""

    def step(self, batch: Sequence[Snapshot], watermark: TimePoint) -> List[Step]:
        return [Step(s.index, s.timestamp, self.evaluate(s)) for s in batch]

    def evaluate(self, snapshot: Snapshot) -> BindingTable:
        raise NotImplementedError


class UnaryOperator(Operator):
    """Transforms each of its child's results independently."""

    def __init__(self, node_id: int, columns: Sequence[str], child: Operator):
        super().__init__(node_id, columns)
        self.child = child

    @property
    def children(self) -> Tuple[Operator, ...]:
        return (self.child,)

    def step(self, batch: Sequence[Snapshot], watermark: TimePoint) -> List[Step]:
        return [
            Step(s.index, s.timestamp, self.apply(s.table, s.timestamp))
            for s in self.child.step(batch, watermark)
        ]

    def apply(self, table: BindingTable, timestamp: TimePoint) -> BindingTable:
        raise NotImplementedError


class BinaryOperator(Operator):
    """Combines both children's results for the same time point."""

    def __init__(self, node_id: int, columns: Sequence[str], left: Operator, right: Operator):
        super().__init__(node_id, columns)
        self.left = left
        self.right = right
        self._left_buffer: Deque[Step] = deque()
        self._right_buffer: Deque[Step] = deque()

    @property
    def children(self) -> Tuple[Operator, ...]:
        return (self.left, self.right)

    def step(self, batch: Sequence[Snapshot], watermark: TimePoint) -> List[Step]:
        self._left_buffer.extend(self.left.step(batch, watermark))
        self._right_buffer.extend(self.right.step(batch, watermark))
        out = []
        while self._left_buffer and self._right_buffer:
            left = self._left_buffer.popleft()
            right = self._right_buffer.popleft()
            if left.index != right.index:
                raise RuntimeError(
                    f"{self!r}: operands out of step at time points {left.index} and {right.index}"
                )
            out.append(Step(left.index, left.timestamp, self.combine(left.table, right.table, left.timestamp)))
        return out

    def combine(self, left: BindingTable, right: BindingTable, timestamp: TimePoint) -> BindingTable:
        raise NotImplementedError

    @property
    def buffered(self) -> int:
        return len(self._left_buffer) + len(self._right_buffer)

    def release(self) -> None:
        self._left_buffer.clear()
        self._right_buffer.clear()
        super().release()
