# logic/aggregation.py

"""
Grouped aggregation and the default join.

Aggregates see the operand's table for one time point. Rows are grouped by
the group variables and the aggregated term is evaluated once per row, so
two rows with equal term values both count: the input is a multiset of
values, not a set. Rows whose term is undefined are left out of their group.

With no group variables an empty operand still yields a value for CNT and
SUM (zero), but not for AVG, MIN and MAX, which are undefined on nothing.
Averages are population means computed with math.fsum.
"""

from __future__ import annotations
import math
from typing import Callable, Dict, List, Optional, Sequence

from formula.ast_nodes import Aggregate
from formula.terms import Term
from model.binding import BindingTable, Row
from model.fact import TimePoint
from model.value import Value
from .operators import BinaryOperator, Operator, UnaryOperator
from .relational import evaluate_term


def _sum(values: List[Value]) -> Value:
    if all(isinstance(v, int) for v in values):
        return sum(values)
    return math.fsum(values)


def _avg(values: List[Value]) -> float:
    return math.fsum(values) / len(values)


REDUCERS: Dict[str, Callable[[List[Value]], Value]] = {
    "CNT": len,
    "SUM": _sum,
    "AVG": _avg,
    "MIN": min,
    "MAX": max,
}

# value of an aggregate over an empty operand without group variables
EMPTY_RESULTS: Dict[str, Optional[Value]] = {
    "CNT": 0,
    "SUM": 0,
    "AVG": None,
    "MIN": None,
    "MAX": None,
}


class AggregateOperator(UnaryOperator):

    def __init__(self, node_id: int, child: Operator, node: Aggregate):
        super().__init__(node_id, node.free_vars, child)
        self.op = node.op
        self.result = node.result
        self.term: Optional[Term] = node.term
        self.group_by = node.group_by

    def apply(self, table: BindingTable, timestamp: TimePoint) -> BindingTable:
        positions = table.positions(self.group_by)
        groups: Dict[Row, List[Value]] = {}
        for row in table:
            key = tuple(row[p] for p in positions)
            bucket = groups.setdefault(key, [])
            if self.term is None:
                bucket.append(1)
                continue
            value = evaluate_term(self.term, table.assignment(row))
            if value is not None:
                bucket.append(value)

        reduce = REDUCERS[self.op]
        result = BindingTable(self.columns)
        if not groups and not self.group_by:
            empty = EMPTY_RESULTS[self.op]
            if empty is not None:
                result.rows[(empty,)] = timestamp
            return result

        for key, values in groups.items():
            if not values:
                if self.op != "CNT":
                    continue
                value = 0
            else:
                value = reduce(values)
            assignment = dict(zip(self.group_by, key))
            assignment[self.result] = value
            result.add(tuple(assignment[c] for c in self.columns), timestamp)
        return result

    def describe(self) -> str:
        term = "" if self.term is None else f" {self.term}"
        return f"Aggregate[{self.result} <- {self.op}{term}; {', '.join(self.group_by)}]"


class DefaultOperator(BinaryOperator):
    """Operand rows, plus ``result = default`` for every key row the operand lacks."""

    def __init__(self, node_id: int, columns: Sequence[str], operand: Operator, keys: Operator, result: str, default: Value):
        super().__init__(node_id, columns, operand, keys)
        self.result = result
        self.default = default

    def combine(self, left: BindingTable, right: BindingTable, timestamp: TimePoint) -> BindingTable:
        present = left.project(right.columns)
        missing = right.anti_join(present)
        filled = missing.extend(self.result, lambda _: self.default)
        return left.union(filled)

    def describe(self) -> str:
        return f"Default[{self.result} = {self.default!r}]"
