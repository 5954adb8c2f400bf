# logic/evaluator.py

"""
Evaluator: one compiled formula and its retained state.

The formula is checked (monitorability, types) and compiled once into a
tree of operators. Snapshots are then fed in time point order together
with the watermark; the evaluator returns the Steps of the root operator
that have become final, which is every fed time point except those still
waiting on an EVENTUALLY obligation.
"""

from __future__ import annotations
import math
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

from formula.ast_nodes import (
    Aggregate,
    And,
    Atom,
    Compare,
    Eventually,
    Exists,
    Formula,
    Not,
    Once,
    Or,
    Truth,
    WithDefault,
)
from formula.safety import StepKind, check_monitorable, future_horizon, plan_conjunction
from formula.typecheck import infer_types
from model.fact import TimePoint
from model.schema import Signature
from model.snapshot import Snapshot
from model.value import ValueType, coerce
from utils.logger import get_logger
from .aggregation import AggregateOperator, DefaultOperator
from .config import EvaluatorConfig
from .operators import Operator, Step
from .relational import (
    AntiJoinOperator,
    AtomOperator,
    ClosedNotOperator,
    ConstantCompareOperator,
    ExtendOperator,
    FilterOperator,
    JoinOperator,
    ProjectOperator,
    TruthOperator,
    UnionOperator,
)
from .temporal import EventuallyOperator, OnceOperator

logger = get_logger(__name__)


class OperatorCompiler:
    """Visitor building the operator tree; operator ids follow creation order."""

    def __init__(self, signature: Signature, config: EvaluatorConfig):
        self.signature = signature
        self.config = config
        self._next_id = 0

    def _id(self) -> int:
        node_id = self._next_id
        self._next_id += 1
        return node_id

    def compile(self, formula: Formula) -> Operator:
        return formula.accept(self)

    def visit_truth(self, n: Truth) -> Operator:
        return TruthOperator(self._id(), n.value)

    def visit_atom(self, n: Atom) -> Operator:
        return AtomOperator(self._id(), n, self.signature.get(n.relation))

    def visit_compare(self, n: Compare) -> Operator:
        return ConstantCompareOperator(self._id(), n)

    def visit_not(self, n: Not) -> Operator:
        node_id = self._id()
        return ClosedNotOperator(node_id, (), self.compile(n.operand))

    def visit_and(self, n: And) -> Operator:
        plan = plan_conjunction(n)
        current = self.compile(plan.base)
        for step in plan.steps:
            f = step.formula
            columns = step.bound | f.free_vars
            if step.kind is StepKind.JOIN:
                current = JoinOperator(self._id(), columns, current, self.compile(f))
            elif step.kind is StepKind.ANTI_JOIN:
                current = AntiJoinOperator(self._id(), columns, current, self.compile(f.operand))
            elif step.kind is StepKind.FILTER:
                negated = isinstance(f, Not)
                compare = f.operand if negated else f
                current = FilterOperator(self._id(), columns, current, compare, negated)
            else:
                variable, term = f.binding(step.bound)
                current = ExtendOperator(self._id(), columns, current, variable, term)
        return current

    def visit_or(self, n: Or) -> Operator:
        node_id = self._id()
        return UnionOperator(node_id, n.free_vars, self.compile(n.left), self.compile(n.right))

    def visit_exists(self, n: Exists) -> Operator:
        node_id = self._id()
        return ProjectOperator(node_id, n.free_vars, self.compile(n.operand))

    def _temporal(self, cls, n):
        node_id = self._id()
        return cls(
            node_id,
            n.free_vars,
            self.compile(n.operand),
            n.interval,
            self.config.retention_limit,
            self.config.size_warnings,
        )

    def visit_once(self, n: Once) -> Operator:
        return self._temporal(OnceOperator, n)

    def visit_eventually(self, n: Eventually) -> Operator:
        return self._temporal(EventuallyOperator, n)

    def visit_aggregate(self, n: Aggregate) -> Operator:
        node_id = self._id()
        return AggregateOperator(node_id, self.compile(n.operand), n)

    def visit_with_default(self, n: WithDefault) -> Operator:
        node_id = self._id()
        # filled rows carry the type the operand binds the result to
        default = coerce(n.default, infer_types(n.operand, self.signature)[n.result])
        return DefaultOperator(
            node_id, n.free_vars, self.compile(n.operand), self.compile(n.keys), n.result, default
        )


class Evaluator:
    """
    Incremental evaluation of one formula.

    Raises (at construction):
        UnsafeFormula: the formula is not monitorable
        IllTypedFormula: the formula does not type check against `signature`
    """

    def __init__(self, formula: Formula, signature: Signature, config: Optional[EvaluatorConfig] = None):
        self.formula = formula
        self.config = config or EvaluatorConfig()
        check_monitorable(formula)
        self.types: Dict[str, ValueType] = infer_types(formula, signature)
        self.future_horizon = future_horizon(formula)
        self.columns: Tuple[str, ...] = tuple(sorted(formula.free_vars))
        self.root = OperatorCompiler(signature, self.config).compile(formula)
        self.watermark: TimePoint = -math.inf
        self._fed: Deque[Tuple[int, TimePoint]] = deque()
        self._last_index: int = -1
        self._last_timestamp: TimePoint = -math.inf
        self._released = False
        logger.debug(f"Compiled {formula} into {self._count_operators(self.root)} operators")

    @staticmethod
    def _count_operators(op: Operator) -> int:
        return 1 + sum(Evaluator._count_operators(c) for c in op.children)

    def feed(self, snapshot: Snapshot, watermark: TimePoint) -> List[Step]:
        """Hand over a closed time point; `watermark` must already exceed its timestamp."""
        if snapshot.timestamp >= watermark:
            raise ValueError(
                f"Time point {snapshot} is not closed under watermark {watermark}"
            )
        if snapshot.index <= self._last_index or snapshot.timestamp <= self._last_timestamp:
            raise ValueError(
                f"Time point {snapshot} fed out of order after #{self._last_index} @{self._last_timestamp}"
            )
        steps = self._run([snapshot], watermark)
        self._last_index, self._last_timestamp = snapshot.index, snapshot.timestamp
        return steps

    def advance(self, watermark: TimePoint) -> List[Step]:
        """Move the watermark without a new time point; may resolve obligations."""
        return self._run([], watermark)

    def _run(self, batch: List[Snapshot], watermark: TimePoint) -> List[Step]:
        if self._released:
            raise RuntimeError("Evaluator state has been released")
        if watermark < self.watermark:
            raise ValueError(f"Watermark moved backwards from {self.watermark} to {watermark}")
        self.watermark = watermark
        self._fed.extend((s.index, s.timestamp) for s in batch)
        steps = self.root.step(batch, watermark)
        for step in steps:
            index, _ = self._fed.popleft()
            if index != step.index:
                raise RuntimeError(f"Result for time point {step.index} emitted before {index}")
        return steps

    @property
    def pending(self) -> int:
        """Time points fed but not yet final."""
        return len(self._fed)

    @property
    def pending_time_points(self) -> List[Tuple[int, TimePoint]]:
        return list(self._fed)

    @property
    def degraded(self) -> bool:
        return any(store.degraded for store in self.root.stores())

    def stats(self) -> List[Dict[str, object]]:
        """Per window store statistics, in operator id order."""
        return sorted((store.stats() for store in self.root.stores()), key=lambda s: s["node_id"])

    @property
    def retained_rows(self) -> int:
        return sum(store.retained_rows for store in self.root.stores())

    def release(self) -> int:
        """Drop all retained state; returns the number of pending time points discarded."""
        dropped = len(self._fed)
        self.root.release()
        self._fed.clear()
        self._released = True
        return dropped
