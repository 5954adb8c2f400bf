# logic/relational.py

"""
Relational operators: per time point, no retained history.

Atoms read the snapshot, conjunctions join or constrain, disjunctions
unite, quantifiers project. None of these keep state beyond the buffers of
BinaryOperator, so their results depend only on the current time point and
their children's results for it.
"""

from __future__ import annotations
import operator
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from formula.ast_nodes import Atom, Compare
from formula.terms import Const, Term, UndefinedTerm
from model.binding import BindingTable
from model.fact import TimePoint
from model.schema import RelationSchema
from model.snapshot import Snapshot
from model.value import Value, coerce
from .operators import BinaryOperator, LeafOperator, Operator, UnaryOperator

COMPARATORS: Dict[str, Callable[[Value, Value], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def compare_holds(node: Compare, assignment: Mapping[str, Value]) -> Optional[bool]:
    """Truth of a comparison, or None when one of its terms is undefined."""
    try:
        left = node.left.evaluate(assignment)
        right = node.right.evaluate(assignment)
    except UndefinedTerm:
        return None
    return COMPARATORS[node.op](left, right)


def evaluate_term(term: Term, assignment: Mapping[str, Value]) -> Optional[Value]:
    try:
        return term.evaluate(assignment)
    except UndefinedTerm:
        return None


class AtomOperator(LeafOperator):
    """Matches the snapshot's tuples of one relation against the atom's arguments."""

    def __init__(self, node_id: int, atom: Atom, schema: Optional[RelationSchema] = None):
        super().__init__(node_id, atom.free_vars)
        self.relation = atom.relation
        self.arity = len(atom.args)
        # constants are compared in the representation facts are stored in
        constants: List[Tuple[int, Value]] = []
        first_position: Dict[str, int] = {}
        repeats: List[Tuple[int, int]] = []
        for position, arg in enumerate(atom.args):
            if isinstance(arg, Const):
                value = arg.value
                if schema is not None:
                    value = coerce(value, schema.types[position])
                constants.append((position, value))
            elif arg.name in first_position:
                repeats.append((first_position[arg.name], position))
            else:
                first_position[arg.name] = position
        self._constants = tuple(constants)
        self._repeats = tuple(repeats)
        self._layout = tuple(first_position[c] for c in self.columns)

    def evaluate(self, snapshot: Snapshot) -> BindingTable:
        table = BindingTable(self.columns)
        for fields in snapshot.tuples(self.relation):
            if len(fields) != self.arity:
                continue
            if any(fields[p] != v for p, v in self._constants):
                continue
            if any(fields[a] != fields[b] for a, b in self._repeats):
                continue
            table.rows[tuple(fields[p] for p in self._layout)] = snapshot.timestamp
        return table

    def describe(self) -> str:
        return f"Atom[{self.relation}]"


class TruthOperator(LeafOperator):
    def __init__(self, node_id: int, value: bool):
        super().__init__(node_id, ())
        self.value = value

    def evaluate(self, snapshot: Snapshot) -> BindingTable:
        if self.value:
            return BindingTable.unit(snapshot.timestamp)
        return BindingTable.empty()


class ConstantCompareOperator(LeafOperator):
    """A comparison needing no positive context: closed, or ``x = closed term``."""

    def __init__(self, node_id: int, node: Compare):
        super().__init__(node_id, node.free_vars)
        self.node = node
        self.binding = node.binding(frozenset())

    def evaluate(self, snapshot: Snapshot) -> BindingTable:
        if self.binding is None:
            if compare_holds(self.node, {}):
                return BindingTable.unit(snapshot.timestamp)
            return BindingTable.empty()
        _, term = self.binding
        value = evaluate_term(term, {})
        table = BindingTable(self.columns)
        if value is not None:
            table.rows[(value,)] = snapshot.timestamp
        return table


class ClosedNotOperator(UnaryOperator):
    """Negation of a closed formula: true exactly when the operand is false."""

    def apply(self, table: BindingTable, timestamp: TimePoint) -> BindingTable:
        if table:
            return BindingTable.empty()
        return BindingTable.unit(timestamp)


class JoinOperator(BinaryOperator):
    def combine(self, left: BindingTable, right: BindingTable, timestamp: TimePoint) -> BindingTable:
        return left.join(right)


class AntiJoinOperator(BinaryOperator):
    """Left rows whose projection is absent from the (negated) right operand."""

    def combine(self, left: BindingTable, right: BindingTable, timestamp: TimePoint) -> BindingTable:
        return left.anti_join(right)


class UnionOperator(BinaryOperator):
    def combine(self, left: BindingTable, right: BindingTable, timestamp: TimePoint) -> BindingTable:
        return left.union(right)


class FilterOperator(UnaryOperator):
    """Keeps rows satisfying a comparison (or its negation) over bound variables.

    Rows where the comparison is undefined are dropped under either polarity.
    """

    def __init__(self, node_id: int, columns: Sequence[str], child: Operator, node: Compare, negated: bool = False):
        super().__init__(node_id, columns, child)
        self.node = node
        self.negated = negated

    def _keep(self, assignment) -> bool:
        holds = compare_holds(self.node, assignment)
        if holds is None:
            return False
        return holds != self.negated

    def apply(self, table: BindingTable, timestamp: TimePoint) -> BindingTable:
        return table.filter(self._keep)

    def describe(self) -> str:
        return f"Filter[{'NOT ' if self.negated else ''}{self.node}]"


class ExtendOperator(UnaryOperator):
    """Binds a new variable to a term over the bound ones (``x = t``)."""

    def __init__(self, node_id: int, columns: Sequence[str], child: Operator, variable: str, term: Term):
        super().__init__(node_id, columns, child)
        self.variable = variable
        self.term = term

    def apply(self, table: BindingTable, timestamp: TimePoint) -> BindingTable:
        return table.extend(self.variable, lambda a: evaluate_term(self.term, a))

    def describe(self) -> str:
        return f"Extend[{self.variable} = {self.term}]"


class ProjectOperator(UnaryOperator):
    """Existential quantification: drop the quantified columns."""

    def apply(self, table: BindingTable, timestamp: TimePoint) -> BindingTable:
        return table.project(self.columns)
