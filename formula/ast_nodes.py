# formula/ast_nodes.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Abstract Syntax Tree node classes for monitoring formulas

"""AST node classes for first-order temporal monitoring formulas.

This module defines immutable and hashable node classes used to build rule
formulas as data. A formula combines relational atoms with Boolean
connectives, existential quantification, bounded temporal operators,
grouped aggregation and the default-join combinator.

Node Types:
    Truth: Boolean constants
    Atom: Relation lookup with variable/constant arguments
    Compare: Equality and ordering between terms
    Not, And, Or: Boolean connectives
    Exists: Existential quantification (projection)
    Once, Eventually: Bounded past and bounded future operators
    Aggregate: Grouped CNT/SUM/AVG/MIN/MAX
    WithDefault: Union in default rows for keys missing from an operand

Every node computes its free variables once, at construction, and checks
its local well-formedness there. All nodes support the visitor design
pattern for traversal.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Optional, Protocol, Tuple

from model.interval import Interval
from model.value import format_value, type_of
from .exceptions import FormulaError, UnsafeFormula
from .terms import Const, Term, Var, as_term


COMPARISONS = ("=", "!=", "<", "<=", ">", ">=")
AGGREGATIONS = ("CNT", "SUM", "AVG", "MIN", "MAX")


class Visitor(Protocol):
    """Interface for AST visitors implementing the visitor design pattern."""

    def visit_truth(self, n: Truth): ...

    def visit_atom(self, n: Atom): ...

    def visit_compare(self, n: Compare): ...

    def visit_not(self, n: Not): ...

    def visit_and(self, n: And): ...

    def visit_or(self, n: Or): ...

    def visit_exists(self, n: Exists): ...

    def visit_once(self, n: Once): ...

    def visit_eventually(self, n: Eventually): ...

    def visit_aggregate(self, n: Aggregate): ...

    def visit_with_default(self, n: WithDefault): ...


@dataclass(frozen=True, slots=True)
class Formula:
    """Base class for all formula nodes.

    Provides the cached free-variable set, visitor dispatch and the Boolean
    operators ``&``, ``|`` and ``~`` for composing formulas.
    """

    _fv: FrozenSet[str] = field(init=False, repr=False, compare=False)

    def _set_free_vars(self, names) -> None:
        object.__setattr__(self, "_fv", frozenset(names))

    @property
    def free_vars(self) -> FrozenSet[str]:
        """Free variables of this node, computed once at construction."""
        return self._fv

    @property
    def closed(self) -> bool:
        return not self._fv

    @property
    def children(self) -> Tuple["Formula", ...]:
        return ()

    def accept(self, v: Visitor):
        """Dispatch to the appropriate visitor method.

        Args:
            v: Visitor instance to process this node

        Raises:
            NotImplementedError: Must be implemented by subclasses
        """
        raise NotImplementedError

    def __and__(self, other: "Formula") -> "And":
        return And(self, other)

    def __or__(self, other: "Formula") -> "Or":
        return Or(self, other)

    def __invert__(self) -> "Not":
        return Not(self)

    def __str__(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class Truth(Formula):
    """Boolean constant: TRUE holds at every time point, FALSE never."""

    value: bool = True

    def __post_init__(self):
        self._set_free_vars(())

    def accept(self, v: Visitor):
        return v.visit_truth(self)

    def __str__(self) -> str:
        return "TRUE" if self.value else "FALSE"


@dataclass(frozen=True, slots=True)
class Atom(Formula):
    """Relation lookup at the current time point.

    Arguments are variables or constants. A variable repeated across
    positions constrains those positions to be equal; a constant selects
    facts carrying that value.

    Attributes:
        relation: Name of the relation
        args: Argument terms, one per field of the relation
    """

    relation: str
    args: Tuple[Term, ...] = ()

    def __post_init__(self):
        args = tuple(as_term(a) for a in self.args)
        for arg in args:
            if not isinstance(arg, (Var, Const)):
                raise FormulaError(
                    f"Atom {self.relation} accepts only variables and constants, got {arg}"
                )
        object.__setattr__(self, "args", args)
        self._set_free_vars(a.name for a in args if isinstance(a, Var))

    def accept(self, v: Visitor):
        return v.visit_atom(self)

    def __str__(self) -> str:
        return f"{self.relation}({', '.join(str(a) for a in self.args)})"


@dataclass(frozen=True, slots=True)
class Compare(Formula):
    """Comparison between two terms.

    Attributes:
        op: One of ``= != < <= > >=``
        left: Left term
        right: Right term
    """

    op: str
    left: Term
    right: Term

    def __post_init__(self):
        if self.op not in COMPARISONS:
            raise FormulaError(f"Unknown comparison operator '{self.op}'")
        object.__setattr__(self, "left", as_term(self.left))
        object.__setattr__(self, "right", as_term(self.right))
        self._set_free_vars(self.left.free_vars | self.right.free_vars)

    def binding(self, bound: FrozenSet[str]) -> Optional[Tuple[str, Term]]:
        """Return ``(variable, term)`` if this equality defines one new variable.

        The variable must stand alone on one side, be absent from `bound`,
        and the other side may only mention variables in `bound`.
        """
        if self.op != "=":
            return None
        for lhs, rhs in ((self.left, self.right), (self.right, self.left)):
            if (
                isinstance(lhs, Var)
                and lhs.name not in bound
                and lhs.name not in rhs.free_vars
                and rhs.free_vars <= bound
            ):
                return lhs.name, rhs
        return None

    def accept(self, v: Visitor):
        return v.visit_compare(self)

    def __str__(self) -> str:
        return f"{self.left} {self.op} {self.right}"


@dataclass(frozen=True, slots=True)
class Not(Formula):
    """Logical negation.

    Only computable as an anti-join against a positive conjunct that binds
    all its free variables, or when closed.
    """

    operand: Formula

    def __post_init__(self):
        self._set_free_vars(self.operand.free_vars)

    @property
    def children(self) -> Tuple[Formula, ...]:
        return (self.operand,)

    def accept(self, v: Visitor):
        return v.visit_not(self)

    def __str__(self) -> str:
        return f"NOT {self.operand}"


@dataclass(frozen=True, slots=True)
class And(Formula):
    """Conjunction: equi-join on shared free variables, or a constraint on the other side."""

    left: Formula
    right: Formula

    def __post_init__(self):
        self._set_free_vars(self.left.free_vars | self.right.free_vars)

    @property
    def children(self) -> Tuple[Formula, ...]:
        return (self.left, self.right)

    def conjuncts(self) -> Tuple[Formula, ...]:
        """Flatten nested conjunctions, left to right."""
        out = []
        for side in (self.left, self.right):
            if isinstance(side, And):
                out.extend(side.conjuncts())
            else:
                out.append(side)
        return tuple(out)

    def accept(self, v: Visitor):
        return v.visit_and(self)

    def __str__(self) -> str:
        return f"({self.left} AND {self.right})"


@dataclass(frozen=True, slots=True)
class Or(Formula):
    """Disjunction: union of both operands, which must share their free variables."""

    left: Formula
    right: Formula

    def __post_init__(self):
        if self.left.free_vars != self.right.free_vars:
            raise FormulaError(
                f"Disjuncts must have the same free variables: "
                f"{sorted(self.left.free_vars)} vs {sorted(self.right.free_vars)} in ({self.left} OR {self.right})"
            )
        self._set_free_vars(self.left.free_vars)

    @property
    def children(self) -> Tuple[Formula, ...]:
        return (self.left, self.right)

    def accept(self, v: Visitor):
        return v.visit_or(self)

    def __str__(self) -> str:
        return f"({self.left} OR {self.right})"


@dataclass(frozen=True, slots=True)
class Exists(Formula):
    """Existential quantification: projects `variables` out of the operand."""

    variables: Tuple[str, ...]
    operand: Formula

    def __post_init__(self):
        names = tuple(v.name if isinstance(v, Var) else v for v in self.variables)
        if not names:
            raise FormulaError("Exists needs at least one variable")
        missing = [n for n in names if n not in self.operand.free_vars]
        if missing:
            raise FormulaError(f"Quantified variables {missing} are not free in {self.operand}")
        object.__setattr__(self, "variables", names)
        self._set_free_vars(self.operand.free_vars - set(names))

    @property
    def children(self) -> Tuple[Formula, ...]:
        return (self.operand,)

    def accept(self, v: Visitor):
        return v.visit_exists(self)

    def __str__(self) -> str:
        return f"(EXISTS {', '.join(self.variables)}. {self.operand})"


@dataclass(frozen=True, slots=True)
class Once(Formula):
    """Bounded past: the operand held at some t' with t - upper <= t' <= t - lower."""

    interval: Interval
    operand: Formula

    def __post_init__(self):
        self._set_free_vars(self.operand.free_vars)

    @property
    def children(self) -> Tuple[Formula, ...]:
        return (self.operand,)

    def accept(self, v: Visitor):
        return v.visit_once(self)

    def __str__(self) -> str:
        return f"ONCE{self.interval} {self.operand}"


@dataclass(frozen=True, slots=True)
class Eventually(Formula):
    """Bounded future: the operand holds at some t' with t + lower <= t' <= t + upper.

    The upper bound must be finite; an unbounded future operator could
    never be resolved.
    """

    interval: Interval
    operand: Formula

    def __post_init__(self):
        if not self.interval.bounded:
            raise UnsafeFormula(f"EVENTUALLY needs a finite upper bound, got {self.interval}")
        self._set_free_vars(self.operand.free_vars)

    @property
    def children(self) -> Tuple[Formula, ...]:
        return (self.operand,)

    def accept(self, v: Visitor):
        return v.visit_eventually(self)

    def __str__(self) -> str:
        return f"EVENTUALLY{self.interval} {self.operand}"


@dataclass(frozen=True, slots=True)
class Aggregate(Formula):
    """Grouped aggregation over the operand's assignments at each time point.

    Partitions the operand's table by `group_by`, applies `op` to the
    multiset of `term` values in each group and binds the outcome to
    `result`.

    Attributes:
        op: One of CNT, SUM, AVG, MIN, MAX
        result: Variable receiving the aggregate value
        term: Aggregated term (optional for CNT, which counts rows)
        group_by: Grouping variables, all free in the operand
        operand: Aggregated formula
    """

    op: str
    result: str
    term: Optional[Term]
    group_by: Tuple[str, ...]
    operand: Formula

    def __post_init__(self):
        op = self.op.upper()
        if op not in AGGREGATIONS:
            raise FormulaError(f"Unknown aggregation '{self.op}'")
        term = None if self.term is None else as_term(self.term)
        if term is None and op != "CNT":
            raise FormulaError(f"{op} needs an aggregated term")
        group_by = tuple(g.name if isinstance(g, Var) else g for g in self.group_by)
        result = self.result.name if isinstance(self.result, Var) else self.result
        inner = self.operand.free_vars
        missing = [g for g in group_by if g not in inner]
        if missing:
            raise FormulaError(f"Group variables {missing} are not free in {self.operand}")
        if len(set(group_by)) != len(group_by):
            raise FormulaError(f"Duplicate group variables in {group_by}")
        if result in group_by:
            raise FormulaError(f"Result variable '{result}' is also a group variable")
        if term is not None and not term.free_vars <= inner:
            raise FormulaError(
                f"Aggregated term {term} uses variables not free in {self.operand}"
            )
        object.__setattr__(self, "op", op)
        object.__setattr__(self, "term", term)
        object.__setattr__(self, "group_by", group_by)
        object.__setattr__(self, "result", result)
        self._set_free_vars(set(group_by) | {result})

    @property
    def children(self) -> Tuple[Formula, ...]:
        return (self.operand,)

    def accept(self, v: Visitor):
        return v.visit_aggregate(self)

    def __str__(self) -> str:
        term = "" if self.term is None else f" {self.term}"
        groups = f"; {', '.join(self.group_by)}" if self.group_by else ""
        return f"({self.result} <- {self.op}{term}{groups} {self.operand})"


@dataclass(frozen=True, slots=True)
class WithDefault(Formula):
    """Default join: the operand, plus ``result = default`` for every key it misses.

    `keys` enumerates the tracked key assignments. Its free variables must
    be exactly the operand's free variables other than `result`.
    """

    operand: Formula
    keys: Formula
    result: str
    default: Any

    def __post_init__(self):
        result = self.result.name if isinstance(self.result, Var) else self.result
        type_of(self.default)
        if result not in self.operand.free_vars:
            raise FormulaError(f"Default variable '{result}' is not free in {self.operand}")
        if self.keys.free_vars != self.operand.free_vars - {result}:
            raise FormulaError(
                f"Key variables {sorted(self.keys.free_vars)} must equal "
                f"{sorted(self.operand.free_vars - {result})}"
            )
        object.__setattr__(self, "result", result)
        self._set_free_vars(self.operand.free_vars)

    @property
    def children(self) -> Tuple[Formula, ...]:
        return (self.operand, self.keys)

    def accept(self, v: Visitor):
        return v.visit_with_default(self)

    def __str__(self) -> str:
        return f"DEFAULT({self.operand}; {self.keys}; {self.result} = {format_value(self.default)})"


def walk(formula: Formula):
    """Yield every node of `formula` in preorder."""
    stack = [formula]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))
