# formula/safety.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Structural monitorability check and conjunction planning

"""Monitorability (range restriction) of formulas.

A formula is monitorable when every node can be computed from finite
binding tables. Atoms, constants and temporal operators over monitorable
operands are always fine; negations and comparisons are the problem, since
on their own they describe infinitely many assignments. They are allowed:

    * inside a conjunction, once the positive conjuncts bind all of their
      free variables (anti-join for negations, filter for comparisons);
    * as an equality ``x = t`` inside a conjunction, where ``t`` only uses
      bound variables, which extends every row with ``x``;
    * standalone, when closed, or as ``x = <closed term>``.

Conjunctions are planned as a whole: nested ``And`` nodes are flattened, the
positive conjuncts are joined first and the constraints applied in an order
where each one's variables are already bound. The same plan drives the type
checker and the operator compiler, so every formula that passes the check
here can be compiled.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from .ast_nodes import (
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
from .exceptions import UnsafeFormula


class StepKind(Enum):
    JOIN = "join"
    ANTI_JOIN = "anti-join"
    FILTER = "filter"
    EXTEND = "extend"


@dataclass(frozen=True, slots=True)
class PlanStep:
    """One conjunct applied to the running join of a conjunction."""

    kind: StepKind
    formula: Formula
    bound: FrozenSet[str]  # variables bound before this step


@dataclass(frozen=True, slots=True)
class ConjunctionPlan:
    base: Formula
    steps: Tuple[PlanStep, ...]


def _is_constraint(f: Formula) -> bool:
    return isinstance(f, (Not, Compare))


def standalone_monitorable_shape(f: Formula) -> bool:
    """True if a negation/comparison can be computed without a positive context."""
    if f.closed:
        return True
    return isinstance(f, Compare) and f.binding(frozenset()) is not None


def plan_conjunction(node: And) -> ConjunctionPlan:
    """Order the conjuncts of `node` so every constraint sees its variables bound.

    Raises:
        UnsafeFormula: some negation or comparison can never be range-restricted
    """
    conjuncts = list(node.conjuncts())
    positives = [c for c in conjuncts if not _is_constraint(c)]
    constraints = [c for c in conjuncts if _is_constraint(c)]

    if positives:
        base = positives.pop(0)
    else:
        candidates = [c for c in constraints if standalone_monitorable_shape(c)]
        if not candidates:
            raise UnsafeFormula(f"No conjunct of {node} binds its variables")
        base = candidates[0]
        constraints.remove(base)

    steps: List[PlanStep] = []
    bound = base.free_vars
    for positive in positives:
        steps.append(PlanStep(StepKind.JOIN, positive, bound))
        bound = bound | positive.free_vars

    remaining = constraints
    while remaining:
        progress = False
        deferred = []
        for c in remaining:
            kind = _constraint_kind(c, bound)
            if kind is None:
                deferred.append(c)
                continue
            steps.append(PlanStep(kind, c, bound))
            bound = bound | c.free_vars
            progress = True
        remaining = deferred
        if not progress:
            unbound = sorted(set().union(*(c.free_vars for c in remaining)) - bound)
            raise UnsafeFormula(
                f"{remaining[0]} is not range-restricted in {node}: "
                f"variables {unbound} are not bound by a positive conjunct"
            )
    return ConjunctionPlan(base, tuple(steps))


def _constraint_kind(c: Formula, bound: FrozenSet[str]) -> Optional[StepKind]:
    if isinstance(c, Compare):
        if c.free_vars <= bound:
            return StepKind.FILTER
        if c.binding(bound) is not None:
            return StepKind.EXTEND
        return None
    # negation
    if not c.free_vars <= bound:
        return None
    if isinstance(c.operand, Compare):
        return StepKind.FILTER
    return StepKind.ANTI_JOIN


def check_monitorable(formula: Formula) -> None:
    """Raise UnsafeFormula unless every node of `formula` is range-restricted."""
    _check(formula)


def _check(f: Formula) -> None:
    if isinstance(f, (Truth, Atom)):
        return
    if isinstance(f, Compare):
        if not standalone_monitorable_shape(f):
            raise UnsafeFormula(
                f"Comparison {f} needs a positive conjunct binding {sorted(f.free_vars)}"
            )
        return
    if isinstance(f, Not):
        if not f.closed:
            raise UnsafeFormula(
                f"Negation {f} needs a positive conjunct binding {sorted(f.free_vars)}"
            )
        _check(f.operand)
        return
    if isinstance(f, And):
        plan = plan_conjunction(f)
        _check(plan.base)
        for step in plan.steps:
            if step.kind is StepKind.JOIN:
                _check(step.formula)
            elif step.kind is StepKind.ANTI_JOIN:
                _check(step.formula.operand)
        return
    if isinstance(f, (Or, Exists, Once, Eventually, Aggregate, WithDefault)):
        for child in f.children:
            _check(child)
        return
    raise UnsafeFormula(f"Unsupported formula node {type(f).__name__}")


def future_horizon(formula: Formula) -> float:
    """Output latency: the largest sum of Eventually upper bounds along any path.

    A time point's result is final only once the watermark has moved this far
    past its timestamp.
    """
    own = formula.interval.upper if isinstance(formula, Eventually) else 0
    return own + max((future_horizon(c) for c in formula.children), default=0)
