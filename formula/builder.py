# formula/builder.py

"""
Builder API for constructing rule formulas as data.

Rules are written in Python rather than parsed from text:

    subnet, node = variables("subnet", "node")
    joined = once(atom("node_added", subnet, node))
    proposed = atom("block_proposal_added", node, subnet, var("signer"), var("hash"))
    rule = proposed & ~joined

Plain Python values passed where a term is expected become constants.
Interval bounds may be given as ``(lower, upper)``, as an Interval, or as the
`lower`/`upper` keyword arguments; an omitted upper bound is unbounded.
"""

from __future__ import annotations
import math
from typing import Any, Iterable, Optional, Sequence, Tuple, Union

from model.interval import Interval
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
from .terms import Const, Term, Var, as_term

VarLike = Union[str, Var]
IntervalLike = Union[Interval, Tuple[float, float], None]


def var(name: str) -> Var:
    return Var(name)


def variables(*names: str) -> Tuple[Var, ...]:
    """``x, y = variables("x", "y")``"""
    return tuple(Var(n) for n in names)


def const(value: Any) -> Const:
    return Const(value)


def _name(v: VarLike) -> str:
    return v.name if isinstance(v, Var) else v


def _names(vs: Union[VarLike, Iterable[VarLike], None]) -> Tuple[str, ...]:
    if vs is None:
        return ()
    if isinstance(vs, (str, Var)):
        return (_name(vs),)
    return tuple(_name(v) for v in vs)


def _interval(interval: IntervalLike, lower, upper) -> Interval:
    if isinstance(interval, Interval):
        return interval
    if interval is not None:
        lower, upper = interval
    return Interval(lower, math.inf if upper is None else upper)


# --- formulas ------------------------------------------------------------


def atom(relation: str, *args: Any) -> Atom:
    return Atom(relation, tuple(as_term(a) for a in args))


def truth() -> Truth:
    return Truth(True)


def falsity() -> Truth:
    return Truth(False)


def conj(*formulas: Formula) -> Formula:
    """Left-nested conjunction of one or more formulas."""
    if not formulas:
        return truth()
    result = formulas[0]
    for f in formulas[1:]:
        result = And(result, f)
    return result


def disj(*formulas: Formula) -> Formula:
    """Left-nested disjunction of one or more formulas."""
    if not formulas:
        return falsity()
    result = formulas[0]
    for f in formulas[1:]:
        result = Or(result, f)
    return result


def neg(formula: Formula) -> Not:
    return Not(formula)


def exists(vs: Union[VarLike, Sequence[VarLike]], formula: Formula) -> Exists:
    return Exists(_names(vs), formula)


def once(formula: Formula, interval: IntervalLike = None, *, lower=0, upper=None) -> Once:
    return Once(_interval(interval, lower, upper), formula)


def eventually(formula: Formula, interval: IntervalLike = None, *, lower=0, upper=None) -> Eventually:
    return Eventually(_interval(interval, lower, upper), formula)


# --- comparisons ---------------------------------------------------------


def eq(left: Any, right: Any) -> Compare:
    return Compare("=", as_term(left), as_term(right))


def ne(left: Any, right: Any) -> Compare:
    return Compare("!=", as_term(left), as_term(right))


def lt(left: Any, right: Any) -> Compare:
    return Compare("<", as_term(left), as_term(right))


def le(left: Any, right: Any) -> Compare:
    return Compare("<=", as_term(left), as_term(right))


def gt(left: Any, right: Any) -> Compare:
    return Compare(">", as_term(left), as_term(right))


def ge(left: Any, right: Any) -> Compare:
    return Compare(">=", as_term(left), as_term(right))


# --- aggregation ---------------------------------------------------------


def aggregate(
    op: str,
    result: VarLike,
    term: Optional[Any],
    group_by: Union[VarLike, Iterable[VarLike], None],
    formula: Formula,
) -> Aggregate:
    return Aggregate(
        op,
        _name(result),
        None if term is None else as_term(term),
        _names(group_by),
        formula,
    )


def cnt(result: VarLike, formula: Formula, group_by=None, term: Optional[Any] = None) -> Aggregate:
    """``result`` = number of assignments of `formula` per group."""
    return aggregate("CNT", result, term, group_by, formula)


def sum_of(result: VarLike, term: Any, formula: Formula, group_by=None) -> Aggregate:
    return aggregate("SUM", result, term, group_by, formula)


def avg(result: VarLike, term: Any, formula: Formula, group_by=None) -> Aggregate:
    return aggregate("AVG", result, term, group_by, formula)


def min_of(result: VarLike, term: Any, formula: Formula, group_by=None) -> Aggregate:
    return aggregate("MIN", result, term, group_by, formula)


def max_of(result: VarLike, term: Any, formula: Formula, group_by=None) -> Aggregate:
    return aggregate("MAX", result, term, group_by, formula)


def with_default(formula: Formula, keys: Formula, result: VarLike, default: Any = 0) -> WithDefault:
    """`formula`, plus ``result = default`` for each assignment of `keys` it lacks."""
    return WithDefault(formula, keys, _name(result), default)


def population_variance(
    result: VarLike,
    value: VarLike,
    formula: Formula,
    group_by=None,
    mean: VarLike = "_mean",
) -> Formula:
    """Population variance (divide by n) of `value` per group.

    Composed from two aggregation levels: the per-group mean of `value`,
    joined back onto `formula`, then the mean squared deviation from it.
    `value` must be a free variable of `formula`; `mean` names the
    intermediate variable and must not clash with `formula`'s variables.
    """
    groups = _names(group_by)
    value_name = _name(value)
    mean_name = _name(mean)
    mean_of = avg(mean_name, Var(value_name), formula, groups)
    deviation = (Var(value_name) - Var(mean_name)) * (Var(value_name) - Var(mean_name))
    return avg(result, deviation, And(formula, mean_of), groups)
