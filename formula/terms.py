# formula/terms.py

"""
Terms: the value expressions appearing inside atoms, comparisons and
aggregations.

A term is a variable, a constant, or arithmetic over terms. Terms are
immutable and hashable; Python's arithmetic operators build them, so
``var("n") - var("avg")`` is a BinOp.

Evaluating a term needs an assignment covering its free variables. Division
or modulo by zero has no value: evaluation raises UndefinedTerm and the
caller drops the row instead of failing the time point.
"""

from __future__ import annotations
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Mapping

from model.value import Value, format_value, type_of


class UndefinedTerm(ArithmeticError):
    """Term has no value under the given assignment (division by zero)."""


@dataclass(frozen=True, slots=True)
class Term:
    """Base class of value expressions."""

    @property
    def free_vars(self) -> FrozenSet[str]:
        raise NotImplementedError

    @property
    def closed(self) -> bool:
        return not self.free_vars

    def evaluate(self, assignment: Mapping[str, Value]) -> Value:
        raise NotImplementedError

    # arithmetic builds terms
    def __add__(self, other):
        return BinOp("+", self, as_term(other))

    def __radd__(self, other):
        return BinOp("+", as_term(other), self)

    def __sub__(self, other):
        return BinOp("-", self, as_term(other))

    def __rsub__(self, other):
        return BinOp("-", as_term(other), self)

    def __mul__(self, other):
        return BinOp("*", self, as_term(other))

    def __rmul__(self, other):
        return BinOp("*", as_term(other), self)

    def __truediv__(self, other):
        return BinOp("/", self, as_term(other))

    def __rtruediv__(self, other):
        return BinOp("/", as_term(other), self)

    def __mod__(self, other):
        return BinOp("%", self, as_term(other))

    def __rmod__(self, other):
        return BinOp("%", as_term(other), self)

    def __neg__(self):
        return Neg(self)

    def __pow__(self, exponent):
        # only small integer powers, expanded into products
        if not isinstance(exponent, int) or isinstance(exponent, bool) or exponent < 1:
            raise ValueError(f"Only positive integer powers of terms are supported, got {exponent!r}")
        result = self
        for _ in range(exponent - 1):
            result = BinOp("*", result, self)
        return result


@dataclass(frozen=True, slots=True)
class Var(Term):
    name: str

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ValueError(f"Variable name must be a non-empty string, got {self.name!r}")

    @property
    def free_vars(self) -> FrozenSet[str]:
        return frozenset((self.name,))

    def evaluate(self, assignment: Mapping[str, Value]) -> Value:
        try:
            return assignment[self.name]
        except KeyError:
            raise KeyError(f"Variable '{self.name}' is not bound") from None

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class Const(Term):
    value: Any

    def __post_init__(self):
        type_of(self.value)  # rejects unsupported values early

    @property
    def free_vars(self) -> FrozenSet[str]:
        return frozenset()

    def evaluate(self, assignment: Mapping[str, Value]) -> Value:
        return self.value

    def __str__(self) -> str:
        return format_value(self.value)


def _divide(left, right):
    if right == 0:
        raise UndefinedTerm(f"{left} / {right}")
    return left / right


def _modulo(left, right):
    if right == 0:
        raise UndefinedTerm(f"{left} % {right}")
    return left % right


ARITHMETIC: Dict[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": _divide,
    "%": _modulo,
}


@dataclass(frozen=True, slots=True)
class BinOp(Term):
    op: str
    left: Term
    right: Term

    def __post_init__(self):
        if self.op not in ARITHMETIC:
            raise ValueError(f"Unknown arithmetic operator '{self.op}'")

    @property
    def free_vars(self) -> FrozenSet[str]:
        return self.left.free_vars | self.right.free_vars

    def evaluate(self, assignment: Mapping[str, Value]) -> Value:
        return ARITHMETIC[self.op](self.left.evaluate(assignment), self.right.evaluate(assignment))

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


@dataclass(frozen=True, slots=True)
class Neg(Term):
    operand: Term

    @property
    def free_vars(self) -> FrozenSet[str]:
        return self.operand.free_vars

    def evaluate(self, assignment: Mapping[str, Value]) -> Value:
        return -self.operand.evaluate(assignment)

    def __str__(self) -> str:
        return f"-{self.operand}"


def as_term(value: Any) -> Term:
    """Wrap plain Python values as constants; terms pass through."""
    if isinstance(value, Term):
        return value
    return Const(value)
