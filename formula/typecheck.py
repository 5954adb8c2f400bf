# formula/typecheck.py

"""
Type inference for formulas against a relation Signature.

Each free variable gets a ValueType from the atom field it occupies, from
the term an equality binds it to, or from the aggregation producing it.
Quantified and aggregated-away variables are scoped to their node, so the
same name may be reused with another type elsewhere in the formula.

Must run after the monitorability check: conjunctions are typed in the
order planned there, which guarantees a variable is typed before it is
used in a comparison.
"""

from __future__ import annotations
from typing import Dict, Mapping, Optional

from model.schema import Signature
from model.value import ValueType, coerce, is_numeric, type_of
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
from .exceptions import IllTypedFormula
from .safety import StepKind, plan_conjunction
from .terms import BinOp, Const, Neg, Term, Var

TypeEnv = Dict[str, ValueType]


def _merge(into: TypeEnv, other: Mapping[str, ValueType], where: Formula) -> TypeEnv:
    for name, vtype in other.items():
        current = into.get(name)
        if current is not None and current is not vtype:
            raise IllTypedFormula(f"Variable '{name}' is used as {current} and as {vtype} in {where}")
        into[name] = vtype
    return into


def term_type(term: Term, env: Mapping[str, ValueType]) -> ValueType:
    """Type of `term` under `env`; arithmetic needs numeric operands."""
    if isinstance(term, Var):
        try:
            return env[term.name]
        except KeyError:
            raise IllTypedFormula(f"Variable '{term.name}' has no known type") from None
    if isinstance(term, Const):
        return type_of(term.value)
    if isinstance(term, Neg):
        inner = term_type(term.operand, env)
        if not is_numeric(inner):
            raise IllTypedFormula(f"Arithmetic over {inner} value in {term}")
        return inner
    if isinstance(term, BinOp):
        left = term_type(term.left, env)
        right = term_type(term.right, env)
        if not (is_numeric(left) and is_numeric(right)):
            raise IllTypedFormula(f"Arithmetic over {left} and {right} values in {term}")
        if term.op == "/":
            return ValueType.FLOAT
        if left is ValueType.INT and right is ValueType.INT:
            return ValueType.INT
        return ValueType.FLOAT
    raise IllTypedFormula(f"Unsupported term {term!r}")


def _comparable(left: ValueType, right: ValueType) -> bool:
    return left is right or (is_numeric(left) and is_numeric(right))


class TypeChecker:
    """Visitor returning the type environment of each node's free variables."""

    def __init__(self, signature: Signature):
        self.signature = signature

    def visit_truth(self, n: Truth) -> TypeEnv:
        return {}

    def visit_atom(self, n: Atom) -> TypeEnv:
        schema = self.signature.get(n.relation)
        if schema is None:
            raise IllTypedFormula(f"Relation '{n.relation}' is not declared")
        if len(n.args) != schema.arity:
            raise IllTypedFormula(
                f"{n} has {len(n.args)} arguments, relation {schema} has {schema.arity}"
            )
        env: TypeEnv = {}
        for arg, (field_name, field_type) in zip(n.args, schema.fields):
            if isinstance(arg, Var):
                _merge(env, {arg.name: field_type}, n)
            else:
                try:
                    coerce(arg.value, field_type)
                except TypeError as exc:
                    raise IllTypedFormula(f"Constant for field '{field_name}' of {n}: {exc}") from exc
        return env

    def _compare(self, n: Compare, env: TypeEnv) -> TypeEnv:
        binding = n.binding(frozenset(env))
        if binding is not None:
            name, term = binding
            return {name: term_type(term, env)}
        left = term_type(n.left, env)
        right = term_type(n.right, env)
        if not _comparable(left, right):
            raise IllTypedFormula(f"Cannot compare {left} with {right} in {n}")
        return {}

    def visit_compare(self, n: Compare) -> TypeEnv:
        return self._compare(n, {})

    def visit_not(self, n: Not) -> TypeEnv:
        return n.operand.accept(self)

    def visit_and(self, n: And) -> TypeEnv:
        plan = plan_conjunction(n)
        env = dict(plan.base.accept(self))
        for step in plan.steps:
            f = step.formula
            if step.kind is StepKind.JOIN:
                _merge(env, f.accept(self), n)
            elif step.kind is StepKind.ANTI_JOIN:
                _merge(env, f.operand.accept(self), n)
            else:
                compare = f.operand if isinstance(f, Not) else f
                _merge(env, self._compare(compare, env), n)
        return env

    def visit_or(self, n: Or) -> TypeEnv:
        return _merge(dict(n.left.accept(self)), n.right.accept(self), n)

    def visit_exists(self, n: Exists) -> TypeEnv:
        env = n.operand.accept(self)
        return {k: v for k, v in env.items() if k not in n.variables}

    def visit_once(self, n: Once) -> TypeEnv:
        return n.operand.accept(self)

    def visit_eventually(self, n: Eventually) -> TypeEnv:
        return n.operand.accept(self)

    def visit_aggregate(self, n: Aggregate) -> TypeEnv:
        inner = n.operand.accept(self)
        value_type: Optional[ValueType] = None
        if n.term is not None:
            value_type = term_type(n.term, inner)
        if n.op in ("SUM", "AVG") and not is_numeric(value_type):
            raise IllTypedFormula(f"{n.op} over non-numeric {value_type} values in {n}")
        if n.op == "CNT":
            result = ValueType.INT
        elif n.op == "AVG":
            result = ValueType.FLOAT
        else:
            result = value_type
        env = {g: inner[g] for g in n.group_by}
        env[n.result] = result
        return env

    def visit_with_default(self, n: WithDefault) -> TypeEnv:
        env = dict(n.operand.accept(self))
        _merge(env, n.keys.accept(self), n)
        try:
            coerce(n.default, env[n.result])
        except TypeError as exc:
            raise IllTypedFormula(f"Default for '{n.result}' in {n}: {exc}") from exc
        return env


def infer_types(formula: Formula, signature: Signature) -> TypeEnv:
    """Return the type of every free variable of `formula`.

    Raises:
        IllTypedFormula: undeclared relation, arity mismatch, conflicting
            variable types, arithmetic or SUM/AVG over non-numeric values,
            or comparison of incompatible values
    """
    return formula.accept(TypeChecker(signature))
