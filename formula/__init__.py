# formula/__init__.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Formula construction and checking for monitoring rules

"""Monitoring formulas built as data.

Rules are first-order temporal formulas over timestamped relational facts.
They are assembled with the builder API (there is no textual rule syntax),
then checked once before evaluation:

    1. Local well-formedness, as each node is constructed (FormulaError)
    2. Monitorability, i.e. range restriction of negations, comparisons and
       future operators (UnsafeFormula)
    3. Types against a relation Signature (IllTypedFormula)

Core Functions:
    construct: Runs checks 2 and 3 and returns the formula unchanged
    check_monitorable: Structural safety check only
    infer_types: Type environment of the formula's free variables
    future_horizon: Output latency implied by the formula's future operators

Example:
    >>> from formula import builder as b, construct
    >>> x = b.var("x")
    >>> rule = b.atom("moved", x) & ~b.eventually(b.atom("delivered", x), (0, 600))
    >>> construct(rule)
"""

from typing import Optional

from model.schema import Signature
from utils.logger import get_logger
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
    walk,
)
from .exceptions import FormulaError, IllTypedFormula, UnsafeFormula
from .safety import check_monitorable, future_horizon
from .terms import BinOp, Const, Neg, Term, UndefinedTerm, Var
from .typecheck import infer_types


def construct(formula: Formula, signature: Optional[Signature] = None) -> Formula:
    """Validate a formula for monitoring.

    Args:
        formula: Root of the formula built with the builder API
        signature: Relation signature to type check against, if any

    Returns:
        The same formula, once it is known to be monitorable (and well typed)

    Raises:
        UnsafeFormula: A negation or comparison is not range-restricted
        IllTypedFormula: The formula does not type check against `signature`
    """
    logger = get_logger()
    logger.debug(f"Checking formula: {formula}")
    check_monitorable(formula)
    if signature is not None:
        types = infer_types(formula, signature)
        logger.debug(f"Formula free variables typed as {dict(sorted((k, str(v)) for k, v in types.items()))}")
    return formula


__all__ = [
    "Aggregate",
    "And",
    "Atom",
    "BinOp",
    "Compare",
    "Const",
    "Eventually",
    "Exists",
    "Formula",
    "FormulaError",
    "IllTypedFormula",
    "Neg",
    "Not",
    "Once",
    "Or",
    "Term",
    "Truth",
    "UndefinedTerm",
    "UnsafeFormula",
    "Var",
    "WithDefault",
    "check_monitorable",
    "construct",
    "future_horizon",
    "infer_types",
    "walk",
]
