# formula/exceptions.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Custom exceptions for formula construction and checking

"""Domain-specific exceptions for rule formulas.

Formulas are rejected when they are built, checked or registered, never
while they are being evaluated. Every exception below derives from
FormulaError so that callers can refuse a rule with a single handler.
"""


class FormulaError(ValueError):
    """Exception raised when a formula is structurally malformed.

    Covers local well-formedness problems detected while a node is being
    constructed: disjuncts over different variables, quantifying a variable
    that is not free, inconsistent aggregation or default-join variables.
    """

    pass


class UnsafeFormula(FormulaError):
    """Exception raised when a formula is not monitorable.

    A negation, comparison or bounded-future operator whose variables are not
    range-restricted by a positive context would require enumerating an
    unbounded domain of assignments. Such rules are never activated.
    """

    pass


class IllTypedFormula(FormulaError):
    """Exception raised when a formula does not type check against a signature."""

    pass
