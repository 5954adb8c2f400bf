# logic/errors.py

"""
Errors raised by the monitor API.

Input contract violations live with the input model and are re-exported
here so that callers of the monitor need a single import.
"""

from model.errors import InputError, OutOfOrderFact, SignatureConflict, TypeMismatch


class RuleStateError(RuntimeError):
    """Operation not allowed in the rule's (or monitor's) current state."""


__all__ = [
    "InputError",
    "OutOfOrderFact",
    "RuleStateError",
    "SignatureConflict",
    "TypeMismatch",
]
