# model/errors.py

"""
Input contract violations raised at fact ingestion.

These are rejections, not faults: the offending fact (or watermark) is
refused and the evaluator state is left exactly as it was.
"""


class InputError(ValueError):
    """Base class for rejected input."""


class OutOfOrderFact(InputError):
    """A fact's timestamp precedes the current watermark."""

    def __init__(self, timestamp, watermark):
        super().__init__(
            f"Fact at {timestamp} precedes the watermark {watermark}; "
            f"facts must arrive in non-decreasing timestamp order"
        )
        self.timestamp = timestamp
        self.watermark = watermark


class TypeMismatch(InputError):
    """A fact does not match the declared schema of its relation."""


class SignatureConflict(ValueError):
    """Two signatures declare the same relation differently."""
