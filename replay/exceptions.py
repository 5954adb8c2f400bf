# replay/exceptions.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Custom exceptions for replay input files


class TraceFormatError(Exception):
    """Exception raised when a fact log cannot be read or parsed.

    Carries the line number of the offending input when it is known.
    """

    def __init__(self, message: str, lineno: int = None):
        if lineno is not None:
            message = f"line {lineno}: {message}"
        super().__init__(message)
        self.lineno = lineno


class SignatureFormatError(TraceFormatError):
    """Exception raised when a signature file is malformed or inconsistent."""

    pass
