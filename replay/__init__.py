# replay/__init__.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# Replay input: fact logs and relation signatures

"""Readers for recorded input.

Monitoring can be driven from recorded protocol logs. A fact log lists
time points in timestamp order, each with the facts observed at it; a
signature file declares the relations those facts belong to. Both are
parsed with SLY grammars.

Core Functions:
    read_trace: Stream facts from a log file
    parse_log: Parse log text held in memory
    validate_trace_file: Check syntax, timestamp order and types
    read_signature / parse_signature: Relation declarations
"""

from .exceptions import SignatureFormatError, TraceFormatError
from .reader import parse_log, parse_signature, read_signature, read_trace, validate_trace_file

__all__ = [
    "SignatureFormatError",
    "TraceFormatError",
    "parse_log",
    "parse_signature",
    "read_signature",
    "read_trace",
    "validate_trace_file",
]
