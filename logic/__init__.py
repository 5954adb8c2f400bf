# logic/__init__.py

"""Core evaluation interface.

This package provides:
  • Monitor: fact ingestion, watermarks and rule registration
  • Rule / RuleState: per-rule lifecycle (CONSTRUCTING, ACTIVE, DRAINING, CLOSED)
  • Evaluator: incremental evaluation of one compiled formula
  • Report / Verdict: per time point results
  • EvaluatorConfig: retention limit and signature strictness
  • runner.PolicyAndTraceMonitor: CLI-style runner for a policy + fact log
"""

from .config import EvaluatorConfig
from .errors import InputError, OutOfOrderFact, RuleStateError, SignatureConflict, TypeMismatch
from .evaluator import Evaluator
from .monitor import Monitor, RuleHandle
from .rule import Rule, RuleState
from .verdict import Report, Verdict

__all__ = [
    "Evaluator",
    "EvaluatorConfig",
    "InputError",
    "Monitor",
    "OutOfOrderFact",
    "Report",
    "Rule",
    "RuleHandle",
    "RuleState",
    "RuleStateError",
    "SignatureConflict",
    "TypeMismatch",
    "Verdict",
]
