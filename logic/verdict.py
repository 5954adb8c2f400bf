# logic/verdict.py

"""
Verdicts and reports emitted by rules.

A Report is the final result of one rule at one time point. Closed rules
report a Boolean; rules with free variables report their satisfying
assignments. Reports are never revised once emitted.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Optional, Tuple

from model.fact import TimePoint
from model.value import Value, format_value


class Verdict(Enum):
    """Three-state result of a rule at a time point."""
    INCONCLUSIVE = auto()  # window data was dropped, result may be incomplete
    TRUE = auto()  # formula holds
    FALSE = auto()  # formula does not hold


@dataclass(frozen=True, slots=True)
class Report:
    rule: str
    time_point: int
    timestamp: TimePoint
    assignments: Tuple[Dict[str, Value], ...] = ()
    boolean: Optional[bool] = None  # set for closed formulas only
    degraded: bool = False

    @property
    def satisfied(self) -> bool:
        if self.boolean is not None:
            return self.boolean
        return bool(self.assignments)

    @property
    def verdict(self) -> Verdict:
        if self.degraded:
            return Verdict.INCONCLUSIVE
        return Verdict.TRUE if self.satisfied else Verdict.FALSE

    def to_line(self) -> str:
        """Deterministic one-line rendering; identical inputs give identical lines."""
        head = f"@{self.timestamp} (time point {self.time_point}) {self.rule}:"
        if self.boolean is not None:
            body = "true" if self.boolean else "false"
        elif not self.assignments:
            body = "{}"
        else:
            body = " ".join(
                "(" + ", ".join(f"{k}={format_value(v)}" for k, v in sorted(a.items())) + ")"
                for a in self.assignments
            )
        suffix = " [degraded]" if self.degraded else ""
        return f"{head} {body}{suffix}"

    def __str__(self) -> str:
        return self.to_line()
