# model/interval.py

"""
Closed time intervals [lower, upper] attached to temporal operators.

Bounds are relative distances from the current time point: a past operator
looks back into [now - upper, now - lower], a future operator ahead into
[now + lower, now + upper]. The upper bound may be infinite.
"""

from __future__ import annotations
import math
from dataclasses import dataclass

from .fact import TimePoint


@dataclass(frozen=True, slots=True)
class Interval:
    lower: TimePoint = 0
    upper: TimePoint = math.inf

    def __post_init__(self):
        if self.lower < 0:
            raise ValueError(f"Interval lower bound must be >= 0, got {self.lower}")
        if self.upper < self.lower:
            raise ValueError(f"Interval upper bound {self.upper} is below lower bound {self.lower}")
        if math.isinf(self.lower):
            raise ValueError("Interval lower bound must be finite")

    @property
    def bounded(self) -> bool:
        return not math.isinf(self.upper)

    def contains_past(self, now: TimePoint, then: TimePoint) -> bool:
        """True if `then` lies in [now - upper, now - lower]."""
        distance = now - then
        return self.lower <= distance <= self.upper

    def contains_future(self, now: TimePoint, then: TimePoint) -> bool:
        """True if `then` lies in [now + lower, now + upper]."""
        distance = then - now
        return self.lower <= distance <= self.upper

    def __str__(self) -> str:
        upper = "*)" if not self.bounded else f"{self.upper}]"
        return f"[{self.lower},{upper}"


UNBOUNDED = Interval(0, math.inf)
