# logic/rule.py

"""
Rule: a named formula with its own evaluator, sink and lifecycle.

    CONSTRUCTING -> ACTIVE -> DRAINING -> CLOSED

A rule is CONSTRUCTING while its formula is checked and compiled; a rule
whose formula is rejected never becomes ACTIVE. ACTIVE rules receive every
closed time point. DRAINING rules report no time point past a cutoff but
keep observing facts and watermark advances until every obligation up to
the cutoff is resolved, then close themselves. Cancelling discards
pending obligations without reporting them. CLOSED rules hold no window state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, List, Optional

from formula.ast_nodes import Formula
from model.fact import TimePoint
from model.schema import Signature
from model.snapshot import Snapshot
from utils.logger import get_logger
from .config import EvaluatorConfig
from .errors import RuleStateError
from .evaluator import Evaluator
from .operators import Step
from .verdict import Report

logger = get_logger(__name__)

Sink = Callable[[Report], None]


class RuleState(Enum):
    CONSTRUCTING = auto()
    ACTIVE = auto()
    DRAINING = auto()
    CLOSED = auto()


@dataclass(slots=True)
class Rule:
    name: str
    formula: Formula
    signature: Signature
    config: EvaluatorConfig = field(default_factory=EvaluatorConfig)
    sink: Optional[Sink] = None
    state: RuleState = field(default=RuleState.CONSTRUCTING, init=False)
    evaluator: Optional[Evaluator] = field(default=None, init=False)
    reports_emitted: int = field(default=0, init=False)
    _report_upto: Optional[int] = field(default=None, init=False)
    _last_fed: int = field(default=-1, init=False)
    _last_reported: int = field(default=-1, init=False)

    def __post_init__(self):
        # formula errors propagate; the rule stays CONSTRUCTING and is discarded
        self.evaluator = Evaluator(self.formula, self.signature, self.config)
        self.state = RuleState.ACTIVE

    @property
    def closed_formula(self) -> bool:
        return not self.formula.free_vars

    @property
    def pending(self) -> int:
        """Time points fed but not yet reported (only those still to be reported when draining)."""
        if self.state is RuleState.CLOSED:
            return 0
        if self.state is RuleState.DRAINING:
            return sum(1 for index, _ in self.evaluator.pending_time_points if index <= self._report_upto)
        return self.evaluator.pending

    def accept(self, snapshot: Snapshot, watermark: TimePoint) -> List[Report]:
        """Feed a closed time point.

        Draining rules keep observing later time points so their obligations
        see every fact up to the deadline, but report only up to the cutoff.
        """
        if self.state not in (RuleState.ACTIVE, RuleState.DRAINING):
            raise RuleStateError(f"Rule '{self.name}' is {self.state.name}")
        steps = self.evaluator.feed(snapshot, watermark)
        self._last_fed = snapshot.index
        return self._finish_round(steps)

    def advance(self, watermark: TimePoint) -> List[Report]:
        if self.state not in (RuleState.ACTIVE, RuleState.DRAINING):
            raise RuleStateError(f"Rule '{self.name}' is {self.state.name}")
        return self._finish_round(self.evaluator.advance(watermark))

    def drain(self, cutoff: Optional[int] = None) -> None:
        """Report time points up to index `cutoff` (None: those already fed), then close."""
        if self.state is not RuleState.ACTIVE:
            raise RuleStateError(f"Cannot drain rule '{self.name}' in state {self.state.name}")
        self._report_upto = self._last_fed if cutoff is None else max(cutoff, self._last_fed)
        self.state = RuleState.DRAINING
        logger.debug(f"Rule '{self.name}' draining up to time point {self._report_upto}, {self.pending} pending")
        self._close_if_drained()

    def cancel(self) -> int:
        """Close at once, discarding pending obligations. Returns how many were dropped."""
        if self.state is RuleState.CLOSED:
            raise RuleStateError(f"Rule '{self.name}' is already closed")
        dropped = self.pending
        self.evaluator.release()
        logger.obligations_dropped(self.name, dropped)
        self.state = RuleState.CLOSED
        logger.rule_closed(self.name, self.reports_emitted)
        return dropped

    def _finish_round(self, steps: List[Step]) -> List[Report]:
        if self.state is RuleState.DRAINING:
            steps = [s for s in steps if s.index <= self._report_upto]
        reports = [self._report(s) for s in steps]
        if self.state is RuleState.DRAINING:
            self._close_if_drained()
        return reports

    def _close_if_drained(self) -> None:
        if self._last_reported >= self._report_upto:
            self.evaluator.release()
            self.state = RuleState.CLOSED
            logger.rule_closed(self.name, self.reports_emitted)

    def _report(self, step: Step) -> Report:
        degraded = self.evaluator.degraded
        if self.closed_formula:
            report = Report(self.name, step.index, step.timestamp, boolean=bool(step.table), degraded=degraded)
        else:
            report = Report(
                self.name, step.index, step.timestamp, tuple(step.table.assignments()), degraded=degraded
            )
        self.reports_emitted += 1
        self._last_reported = step.index
        logger.report_emitted(report.to_line(), report.satisfied)
        if self.sink is not None:
            self.sink(report)
        return report
