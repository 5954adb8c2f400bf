# logic/monitor.py

"""
Monitor: fact ingestion and rule registration.

Facts arrive in non-decreasing timestamp order. Facts sharing a timestamp
form one time point, which stays open while more facts with that timestamp
may arrive and closes once the watermark moves past it. The watermark is
raised by every fact (to the fact's timestamp) and by explicit
advance_watermark calls during quiet periods.

Every closed time point is handed to each active rule exactly once. Rules
share nothing but the input; each owns its evaluator and window stores.
"""

from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from formula.ast_nodes import Formula
from model.errors import InputError, OutOfOrderFact, TypeMismatch
from model.fact import Fact, TimePoint
from model.schema import Signature
from model.snapshot import Snapshot
from utils.logger import get_logger
from .config import EvaluatorConfig
from .errors import RuleStateError
from .rule import Rule, RuleState, Sink
from .verdict import Report

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RuleHandle:
    id: int
    name: str


@dataclass(slots=True)
class Monitor:
    signature: Signature = field(default_factory=Signature)
    config: EvaluatorConfig = field(default_factory=EvaluatorConfig)
    sink: Optional[Sink] = None
    watermark: TimePoint = field(default=-math.inf, init=False)
    facts_accepted: int = field(default=0, init=False)
    facts_rejected: int = field(default=0, init=False)
    time_points_closed: int = field(default=0, init=False)
    _rules: Dict[int, Rule] = field(default_factory=dict, init=False)
    _next_handle: int = field(default=0, init=False)
    _next_index: int = field(default=0, init=False)
    _open_timestamp: Optional[TimePoint] = field(default=None, init=False)
    _open_facts: Set[Fact] = field(default_factory=set, init=False)
    _finished: bool = field(default=False, init=False)

    # --- registration ---------------------------------------------------

    def register(
        self,
        formula: Formula,
        name: Optional[str] = None,
        sink: Optional[Sink] = None,
        signature: Optional[Signature] = None,
    ) -> RuleHandle:
        """
        Activate a rule. Its relations are added to the monitor's signature.

        Raises:
            UnsafeFormula, IllTypedFormula: the formula is rejected
            SignatureConflict: `signature` contradicts an earlier declaration
        """
        if self._finished:
            raise RuleStateError("Monitor has finished")
        merged = self.signature if signature is None else self.signature.merge(signature)
        handle = RuleHandle(self._next_handle, name or f"rule{self._next_handle}")
        rule = Rule(handle.name, formula, merged, self.config, sink)
        self.signature = merged
        self._rules[handle.id] = rule
        self._next_handle += 1
        logger.rule_registered(handle.name, str(formula), rule.evaluator.future_horizon)
        return handle

    def deregister(self, handle: RuleHandle) -> int:
        """Stop a rule now; pending obligations are dropped. Returns how many."""
        rule = self._rule(handle)
        del self._rules[handle.id]
        return rule.cancel()

    def drain(self, handle: RuleHandle) -> None:
        """Stop reporting new time points for a rule; it closes once caught up.

        The time point open right now, if it holds facts, is still reported.
        """
        rule = self._rule(handle)
        cutoff = self._next_index if self._open_timestamp is not None else None
        rule.drain(cutoff)
        self._forget_closed()

    def state_of(self, handle: RuleHandle) -> RuleState:
        rule = self._rules.get(handle.id)
        return RuleState.CLOSED if rule is None else rule.state

    def rule(self, handle: RuleHandle) -> Rule:
        return self._rule(handle)

    def _rule(self, handle: RuleHandle) -> Rule:
        try:
            return self._rules[handle.id]
        except KeyError:
            raise RuleStateError(f"Rule '{handle.name}' is not registered") from None

    @property
    def rules(self) -> List[Rule]:
        return list(self._rules.values())

    # --- ingestion ------------------------------------------------------

    def submit(self, fact: Fact) -> List[Report]:
        """
        Ingest one fact; returns the reports that became final.

        Raises:
            TypeMismatch: the fact does not match its relation's schema
            OutOfOrderFact: the fact's timestamp is below the watermark
        """
        if fact.relation in self.signature or self.config.strict_signature:
            try:
                fact = self.signature.check(fact)
            except TypeMismatch as e:
                self.facts_rejected += 1
                logger.fact_rejected(str(fact), str(e))
                raise
        if fact.timestamp < self.watermark:
            self.facts_rejected += 1
            error = OutOfOrderFact(fact.timestamp, self.watermark)
            logger.fact_rejected(str(fact), str(error))
            raise error

        reports = self._move_watermark(fact.timestamp) if fact.timestamp > self.watermark else []
        self._open_timestamp = fact.timestamp
        self._open_facts.add(fact)
        self.facts_accepted += 1
        return reports

    def advance_watermark(self, timestamp: TimePoint) -> List[Report]:
        """Declare that no fact below `timestamp` will arrive."""
        if timestamp < self.watermark:
            raise InputError(f"Watermark cannot move back from {self.watermark} to {timestamp}")
        return self._move_watermark(timestamp)

    def finish(self) -> List[Report]:
        """End of trace: close the open time point, resolve everything, close all rules."""
        if self._finished:
            return []
        reports = self._move_watermark(math.inf)
        for rule in list(self._rules.values()):
            if rule.state is RuleState.ACTIVE:
                rule.drain(None)
        self._forget_closed()
        self._finished = True
        return reports

    def _move_watermark(self, timestamp: TimePoint) -> List[Report]:
        self.watermark = timestamp
        reports: List[Report] = []
        if self._open_timestamp is not None and timestamp > self._open_timestamp:
            snapshot = Snapshot.from_facts(self._next_index, self._open_timestamp, self._open_facts)
            self._next_index += 1
            self._open_timestamp = None
            self._open_facts = set()
            self.time_points_closed += 1
            logger.time_point_closed(snapshot.index, snapshot.timestamp, len(snapshot))
            for rule in list(self._rules.values()):
                reports.extend(rule.accept(snapshot, timestamp))
        else:
            for rule in list(self._rules.values()):
                reports.extend(rule.advance(timestamp))
        self._forget_closed()
        if self.sink is not None:
            for report in reports:
                self.sink(report)
        return reports

    def _forget_closed(self) -> None:
        for handle_id in [h for h, r in self._rules.items() if r.state is RuleState.CLOSED]:
            del self._rules[handle_id]

    # --- introspection --------------------------------------------------

    @property
    def pending(self) -> int:
        return sum(rule.pending for rule in self._rules.values())

    def stats(self) -> Dict[str, object]:
        return {
            "watermark": self.watermark,
            "facts_accepted": self.facts_accepted,
            "facts_rejected": self.facts_rejected,
            "time_points": self.time_points_closed,
            "rules": {
                rule.name: {
                    "state": rule.state.name,
                    "pending": rule.pending,
                    "reports": rule.reports_emitted,
                    "degraded": rule.evaluator.degraded,
                    "stores": rule.evaluator.stats(),
                }
                for rule in self._rules.values()
            },
        }
