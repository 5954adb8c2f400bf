# tests/logic_tests/test_rule_monitor_scenarios.py

import pytest

from formula import UnsafeFormula
from formula import builder as b
from logic import (
    EvaluatorConfig,
    InputError,
    Monitor,
    OutOfOrderFact,
    RuleState,
    RuleStateError,
    SignatureConflict,
    TypeMismatch,
    Verdict,
)
from model import Fact, RelationSchema, Signature, ValueType

x = b.var("x")


def P(value, ts):
    return Fact("p", (value,), ts)


def lines(reports):
    return [(r.timestamp, [dict(a) for a in r.assignments]) for r in reports]


class TestRuleLifecycleScenarios:
    """
    Registration, deregistration and draining of rules; the difference
    between cancelled and drained obligations.
    """

    def eventually_monitor(self, signature):
        monitor = Monitor(signature)
        handle = monitor.register(b.eventually(b.atom("p", x), (0, 10)), name="ev")
        return monitor, handle

    def test_01_register_activates_rule(self, simple_signature):
        monitor = Monitor(simple_signature)
        handle = monitor.register(b.atom("p", x))
        assert handle.name == "rule0"
        assert monitor.state_of(handle) is RuleState.ACTIVE
        assert monitor.rule(handle).evaluator.future_horizon == 0

    def test_02_rejected_formula_never_becomes_a_rule(self, simple_signature):
        monitor = Monitor(simple_signature)
        with pytest.raises(UnsafeFormula):
            monitor.register(~b.atom("p", x))
        assert monitor.rules == []

    def test_03_deregister_drops_pending_obligations(self, simple_signature):
        """A cancelled rule never reports the time points it was waiting on."""
        monitor, handle = self.eventually_monitor(simple_signature)
        monitor.submit(P(1, 0))
        monitor.submit(P(2, 5))
        assert monitor.pending == 1

        assert monitor.deregister(handle) == 1
        assert monitor.state_of(handle) is RuleState.CLOSED
        assert monitor.pending == 0
        assert monitor.submit(P(3, 30)) == []
        assert monitor.finish() == []

    def test_04_drain_completes_obligations_with_later_facts(self, simple_signature):
        """
        Draining reports only time points up to the cutoff, but their
        obligations still see facts that arrive after draining began.
        """
        monitor, handle = self.eventually_monitor(simple_signature)
        monitor.submit(P(1, 0))
        monitor.submit(P(2, 5))
        monitor.drain(handle)
        assert monitor.state_of(handle) is RuleState.DRAINING

        # time point 0 resolves once the watermark passes 10
        assert lines(monitor.submit(P(3, 12))) == [(0, [{"x": 1}, {"x": 2}])]
        assert monitor.pending == 1
        assert monitor.submit(P(4, 14)) == []

        # time point 1 (at 5) is the cutoff; later time points go unreported
        assert lines(monitor.submit(P(9, 30))) == [(5, [{"x": 2}, {"x": 3}, {"x": 4}])]
        assert monitor.state_of(handle) is RuleState.CLOSED
        assert monitor.pending == 0

    def test_05_drain_without_pending_closes_at_once(self, simple_signature):
        monitor = Monitor(simple_signature)
        handle = monitor.register(b.atom("p", x))
        monitor.submit(P(1, 0))
        monitor.advance_watermark(1)
        monitor.drain(handle)
        assert monitor.state_of(handle) is RuleState.CLOSED
        assert monitor.rules == []

    def test_06_closed_rules_reject_operations(self, simple_signature):
        monitor, handle = self.eventually_monitor(simple_signature)
        monitor.deregister(handle)
        with pytest.raises(RuleStateError):
            monitor.deregister(handle)
        with pytest.raises(RuleStateError):
            monitor.drain(handle)
        with pytest.raises(RuleStateError):
            monitor.rule(handle)

    def test_07_draining_rule_cannot_drain_again(self, simple_signature):
        monitor, handle = self.eventually_monitor(simple_signature)
        monitor.submit(P(1, 0))
        monitor.advance_watermark(1)
        rule = monitor.rule(handle)
        monitor.drain(handle)
        assert rule.state is RuleState.DRAINING
        with pytest.raises(RuleStateError):
            rule.drain()

    def test_08_finish_resolves_everything_and_closes_rules(self, simple_signature):
        monitor, handle = self.eventually_monitor(simple_signature)
        monitor.submit(P(1, 0))
        monitor.submit(P(2, 5))
        reports = monitor.finish()
        assert lines(reports) == [(0, [{"x": 1}, {"x": 2}]), (5, [{"x": 2}])]
        assert monitor.state_of(handle) is RuleState.CLOSED
        assert monitor.finish() == []
        with pytest.raises(RuleStateError):
            monitor.register(b.atom("p", x))

    def test_09_independent_rules_share_only_input(self, simple_signature):
        monitor = Monitor(simple_signature)
        now = monitor.register(b.atom("p", x), name="now")
        later = monitor.register(b.eventually(b.atom("p", x), (0, 10)), name="later")
        monitor.submit(P(1, 0))
        reports = monitor.submit(P(2, 5))
        assert [r.rule for r in reports] == ["now"]
        monitor.deregister(now)
        reports = monitor.advance_watermark(11)
        assert [r.rule for r in reports] == ["later"]
        assert monitor.state_of(later) is RuleState.ACTIVE


class TestIngestionScenarios:
    """Input validation, watermarks, sinks and statistics."""

    def test_01_out_of_order_fact_leaves_state_intact(self, simple_signature):
        monitor = Monitor(simple_signature)
        monitor.register(b.atom("p", x), name="now")
        monitor.submit(P(1, 5))
        with pytest.raises(OutOfOrderFact):
            monitor.submit(P(2, 3))
        assert monitor.facts_rejected == 1
        # same timestamp as the watermark is still accepted
        monitor.submit(P(3, 5))
        assert lines(monitor.finish()) == [(5, [{"x": 1}, {"x": 3}])]

    def test_02_type_mismatch_and_undeclared_relation(self, simple_signature):
        monitor = Monitor(simple_signature)
        with pytest.raises(TypeMismatch):
            monitor.submit(Fact("p", ("one",), 1))
        with pytest.raises(TypeMismatch):
            monitor.submit(Fact("zz", (1,), 1))
        assert isinstance(TypeMismatch("m"), InputError)
        assert monitor.facts_rejected == 2
        assert monitor.facts_accepted == 0

    def test_03_lenient_signature_ignores_undeclared_relations(self, simple_signature):
        monitor = Monitor(simple_signature, EvaluatorConfig(strict_signature=False))
        monitor.register(b.atom("p", x), name="now")
        monitor.submit(Fact("zz", (1,), 1))
        monitor.submit(P(4, 1))
        assert monitor.facts_accepted == 2
        assert lines(monitor.finish()) == [(1, [{"x": 4}])]
        with pytest.raises(TypeMismatch):
            Monitor(simple_signature, EvaluatorConfig(strict_signature=False)).submit(Fact("p", ("a",), 1))

    def test_04_watermark_cannot_move_back(self, simple_signature):
        monitor = Monitor(simple_signature)
        monitor.advance_watermark(10)
        with pytest.raises(InputError):
            monitor.advance_watermark(3)

    def test_05_quiet_period_watermark_discharges_obligations(self, simple_signature):
        monitor = Monitor(simple_signature)
        monitor.register(b.eventually(b.atom("p", x), (0, 10)), name="ev")
        monitor.submit(P(1, 0))
        assert monitor.advance_watermark(5) == []
        assert monitor.advance_watermark(10) == []
        assert lines(monitor.advance_watermark(10.5)) == [(0, [{"x": 1}])]

    def test_06_reports_reach_rule_and_monitor_sinks(self, simple_signature):
        rule_seen, monitor_seen = [], []
        monitor = Monitor(simple_signature, sink=monitor_seen.append)
        monitor.register(b.atom("p", x), name="now", sink=rule_seen.append)
        returned = monitor.submit(P(1, 0)) + monitor.submit(P(2, 1)) + monitor.finish()
        assert [r.timestamp for r in returned] == [0, 1]
        assert rule_seen == returned
        assert monitor_seen == returned

    def test_07_closed_formula_reports_booleans(self, simple_signature):
        monitor = Monitor(simple_signature)
        monitor.register(b.atom("p", 1), name="one")
        reports = []
        for fact in (P(1, 0), P(2, 1)):
            reports.extend(monitor.submit(fact))
        reports.extend(monitor.finish())
        assert [r.boolean for r in reports] == [True, False]
        assert [r.verdict for r in reports] == [Verdict.TRUE, Verdict.FALSE]
        assert reports[0].to_line() == "@0 (time point 0) one: true"

    def test_08_register_merges_signatures(self, simple_signature):
        monitor = Monitor()
        monitor.register(b.atom("p", x), signature=simple_signature)
        assert "q" in monitor.signature
        conflicting = Signature.of(RelationSchema.of("p", x=ValueType.STRING))
        with pytest.raises(SignatureConflict):
            monitor.register(b.atom("p", x), signature=conflicting)
        assert len(monitor.rules) == 1

    def test_09_stats(self, simple_signature):
        monitor = Monitor(simple_signature)
        monitor.register(b.once(b.atom("p", x), (0, 10)), name="once")
        for ts in range(5):
            monitor.submit(P(ts, ts))
        stats = monitor.stats()
        assert stats["watermark"] == 4
        assert stats["facts_accepted"] == 5
        assert stats["time_points"] == 4
        rule = stats["rules"]["once"]
        assert rule["state"] == "ACTIVE"
        assert rule["pending"] == 0
        assert rule["reports"] == 4
        assert rule["stores"][0]["retained_rows"] == 4
