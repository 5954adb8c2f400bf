# tests/integration_tests/test_policy_scenarios.py
# This file is part of Horizon - A Bounded-Window Temporal Rule Evaluator
#
# End-to-end checks of the shipped monitoring policies

"""Integration tests for the block proposal and delivery policies.

The scenarios replay small hand-built traces through a Monitor and check:

- zero-filled per-signer counts for every relevant node pair
- population mean and variance of those counts, and the outlier rule
- Eventually finality of the delivery deadline (no report before it passes)
- policy construction through the POLICIES registry
"""

import pytest

from logic import Evaluator, Monitor, Verdict
from model import Fact, NodeId
from policies import POLICIES, anomaly_policy, delivery_policy, zero_fill_policy


def added(node, ts=0, subnet="s"):
    return Fact("node_added", (subnet, node), ts)


def proposal(reporter, signer, block, ts, subnet="s"):
    return Fact("block_proposal_added", (reporter, subnet, signer, block), ts)


def replay(policy, facts, monitor=None):
    monitor = monitor or Monitor(policy.signature)
    monitor.register(policy.formula, name="policy")
    reports = []
    for fact in facts:
        reports.extend(monitor.submit(fact))
    reports.extend(monitor.finish())
    return {r.timestamp: r for r in reports}


def counts(report):
    return sorted((str(a["reporting_node"]), str(a["signer"]), a["n"]) for a in report.assignments)


def anomaly_trace():
    """Four members; `a` sees 0, 2, 2 and 6 proposals from a, b, c, d."""
    facts = [added(node) for node in "abcd"]
    blocks = {"b": 2, "c": 2, "d": 6}
    serial = 0
    for signer, count in blocks.items():
        for _ in range(count):
            serial += 1
            facts.append(proposal("a", signer, bytes([serial]), 10))
    return facts


class TestZeroFillScenarios:
    """Counts default to zero for every relevant pair."""

    def test_01_all_relevant_pairs_start_at_zero(self):
        out = replay(zero_fill_policy(), [added("a"), added("b")])
        assert counts(out[0]) == [("a", "a", 0), ("a", "b", 0), ("b", "a", 0), ("b", "b", 0)]

    def test_02_counted_pairs_replace_the_default(self):
        facts = [
            added("a"),
            added("b"),
            proposal("a", "b", b"\x01", 5),
            proposal("a", "b", b"\x02", 5),
        ]
        out = replay(zero_fill_policy(), facts)
        assert counts(out[5]) == [("a", "a", 0), ("a", "b", 2), ("b", "a", 0), ("b", "b", 0)]

    def test_03_pairs_become_relevant_once_both_nodes_joined(self):
        facts = [added("a"), proposal("a", "a", b"\x01", 3), added("b", ts=7)]
        out = replay(zero_fill_policy(), facts)
        assert counts(out[3]) == [("a", "a", 1)]
        assert counts(out[7]) == [("a", "a", 1), ("a", "b", 0), ("b", "a", 0), ("b", "b", 0)]

    def test_04_counts_age_out_of_the_window(self):
        facts = [added("a"), proposal("a", "a", b"\x01", 5), added("a", ts=20)]
        out = replay(zero_fill_policy(window=10), facts)
        assert counts(out[5]) == [("a", "a", 1)]
        assert counts(out[20]) == [("a", "a", 0)]

    def test_05_text_fields_become_node_ids(self):
        out = replay(zero_fill_policy(), [added("a")])
        (assignment,) = out[0].assignments
        assert assignment["signer"] == NodeId("a")
        assert assignment["subnet"] == NodeId("s")


class TestAnomalyScenarios:
    """Population statistics over the zero-filled counts."""

    def test_01_mean_and_population_variance(self):
        from formula import builder as b
        from policies.anomaly import SIGNATURE, avg_n, n, num_created_one_day, reporting_node, subnet, var_n
        from policies import Policy

        counted = num_created_one_day()
        groups = (reporting_node, subnet)
        stats = b.conj(
            counted,
            b.avg(avg_n, n, counted, group_by=groups),
            b.population_variance(var_n, n, counted, group_by=groups, mean="mean_n"),
        )
        out = replay(Policy(stats, SIGNATURE), anomaly_trace())
        rows = [a for a in out[10].assignments if a["reporting_node"] == NodeId("a")]
        assert sorted(a["n"] for a in rows) == [0, 2, 2, 6]
        assert {a["avg_n"] for a in rows} == {2.5}
        assert {a["var_n"] for a in rows} == {4.75}

    def test_02_uniform_counts_are_not_flagged(self):
        out = replay(anomaly_policy(), anomaly_trace())
        assert not any(r.satisfied for r in out.values())

    def test_03_outlier_flagged_with_lower_threshold(self):
        """(6 - 2.5)^2 = 12.25 exceeds 2 * 4.75; (0 - 2.5)^2 = 6.25 does not."""
        out = replay(anomaly_policy(threshold=2.0), anomaly_trace())
        assert not out[0].satisfied
        (flagged,) = out[10].assignments
        assert str(flagged["reporting_node"]) == "a"
        assert str(flagged["signer"]) == "d"
        assert flagged["n"] == 6
        assert flagged["avg_n"] == 2.5
        assert flagged["var_n"] == 4.75
        assert out[10].verdict is Verdict.TRUE

    def test_04_window_state_is_held_once_per_count_copy(self):
        """The counts subformula is compiled four times, each copy with its own windows."""
        per_copy = len(Evaluator(*zero_fill_policy()).stats())
        assert per_copy == 5
        assert len(Evaluator(*anomaly_policy()).stats()) == 4 * per_copy


class TestDeliveryScenarios:
    """
    A moved block must be delivered within the deadline; the verdict for a
    time point is only final once the watermark passes its deadline.
    """

    def test_01_no_report_until_deadline_passes(self):
        policy = delivery_policy()
        monitor = Monitor(policy.signature)
        monitor.register(policy.formula, name="delivery")
        assert monitor.submit(Fact("block_moved", ("s", b"\x01"), 100)) == []
        assert monitor.submit(Fact("block_delivered", ("s", b"\x01"), 550)) == []
        assert monitor.submit(Fact("block_moved", ("s", b"\x02"), 700)) == []
        assert monitor.pending == 2

        reports = monitor.advance_watermark(701)
        assert [(r.timestamp, r.assignments) for r in reports] == [(100, ())]
        assert reports[0].verdict is Verdict.FALSE

    def test_02_late_delivery_is_a_violation(self):
        policy = delivery_policy()
        monitor = Monitor(policy.signature)
        monitor.register(policy.formula, name="delivery")
        monitor.submit(Fact("block_moved", ("s", b"\x01"), 100))
        reports = monitor.submit(Fact("block_delivered", ("s", b"\x01"), 750))
        assert len(reports) == 1
        assert reports[0].timestamp == 100
        assert reports[0].assignments == ({"block_hash": b"\x01", "subnet": NodeId("s")},)
        assert reports[0].to_line() == '@100 (time point 0) delivery: (block_hash=0x01, subnet="s")'

    def test_03_delivery_in_other_subnet_does_not_count(self):
        facts = [
            Fact("block_moved", ("s", b"\x01"), 0),
            Fact("block_delivered", ("t", b"\x01"), 10),
        ]
        out = replay(delivery_policy(deadline=60), facts)
        assert out[0].satisfied
        assert not out[10].satisfied

    def test_04_delivery_at_the_deadline_is_in_time(self):
        facts = [
            Fact("block_moved", ("s", b"\x01"), 0),
            Fact("block_delivered", ("s", b"\x01"), 60),
        ]
        out = replay(delivery_policy(deadline=60), facts)
        assert not out[0].satisfied


class TestPolicyRegistryScenarios:

    @pytest.mark.parametrize("name", sorted(POLICIES))
    def test_01_every_policy_registers(self, name):
        policy = POLICIES[name]()
        monitor = Monitor(policy.signature)
        handle = monitor.register(policy.formula, name=name)
        assert handle.name == name

    def test_02_delivery_horizon_is_the_deadline(self):
        policy = delivery_policy(deadline=30)
        monitor = Monitor(policy.signature)
        handle = monitor.register(policy.formula)
        assert monitor.rule(handle).evaluator.future_horizon == 30
