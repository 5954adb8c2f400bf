# tests/model_tests/test_binding_table_scenarios.py

import pytest

from model import BindingTable, Fact, Snapshot


def T(columns, rows):
    """Build a table from ``{row: timestamp}``."""
    return BindingTable(tuple(columns), dict(rows))


class TestBindingTableScenarios:
    """
    Relational algebra over binding tables: join, anti-join, union,
    projection, filtering and extension, plus derivation timestamps.
    """

    def test_01_columns_must_be_sorted_and_unique(self):
        with pytest.raises(ValueError):
            BindingTable(("y", "x"))
        with pytest.raises(ValueError):
            BindingTable(("x", "x"))

    def test_02_add_keeps_latest_derivation(self):
        table = BindingTable.empty(["x"])
        table.add((1,), 5)
        table.add((1,), 3)
        table.add((1,), 8)
        assert table.rows == {(1,): 8}

    def test_03_join_on_shared_columns(self):
        """Rows agreeing on `y` combine; derivation is the later of the two."""
        left = T(("x", "y"), {(1, "a"): 1, (2, "b"): 2})
        right = T(("y", "z"), {("a", 10): 5, ("a", 11): 0, ("c", 12): 3})
        joined = left.join(right)
        assert joined.columns == ("x", "y", "z")
        assert joined.rows == {(1, "a", 10): 5, (1, "a", 11): 1}

    def test_04_join_without_shared_columns_is_product(self):
        left = T(("x",), {(1,): 0, (2,): 0})
        right = T(("y",), {("a",): 0})
        assert len(left.join(right)) == 2

    def test_05_join_with_unit_table(self):
        """The unit table (closed formula that holds) is the join identity."""
        left = T(("x",), {(1,): 4})
        assert left.join(BindingTable.unit(2)).rows == {(1,): 4}
        assert not left.join(BindingTable.empty())

    def test_06_anti_join_removes_matching_projections(self):
        left = T(("x", "y"), {(1, "a"): 0, (2, "b"): 0, (3, "a"): 0})
        right = T(("y",), {("a",): 0})
        assert set(left.anti_join(right).rows) == {(2, "b")}

    def test_07_anti_join_requires_subset_columns(self):
        left = T(("x",), {(1,): 0})
        right = T(("y",), {("a",): 0})
        with pytest.raises(ValueError):
            left.anti_join(right)

    def test_08_project_deduplicates_keeping_latest(self):
        table = T(("x", "y"), {(1, "a"): 3, (1, "b"): 7, (2, "a"): 1})
        projected = table.project(["x"])
        assert projected.rows == {(1,): 7, (2,): 1}

    def test_09_union_requires_same_columns(self):
        a = T(("x",), {(1,): 1})
        b = T(("x",), {(1,): 4, (2,): 2})
        assert a.union(b).rows == {(1,): 4, (2,): 2}
        with pytest.raises(ValueError):
            a.union(T(("y",), {}))

    def test_10_extend_drops_rows_computing_none(self):
        table = T(("x",), {(1,): 0, (0,): 0})
        extended = table.extend("y", lambda a: None if a["x"] == 0 else a["x"] * 10)
        assert extended.columns == ("x", "y")
        assert set(extended.rows) == {(1, 10)}

    def test_11_assignments_are_deterministic(self):
        """Insertion order does not change the emitted order."""
        a = T(("x",), {(3,): 0, (1,): 0, (2,): 0})
        b = T(("x",), {(2,): 0, (3,): 0, (1,): 0})
        assert a.assignments() == b.assignments() == [{"x": 1}, {"x": 2}, {"x": 3}]

    def test_12_from_assignments_and_membership(self):
        table = BindingTable.from_assignments([{"x": 1, "y": 2}], 9)
        assert {"x": 1, "y": 2} in table
        assert {"x": 1} not in table
        assert table.timestamp_of({"x": 1, "y": 2}) == 9


class TestSnapshotScenarios:

    def test_01_groups_facts_by_relation(self):
        facts = [Fact("p", (1,), 5), Fact("p", (2,), 5), Fact("q", (1, 2), 5), Fact("p", (1,), 5)]
        snapshot = Snapshot.from_facts(0, 5, facts)
        assert snapshot.tuples("p") == frozenset({(1,), (2,)})
        assert snapshot.tuples("missing") == frozenset()
        assert len(snapshot) == 3

    def test_02_rejects_foreign_timestamps(self):
        with pytest.raises(ValueError):
            Snapshot.from_facts(0, 5, [Fact("p", (1,), 6)])
