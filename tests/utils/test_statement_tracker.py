import logging

from relmap.utils import get_logger
from relmap.utils.performance import PerformanceTracker


def test_repeated_select_with_different_parents_warns_once(caplog):
    caplog.set_level(logging.WARNING, logger="relmap.tests.performance")
    tracker = PerformanceTracker(get_logger("tests.performance"), n_plus_one_threshold=3)
    for i in range(4):
        tracker.record('SELECT * FROM "post" WHERE blog = ?', [i], 1.5)
    warnings = [rec for rec in caplog.records if "Potential N+1 detected" in rec.message]
    assert len(warnings) == 1
    assert "post" in warnings[0].message

    summary = tracker.summary()
    assert summary[0]["count"] == 4
    assert summary[0]["table"] == "post"
    assert summary[0]["distinct_params"] == 4


def test_same_parameters_do_not_warn(caplog):
    caplog.set_level(logging.WARNING, logger="relmap.tests.performance")
    tracker = PerformanceTracker(get_logger("tests.performance"), n_plus_one_threshold=2)
    for _ in range(3):
        tracker.record('SELECT * FROM "post" WHERE uid = ?', [1], 0.1)
    assert not caplog.records


def test_counts_by_verb_and_table():
    tracker = PerformanceTracker(get_logger("tests.performance"))
    tracker.record("SELECT 1", [], 0.5)
    tracker.record('UPDATE "post" SET title = ?', ["a"], 0.5)
    tracker.record('  update "post" SET title = ?', ["b"], 0.5)
    tracker.record('INSERT INTO "tag" (name) VALUES (?)', ["x"], 0.5)
    assert tracker.count() == 4
    assert tracker.count("SELECT") == 1
    assert tracker.count("update") == 2
    assert tracker.count(table="tag") == 1
    assert tracker.count("UPDATE", table="tag") == 0


def test_reset_forgets_statements():
    tracker = PerformanceTracker(get_logger("tests.performance"), n_plus_one_threshold=2)
    tracker.record("SELECT 1", [], 0.5)
    tracker.reset()
    assert tracker.summary() == []
    assert tracker.count() == 0
