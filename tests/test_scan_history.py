"""Tests for the bounded scan history."""

import threading

import pytest

from foodrisk.db.scan_history import ScanHistoryDB
from foodrisk.scoring.models import RiskLevel, ScoreResult


def make_result(name, score=10, level=RiskLevel.LOW):
    return ScoreResult(product_name=name, score=score, risk_level=level)


@pytest.fixture
def history(tmp_path):
    db = ScanHistoryDB(db_path=tmp_path / "history.db", max_entries=3)
    yield db
    db.close()


def test_invalid_cap(tmp_path):
    with pytest.raises(ValueError, match="at least 1"):
        ScanHistoryDB(db_path=tmp_path / "h.db", max_entries=0)


def test_add_and_get_recent(history):
    row_id = history.add(make_result("Chips", 60, RiskLevel.HIGH), source="openfoodfacts")
    assert row_id > 0

    entries = history.get_recent()
    assert len(entries) == 1
    entry = entries[0]
    assert entry["product_name"] == "Chips"
    assert entry["score"] == 60
    assert entry["risk_level"] == "High"
    assert entry["source"] == "openfoodfacts"
    assert entry["scanned_at"]


def test_newest_first(history):
    for name in ("A", "B", "C"):
        history.add(make_result(name))
    assert [e["product_name"] for e in history.get_recent()] == ["C", "B", "A"]


def test_cap_evicts_oldest(history):
    for name in ("A", "B", "C", "D", "E"):
        history.add(make_result(name))
    entries = history.get_recent(limit=100)
    assert [e["product_name"] for e in entries] == ["E", "D", "C"]


def test_limit(history):
    for name in ("A", "B", "C"):
        history.add(make_result(name))
    assert [e["product_name"] for e in history.get_recent(limit=1)] == ["C"]


def test_clear(history):
    history.add(make_result("A"))
    history.add(make_result("B"))
    assert history.clear() == 2
    assert history.get_recent() == []


def test_persists_across_instances(tmp_path):
    path = tmp_path / "history.db"
    first = ScanHistoryDB(db_path=path)
    first.add(make_result("Crackers"))
    first.close()

    second = ScanHistoryDB(db_path=path)
    assert second.get_recent()[0]["product_name"] == "Crackers"
    second.close()


def test_default_cap_is_ten(tmp_path):
    db = ScanHistoryDB(db_path=tmp_path / "h.db")
    for i in range(12):
        db.add(make_result(f"P{i}"))
    entries = db.get_recent()
    assert len(entries) == 10
    assert entries[0]["product_name"] == "P11"
    db.close()


def test_concurrent_adds(history):
    def worker(n):
        history.add(make_result(f"T{n}"))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(history.get_recent()) == 3
