"""
Repository and schema tests against a temporary SQLite file.
"""
from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from sumo_draft.models import Rikishi
from sumo_draft.persistence import (
    HaterPickRepository,
    ParticipantRepository,
    RikishiRepository,
    SelectionRepository,
    get_connection,
    init_db,
    transaction,
)


@pytest.fixture
def conn(tmp_path):
    db_path = tmp_path / "repo.db"
    init_db(db_path)
    c = get_connection(db_path)
    repo = RikishiRepository()
    repo.upsert(c, Rikishi(id=1, name="Alpha", ranking_group="Blue", draft_value=6))
    repo.upsert(c, Rikishi(id=2, name="Bravo", ranking_group="Yellow", draft_value=10))
    repo.upsert(c, Rikishi(id=3, name="Charlie", ranking_group="Blue", draft_value=8))
    repo.upsert(c, Rikishi(id=4, name="Delta", ranking_group="Purple", draft_value=1))
    yield c
    c.close()


def test_participant_roundtrip(conn):
    repo = ParticipantRepository()
    p = repo.create(conn, "Tester", 50)
    loaded = repo.get(conn, p.id)
    assert loaded.sumo_name == "Tester"
    assert loaded.budget == 50
    assert repo.get_by_name(conn, "Tester").id == p.id
    assert repo.get(conn, "missing") is None


def test_participant_name_unique(conn):
    repo = ParticipantRepository()
    repo.create(conn, "Dup", 50)
    with pytest.raises(sqlite3.IntegrityError):
        repo.create(conn, "Dup", 50)


def test_catalog_ordering(conn):
    repo = RikishiRepository()
    assert [r.id for r in repo.list_all(conn)] == [2, 3, 1, 4]
    grouped = repo.list_grouped(conn)
    assert list(grouped) == ["Yellow", "Blue", "Green", "White"]
    assert [r.id for r in grouped["Blue"]] == [3, 1]
    assert grouped["Green"] == []


def test_update_draft_value(conn):
    repo = RikishiRepository()
    assert repo.update_draft_value(conn, 1, 12) is True
    assert repo.get(conn, 1).draft_value == 12
    assert repo.update_draft_value(conn, 99, 12) is False


def test_draft_value_must_be_positive(conn):
    with pytest.raises(sqlite3.IntegrityError):
        RikishiRepository().update_draft_value(conn, 1, 0)


def test_selections(conn):
    pid = ParticipantRepository().create(conn, "Tester", 50).id
    repo = SelectionRepository()
    repo.add(conn, pid, 3)
    repo.add(conn, pid, 1)
    assert [s.rikishi.name for s in repo.list_for_participant(conn, pid)] == ["Charlie", "Alpha"]
    assert repo.selected_ids(conn, pid) == {1, 3}
    with pytest.raises(sqlite3.IntegrityError):
        repo.add(conn, pid, 1)
    assert repo.remove(conn, pid, 1) is True
    assert repo.remove(conn, pid, 1) is False
    assert repo.clear_for_participant(conn, pid) == 1


def test_hater_pick_upsert_replaces(conn):
    pid = ParticipantRepository().create(conn, "Tester", 50).id
    repo = HaterPickRepository()
    repo.upsert(conn, pid, 1, 4)
    repo.upsert(conn, pid, 2, 7)
    hp = repo.get_for_participant(conn, pid)
    assert hp.rikishi.id == 2
    assert hp.cost == 7
    assert conn.execute("SELECT COUNT(*) FROM hater_picks").fetchone()[0] == 1
    assert repo.remove(conn, pid) is True
    assert repo.get_for_participant(conn, pid) is None


def test_transaction_rolls_back(conn):
    repo = ParticipantRepository()
    with pytest.raises(RuntimeError):
        with transaction(conn):
            repo.create(conn, "Ghost", 50)
            raise RuntimeError("boom")
    assert repo.get_by_name(conn, "Ghost") is None


def test_budget_migration(tmp_path):
    db_path = tmp_path / "old.db"
    old = sqlite3.connect(str(db_path))
    old.execute(
        "CREATE TABLE users (id TEXT PRIMARY KEY, sumo_name TEXT UNIQUE NOT NULL, "
        "is_draft_finalized INTEGER NOT NULL DEFAULT 0, created_at TEXT NOT NULL)"
    )
    old.execute("INSERT INTO users VALUES ('u1', 'Veteran', 0, '2025-01-01T00:00:00+00:00')")
    old.commit()
    old.close()
    init_db(db_path, default_budget=75)
    conn = get_connection(db_path)
    try:
        assert ParticipantRepository().get(conn, "u1").budget == 75
    finally:
        conn.close()
