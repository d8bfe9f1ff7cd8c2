"""
SQLite schema for draft entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def users_schema() -> str:
    """Participants. sumo_name is the login identity; budget fixed at creation."""
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        sumo_name TEXT NOT NULL UNIQUE,
        is_draft_finalized INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
    """
    # budget added via migration (older DBs predate per-participant budgets)


def rikishi_schema() -> str:
    """Catalog. draft_value is the price; ranking_group is the tier label."""
    return """
    CREATE TABLE IF NOT EXISTS rikishi (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        ranking_group TEXT NOT NULL,
        draft_value INTEGER NOT NULL CHECK (draft_value > 0),
        official_rank TEXT,
        wins INTEGER NOT NULL DEFAULT 0,
        losses INTEGER NOT NULL DEFAULT 0,
        absences INTEGER NOT NULL DEFAULT 0,
        heya TEXT,
        shusshin TEXT,
        birth_date TEXT,
        height_inches REAL,
        weight_lbs REAL,
        times_picked INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT
    );
    CREATE INDEX IF NOT EXISTS ix_rikishi_group ON rikishi(ranking_group);
    """


def draft_selections_schema() -> str:
    """Regular picks. Row id gives insertion order; one row per (user, rikishi)."""
    return """
    CREATE TABLE IF NOT EXISTS draft_selections (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        rikishi_id INTEGER NOT NULL,
        selected_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (rikishi_id) REFERENCES rikishi(id),
        UNIQUE (user_id, rikishi_id)
    );
    CREATE INDEX IF NOT EXISTS ix_draft_selections_user ON draft_selections(user_id);
    """


def hater_picks_schema() -> str:
    """At most one hater pick per user (user_id is the key)."""
    return """
    CREATE TABLE IF NOT EXISTS hater_picks (
        user_id TEXT PRIMARY KEY,
        rikishi_id INTEGER NOT NULL,
        hater_cost INTEGER NOT NULL CHECK (hater_cost > 0),
        selected_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (rikishi_id) REFERENCES rikishi(id)
    );
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Order: users, rikishi, draft_selections, hater_picks."""
    return "\n".join([
        users_schema(),
        rikishi_schema(),
        draft_selections_schema(),
        hater_picks_schema(),
    ])
