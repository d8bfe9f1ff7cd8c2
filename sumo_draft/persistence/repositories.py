"""
Repository interfaces for draft data.
No business logic, only read/write operations. Callers own transactions.
"""
from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime, timezone

from sumo_draft.models import HaterPick, Participant, Rikishi, Selection, TIERS


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------- ParticipantRepository ----------


_PARTICIPANT_COLS = "id, sumo_name, budget, is_draft_finalized, created_at"


def _participant_from_row(row: sqlite3.Row) -> Participant:
    return Participant(
        id=row["id"],
        sumo_name=row["sumo_name"],
        budget=row["budget"],
        is_draft_finalized=bool(row["is_draft_finalized"]),
        created_at=_parse_datetime(row["created_at"]),
    )


class ParticipantRepository:
    """CRUD for participants (users table)."""

    def create(self, conn: sqlite3.Connection, sumo_name: str, budget: int, id: str | None = None) -> Participant:
        pid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO users (id, sumo_name, budget, is_draft_finalized, created_at) VALUES (?, ?, ?, 0, ?)",
            (pid, sumo_name, budget, now),
        )
        return Participant(
            id=pid, sumo_name=sumo_name, budget=budget, is_draft_finalized=False,
            created_at=_parse_datetime(now),
        )

    def get(self, conn: sqlite3.Connection, participant_id: str) -> Participant | None:
        row = conn.execute(
            f"SELECT {_PARTICIPANT_COLS} FROM users WHERE id = ?", (participant_id,)
        ).fetchone()
        return _participant_from_row(row) if row else None

    def get_by_name(self, conn: sqlite3.Connection, sumo_name: str) -> Participant | None:
        row = conn.execute(
            f"SELECT {_PARTICIPANT_COLS} FROM users WHERE sumo_name = ?", (sumo_name,)
        ).fetchone()
        return _participant_from_row(row) if row else None

    def set_finalized(self, conn: sqlite3.Connection, participant_id: str, finalized: bool) -> None:
        conn.execute(
            "UPDATE users SET is_draft_finalized = ? WHERE id = ?",
            (1 if finalized else 0, participant_id),
        )

    def list_all(self, conn: sqlite3.Connection) -> list[Participant]:
        rows = conn.execute(f"SELECT {_PARTICIPANT_COLS} FROM users ORDER BY sumo_name").fetchall()
        return [_participant_from_row(r) for r in rows]

    def list_finalized(self, conn: sqlite3.Connection) -> list[Participant]:
        rows = conn.execute(
            f"SELECT {_PARTICIPANT_COLS} FROM users WHERE is_draft_finalized = 1 ORDER BY sumo_name"
        ).fetchall()
        return [_participant_from_row(r) for r in rows]

    def unfinalize_all(self, conn: sqlite3.Connection) -> int:
        cur = conn.execute("UPDATE users SET is_draft_finalized = 0")
        return cur.rowcount


# ---------- RikishiRepository ----------


_RIKISHI_COLS = (
    "id, name, ranking_group, draft_value, official_rank, wins, losses, absences, "
    "heya, shusshin, birth_date, height_inches, weight_lbs, times_picked, updated_at"
)


def _rikishi_from_row(row: sqlite3.Row, prefix: str = "") -> Rikishi:
    r = dict(row)
    updated = r.get(f"{prefix}updated_at")
    return Rikishi(
        id=r[f"{prefix}id"],
        name=r[f"{prefix}name"],
        ranking_group=r[f"{prefix}ranking_group"],
        draft_value=r[f"{prefix}draft_value"],
        official_rank=r.get(f"{prefix}official_rank"),
        wins=r.get(f"{prefix}wins") or 0,
        losses=r.get(f"{prefix}losses") or 0,
        absences=r.get(f"{prefix}absences") or 0,
        heya=r.get(f"{prefix}heya"),
        shusshin=r.get(f"{prefix}shusshin"),
        birth_date=r.get(f"{prefix}birth_date"),
        height_inches=r.get(f"{prefix}height_inches"),
        weight_lbs=r.get(f"{prefix}weight_lbs"),
        times_picked=r.get(f"{prefix}times_picked") or 0,
        updated_at=_parse_datetime(updated) if updated else None,
    )


def _prefixed_rikishi_cols(alias: str, prefix: str) -> str:
    return ", ".join(f"{alias}.{c.strip()} AS {prefix}{c.strip()}" for c in _RIKISHI_COLS.split(","))


class RikishiRepository:
    """Catalog reads, seed upserts and admin price changes."""

    def get(self, conn: sqlite3.Connection, rikishi_id: int) -> Rikishi | None:
        row = conn.execute(f"SELECT {_RIKISHI_COLS} FROM rikishi WHERE id = ?", (rikishi_id,)).fetchone()
        return _rikishi_from_row(row) if row else None

    def upsert(self, conn: sqlite3.Connection, rikishi: Rikishi, keep_draft_value: bool = True) -> str:
        """
        Insert or update one entry. Returns "created" or "updated".
        keep_draft_value: existing prices are admin-owned and survive reseeding.
        """
        existing = self.get(conn, rikishi.id)
        now = _now_iso()
        if existing is None:
            conn.execute(
                f"INSERT INTO rikishi ({_RIKISHI_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    rikishi.id, rikishi.name, rikishi.ranking_group, rikishi.draft_value,
                    rikishi.official_rank, rikishi.wins, rikishi.losses, rikishi.absences,
                    rikishi.heya, rikishi.shusshin, rikishi.birth_date,
                    rikishi.height_inches, rikishi.weight_lbs, rikishi.times_picked, now,
                ),
            )
            return "created"
        draft_value = existing.draft_value if keep_draft_value else rikishi.draft_value
        conn.execute(
            """UPDATE rikishi SET name = ?, ranking_group = ?, draft_value = ?, official_rank = ?,
                   wins = ?, losses = ?, absences = ?, heya = ?, shusshin = ?, birth_date = ?,
                   height_inches = ?, weight_lbs = ?, times_picked = ?, updated_at = ?
               WHERE id = ?""",
            (
                rikishi.name, rikishi.ranking_group, draft_value, rikishi.official_rank,
                rikishi.wins, rikishi.losses, rikishi.absences, rikishi.heya, rikishi.shusshin,
                rikishi.birth_date, rikishi.height_inches, rikishi.weight_lbs,
                rikishi.times_picked, now, rikishi.id,
            ),
        )
        return "updated"

    def update_draft_value(self, conn: sqlite3.Connection, rikishi_id: int, draft_value: int) -> bool:
        """Admin price change. Returns False if no such rikishi."""
        cur = conn.execute(
            "UPDATE rikishi SET draft_value = ?, updated_at = ? WHERE id = ?",
            (draft_value, _now_iso(), rikishi_id),
        )
        return cur.rowcount > 0

    def list_all(self, conn: sqlite3.Connection) -> list[Rikishi]:
        """Tier order (Yellow, Blue, Green, White, then unknown), price desc, name."""
        order = " ".join(f"WHEN '{t}' THEN {i}" for i, t in enumerate(TIERS, start=1))
        rows = conn.execute(
            f"SELECT {_RIKISHI_COLS} FROM rikishi "
            f"ORDER BY CASE ranking_group {order} ELSE {len(TIERS) + 1} END, draft_value DESC, name"
        ).fetchall()
        return [_rikishi_from_row(r) for r in rows]

    def list_grouped(self, conn: sqlite3.Connection) -> dict[str, list[Rikishi]]:
        """Entries grouped by tier; entries with an unknown tier are left out."""
        grouped: dict[str, list[Rikishi]] = {t: [] for t in TIERS}
        for r in self.list_all(conn):
            if r.ranking_group in grouped:
                grouped[r.ranking_group].append(r)
        return grouped

    def count(self, conn: sqlite3.Connection) -> int:
        return conn.execute("SELECT COUNT(*) FROM rikishi").fetchone()[0]


# ---------- SelectionRepository ----------


class SelectionRepository:
    """Regular picks. Order is insertion order (row id)."""

    def list_for_participant(self, conn: sqlite3.Connection, participant_id: str) -> list[Selection]:
        rows = conn.execute(
            f"SELECT ds.user_id, ds.selected_at, {_prefixed_rikishi_cols('r', 'r_')} "
            "FROM draft_selections ds JOIN rikishi r ON ds.rikishi_id = r.id "
            "WHERE ds.user_id = ? ORDER BY ds.id",
            (participant_id,),
        ).fetchall()
        return [
            Selection(
                participant_id=row["user_id"],
                rikishi=_rikishi_from_row(row, prefix="r_"),
                selected_at=_parse_datetime(row["selected_at"]),
            )
            for row in rows
        ]

    def add(self, conn: sqlite3.Connection, participant_id: str, rikishi_id: int) -> None:
        conn.execute(
            "INSERT INTO draft_selections (user_id, rikishi_id, selected_at) VALUES (?, ?, ?)",
            (participant_id, rikishi_id, _now_iso()),
        )

    def remove(self, conn: sqlite3.Connection, participant_id: str, rikishi_id: int) -> bool:
        cur = conn.execute(
            "DELETE FROM draft_selections WHERE user_id = ? AND rikishi_id = ?",
            (participant_id, rikishi_id),
        )
        return cur.rowcount > 0

    def clear_for_participant(self, conn: sqlite3.Connection, participant_id: str) -> int:
        cur = conn.execute("DELETE FROM draft_selections WHERE user_id = ?", (participant_id,))
        return cur.rowcount

    def clear_all(self, conn: sqlite3.Connection) -> int:
        return conn.execute("DELETE FROM draft_selections").rowcount

    def selected_ids(self, conn: sqlite3.Connection, participant_id: str) -> set[int]:
        rows = conn.execute(
            "SELECT rikishi_id FROM draft_selections WHERE user_id = ?", (participant_id,)
        ).fetchall()
        return {r["rikishi_id"] for r in rows}


# ---------- HaterPickRepository ----------


class HaterPickRepository:
    """One hater pick per participant; upsert replaces in a single statement."""

    def get_for_participant(self, conn: sqlite3.Connection, participant_id: str) -> HaterPick | None:
        row = conn.execute(
            f"SELECT hp.user_id, hp.hater_cost, hp.selected_at, {_prefixed_rikishi_cols('r', 'r_')} "
            "FROM hater_picks hp JOIN rikishi r ON hp.rikishi_id = r.id WHERE hp.user_id = ?",
            (participant_id,),
        ).fetchone()
        if row is None:
            return None
        return HaterPick(
            participant_id=row["user_id"],
            rikishi=_rikishi_from_row(row, prefix="r_"),
            cost=row["hater_cost"],
            selected_at=_parse_datetime(row["selected_at"]),
        )

    def upsert(self, conn: sqlite3.Connection, participant_id: str, rikishi_id: int, cost: int) -> None:
        conn.execute(
            """INSERT INTO hater_picks (user_id, rikishi_id, hater_cost, selected_at) VALUES (?, ?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   rikishi_id = excluded.rikishi_id,
                   hater_cost = excluded.hater_cost,
                   selected_at = excluded.selected_at""",
            (participant_id, rikishi_id, cost, _now_iso()),
        )

    def remove(self, conn: sqlite3.Connection, participant_id: str) -> bool:
        cur = conn.execute("DELETE FROM hater_picks WHERE user_id = ?", (participant_id,))
        return cur.rowcount > 0

    def clear_all(self, conn: sqlite3.Connection) -> int:
        return conn.execute("DELETE FROM hater_picks").rowcount
