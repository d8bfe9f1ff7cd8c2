"""
Rikishi catalog seeding: rank -> tier and rank -> default price rules, plus the
JSON seed loader run at startup.

Tiers follow the banzuke: Yokozuna are Yellow; Ozeki, Sekiwake, Komusubi and
Maegashira 1-8 are Blue; lower Maegashira are Green; anything else is White.
"""
from __future__ import annotations

import json
import logging
import re
import sqlite3
from pathlib import Path
from typing import Any

from sumo_draft.models import Rikishi, Tier
from sumo_draft.persistence.db import transaction
from sumo_draft.persistence.repositories import RikishiRepository

logger = logging.getLogger(__name__)

_MAEGASHIRA_RE = re.compile(r"maegashira\s+(\d+)")

BLUE_MAEGASHIRA_CUTOFF = 8  # M1-M8 Blue, M9+ Green
MIN_DRAFT_VALUE = 1
MAX_DRAFT_VALUE = 20


def _maegashira_number(rank: str) -> int | None:
    m = _MAEGASHIRA_RE.search(rank)
    return int(m.group(1)) if m else None


def is_makuuchi(rank: str | None) -> bool:
    """True for top-division ranks (Yokozuna through Maegashira)."""
    if not rank:
        return False
    r = rank.lower()
    if "juryo" in r:
        return False
    return any(k in r for k in ("yokozuna", "ozeki", "sekiwake", "komusubi", "maegashira"))


def ranking_group_for_rank(rank: str | None) -> str:
    if not rank:
        return Tier.WHITE.value
    r = rank.lower()
    if "yokozuna" in r:
        return Tier.YELLOW.value
    if "ozeki" in r or "sekiwake" in r or "komusubi" in r:
        return Tier.BLUE.value
    if "maegashira" in r:
        n = _maegashira_number(r)
        if n is not None and n <= BLUE_MAEGASHIRA_CUTOFF:
            return Tier.BLUE.value
        return Tier.GREEN.value
    return Tier.WHITE.value


def draft_value_for_rank(rank: str | None) -> int:
    """Default price for a rank. Admins adjust prices afterwards; reseeding keeps their values."""
    if not rank:
        return 1
    r = rank.lower()
    if "yokozuna" in r:
        return 10
    if "ozeki" in r:
        return 8
    if "sekiwake" in r:
        return 7
    if "komusubi" in r:
        return 6
    if "maegashira" in r:
        n = _maegashira_number(r)
        if n is None:
            return 4
        if n <= 3:
            return 6
        if n <= 6:
            return 5
        if n <= 10:
            return 4
        return 3
    return 2


def _opt_int(v: Any, default: int = 0) -> int:
    if v is None or v == "":
        return default
    return int(v)


def _opt_float(v: Any) -> float | None:
    if v is None or v == "":
        return None
    return float(v)


def rikishi_from_seed(entry: dict[str, Any]) -> Rikishi | None:
    """
    Build a catalog entry from one seed record.
    Missing tier/price are derived from official_rank. Records with neither an
    explicit tier nor a top-division rank are skipped (None).
    """
    name = (entry.get("name") or "").strip()
    if not name or entry.get("id") is None:
        return None
    rank = entry.get("official_rank")
    explicit = Tier.parse(entry.get("ranking_group"))
    if explicit is None and not is_makuuchi(rank):
        return None
    tier = explicit.value if explicit else ranking_group_for_rank(rank)
    value = _opt_int(entry.get("draft_value"), default=draft_value_for_rank(rank))
    if not (MIN_DRAFT_VALUE <= value <= MAX_DRAFT_VALUE):
        raise ValueError(f"draft_value for {name} must be {MIN_DRAFT_VALUE}-{MAX_DRAFT_VALUE}, got {value}")
    return Rikishi(
        id=int(entry["id"]),
        name=name,
        ranking_group=tier,
        draft_value=value,
        official_rank=rank,
        wins=_opt_int(entry.get("wins")),
        losses=_opt_int(entry.get("losses")),
        absences=_opt_int(entry.get("absences")),
        heya=entry.get("heya"),
        shusshin=entry.get("shusshin"),
        birth_date=entry.get("birth_date"),
        height_inches=_opt_float(entry.get("height_inches")),
        weight_lbs=_opt_float(entry.get("weight_lbs")),
        times_picked=_opt_int(entry.get("times_picked")),
    )


def load_catalog_into_db(conn: sqlite3.Connection, catalog_path: Path) -> tuple[int, int]:
    """
    Upsert the seed file into the rikishi table. Returns (created, updated).
    Existing prices are kept so admin adjustments survive a restart.
    """
    data = json.loads(catalog_path.read_text(encoding="utf-8"))
    repo = RikishiRepository()
    created = updated = 0
    with transaction(conn):
        for entry in data.get("rikishi", []):
            rikishi = rikishi_from_seed(entry)
            if rikishi is None:
                logger.debug("Skipping seed record without tier or top-division rank: %r", entry.get("name"))
                continue
            if repo.upsert(conn, rikishi) == "created":
                created += 1
            else:
                updated += 1
    return created, updated
