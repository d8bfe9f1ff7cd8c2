"""
Data models for the draft backend.
Domain objects only; no persistence or API logic.

Participants draft rikishi (catalog entries) into regular selections plus at
most one hater pick. Totals are derived from those rows, never stored.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------- Ranking group (tier) ----------
class Tier(str, Enum):
    """Ranking groups, highest first. Display order follows declaration order."""
    YELLOW = "Yellow"  # Yokozuna
    BLUE = "Blue"      # Ozeki, Sekiwake, Komusubi, upper Maegashira
    GREEN = "Green"    # lower Maegashira
    WHITE = "White"    # everything else

    @classmethod
    def parse(cls, value: str | None) -> Tier | None:
        if not value:
            return None
        v = value.strip().lower()
        for t in cls:
            if t.value.lower() == v:
                return t
        return None


TIERS: tuple[str, ...] = tuple(t.value for t in Tier)


# ---------- Participant ----------
@dataclass
class Participant:
    """
    A drafting user, identified by a unique sumo name.
    budget is fixed at creation; is_draft_finalized is terminal until an admin reset.
    """
    id: str
    sumo_name: str
    budget: int
    is_draft_finalized: bool
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sumo_name": self.sumo_name,
            "budget": self.budget,
            "is_draft_finalized": self.is_draft_finalized,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Rikishi (catalog entry) ----------
@dataclass
class Rikishi:
    """One wrestler available to draft. Only id, ranking_group and draft_value matter to the ledger."""
    id: int
    name: str
    ranking_group: str
    draft_value: int
    official_rank: str | None = None
    wins: int = 0
    losses: int = 0
    absences: int = 0
    heya: str | None = None
    shusshin: str | None = None
    birth_date: str | None = None
    height_inches: float | None = None
    weight_lbs: float | None = None
    times_picked: int = 0
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "ranking_group": self.ranking_group,
            "draft_value": self.draft_value,
            "official_rank": self.official_rank,
            "wins": self.wins,
            "losses": self.losses,
            "absences": self.absences,
            "heya": self.heya,
            "shusshin": self.shusshin,
            "birth_date": self.birth_date,
            "height_inches": self.height_inches,
            "weight_lbs": self.weight_lbs,
            "times_picked": self.times_picked,
        }
        if self.updated_at is not None:
            d["updated_at"] = self.updated_at.isoformat()
        return d


# ---------- Selection ----------
@dataclass
class Selection:
    """A regular pick. Ordered per participant by insertion."""
    participant_id: str
    rikishi: Rikishi
    selected_at: datetime

    def to_dict(self) -> dict[str, Any]:
        d = self.rikishi.to_dict()
        d["selected_at"] = self.selected_at.isoformat()
        return d


# ---------- Hater pick ----------
@dataclass
class HaterPick:
    """At most one per participant. cost is set by the participant, not the catalog price."""
    participant_id: str
    rikishi: Rikishi
    cost: int
    selected_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "rikishi": self.rikishi.to_dict(),
            "hater_cost": self.cost,
            "selected_at": self.selected_at.isoformat(),
        }


# ---------- Totals ----------
@dataclass(frozen=True)
class DraftTotals:
    """Recomputed from current selections + hater pick on every read."""
    spent: int
    budget: int
    count: int  # regular selections + 1 if a hater pick exists
    max_slots: int
    hater_cost: int = 0

    @property
    def remaining(self) -> int:
        return self.budget - self.spent

    @property
    def open_slots(self) -> int:
        return self.max_slots - self.count

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_spent": self.spent,
            "remaining_points": self.remaining,
            "budget": self.budget,
            "selected_count": self.count,
            "max_slots": self.max_slots,
            "open_slots": self.open_slots,
            "hater_pick_cost": self.hater_cost,
        }


# ---------- Draft status ----------
@dataclass
class DraftStatus:
    """Full view of one participant's roster."""
    participant: Participant
    selections: list[Selection]
    hater_pick: HaterPick | None
    totals: DraftTotals
    tier_counts: dict[str, int] = field(default_factory=dict)

    @property
    def is_draft_finalized(self) -> bool:
        return self.participant.is_draft_finalized

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "participant_id": self.participant.id,
            "sumo_name": self.participant.sumo_name,
            "is_draft_finalized": self.participant.is_draft_finalized,
            "selected_rikishi": [s.to_dict() for s in self.selections],
            "hater_pick": self.hater_pick.to_dict() if self.hater_pick else None,
            "tier_counts": dict(self.tier_counts),
        }
        d.update(self.totals.to_dict())
        return d
