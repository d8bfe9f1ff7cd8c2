"""
Draft ledger: budget, slot and tier accounting for one participant's roster.
Every operation is one read-modify-write inside a single transaction; totals are
recomputed from the selection and hater-pick rows each time.
"""
from __future__ import annotations

import logging
import sqlite3
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from sumo_draft.config import DraftSettings
from sumo_draft.models import (
    TIERS,
    DraftStatus,
    DraftTotals,
    HaterPick,
    Participant,
    Rikishi,
    Selection,
)
from sumo_draft.persistence.db import transaction
from sumo_draft.persistence.repositories import (
    HaterPickRepository,
    ParticipantRepository,
    RikishiRepository,
    SelectionRepository,
)

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100


# ---------- Exceptions ----------


class DraftError(ValueError):
    """Business-rule rejection. Recoverable by the caller; context says what to fix."""
    code = "draft_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": str(self), **self.context}


class NotFoundError(DraftError):
    code = "not_found"


class InvalidNameError(DraftError):
    code = "invalid_name"


class InvalidCostError(DraftError):
    code = "invalid_cost"


class AlreadyFinalizedError(DraftError):
    code = "already_finalized"


class AlreadySelectedError(DraftError):
    code = "already_selected"


class NotSelectedError(DraftError):
    code = "not_selected"


class AlreadyRegularPickError(DraftError):
    """Rikishi is a regular selection; deselect it before making it the hater pick."""
    code = "already_regular_pick"


class AlreadyHaterPickError(DraftError):
    """Rikishi is the hater pick; remove it before drafting it as a regular pick."""
    code = "already_hater_pick"


class TierConflictError(DraftError):
    """Hater pick and a reserved-tier selection cannot coexist."""
    code = "tier_conflict"


class BudgetExceededError(DraftError):
    code = "budget_exceeded"


class SlotsFullError(DraftError):
    code = "slots_full"


class NoHaterPickError(DraftError):
    code = "no_hater_pick"


class EmptyDraftError(DraftError):
    code = "empty_draft"


class QuotaNotMetError(DraftError):
    code = "quota_not_met"


class StoreUnavailableError(RuntimeError):
    """Persistence failed (locked, unreachable, write rejected). Nothing was applied; retry is safe."""


# ---------- Snapshot ----------


@dataclass
class _Draft:
    participant: Participant
    selections: list[Selection]
    hater_pick: HaterPick | None

    def selected_ids(self) -> set[int]:
        return {s.rikishi.id for s in self.selections}

    def has_reserved(self, reserved_tier: str) -> Selection | None:
        for s in self.selections:
            if s.rikishi.ranking_group == reserved_tier:
                return s
        return None


# ---------- DraftLedger ----------


class DraftLedger:
    """
    Authoritative accounting of each participant's roster.
    Persistence is delegated to repositories, injected or defaulted.
    """

    def __init__(
        self,
        settings: DraftSettings,
        participants: ParticipantRepository | None = None,
        catalog: RikishiRepository | None = None,
        selections: SelectionRepository | None = None,
        hater_picks: HaterPickRepository | None = None,
    ) -> None:
        self.settings = settings
        self._participants = participants or ParticipantRepository()
        self._catalog = catalog or RikishiRepository()
        self._selections = selections or SelectionRepository()
        self._hater_picks = hater_picks or HaterPickRepository()

    # ---------- Internals ----------

    @contextmanager
    def _unit_of_work(self, conn: sqlite3.Connection, op: str, read_only: bool = False) -> Iterator[None]:
        """One transaction per operation; sqlite failures become StoreUnavailableError."""
        try:
            with transaction(conn, immediate=not read_only):
                yield
        except DraftError as e:
            logger.debug("%s rejected: %s %s", op, e.code, e.context)
            raise
        except sqlite3.Error as e:
            logger.exception("%s failed in persistence layer", op)
            raise StoreUnavailableError(f"{op} failed: {e}") from e

    def _load(self, conn: sqlite3.Connection, participant_id: str) -> _Draft:
        participant = self._participants.get(conn, participant_id)
        if participant is None:
            raise NotFoundError(f"Participant not found: {participant_id}", participant_id=participant_id)
        return _Draft(
            participant=participant,
            selections=self._selections.list_for_participant(conn, participant_id),
            hater_pick=self._hater_picks.get_for_participant(conn, participant_id),
        )

    def _rikishi(self, conn: sqlite3.Connection, rikishi_id: int) -> Rikishi:
        rikishi = self._catalog.get(conn, rikishi_id)
        if rikishi is None:
            raise NotFoundError(f"Rikishi not found: {rikishi_id}", rikishi_id=rikishi_id)
        return rikishi

    def _totals(self, draft: _Draft) -> DraftTotals:
        hater_cost = draft.hater_pick.cost if draft.hater_pick else 0
        spent = sum(s.rikishi.draft_value for s in draft.selections) + hater_cost
        count = len(draft.selections) + (1 if draft.hater_pick else 0)
        return DraftTotals(
            spent=spent,
            budget=draft.participant.budget,
            count=count,
            max_slots=self.settings.max_slots,
            hater_cost=hater_cost,
        )

    def _tier_counts(self, draft: _Draft) -> dict[str, int]:
        counts = Counter(s.rikishi.ranking_group for s in draft.selections)
        return {t: counts.get(t, 0) for t in TIERS}

    def _status(self, draft: _Draft) -> DraftStatus:
        return DraftStatus(
            participant=draft.participant,
            selections=draft.selections,
            hater_pick=draft.hater_pick,
            totals=self._totals(draft),
            tier_counts=self._tier_counts(draft),
        )

    @staticmethod
    def _assert_open(draft: _Draft) -> None:
        if draft.participant.is_draft_finalized:
            raise AlreadyFinalizedError(
                "Draft is already finalized", participant_id=draft.participant.id
            )

    # ---------- Participants ----------

    def get_or_create_participant(self, conn: sqlite3.Connection, sumo_name: str) -> Participant:
        """Login by name. Idempotent; a new participant gets the configured budget."""
        name = (sumo_name or "").strip()
        if not name:
            raise InvalidNameError("Sumo name is required")
        if len(name) > MAX_NAME_LENGTH:
            raise InvalidNameError(f"Sumo name must be at most {MAX_NAME_LENGTH} characters")
        with self._unit_of_work(conn, "login"):
            existing = self._participants.get_by_name(conn, name)
            if existing is not None:
                return existing
            participant = self._participants.create(conn, name, self.settings.draft_budget)
        logger.info("New participant %s (%s), budget %d", participant.sumo_name, participant.id, participant.budget)
        return participant

    # ---------- Reads ----------

    def get_status(self, conn: sqlite3.Connection, participant_id: str) -> DraftStatus:
        with self._unit_of_work(conn, "status", read_only=True):
            return self._status(self._load(conn, participant_id))

    def list_finalized(self, conn: sqlite3.Connection) -> list[DraftStatus]:
        """Every finalized roster, ordered by sumo name."""
        with self._unit_of_work(conn, "list_finalized", read_only=True):
            return [
                self._status(self._load(conn, p.id))
                for p in self._participants.list_finalized(conn)
            ]

    # ---------- Regular picks ----------

    def select_regular(self, conn: sqlite3.Connection, participant_id: str, rikishi_id: int) -> DraftTotals:
        reserved = self.settings.reserved_tier
        with self._unit_of_work(conn, "select"):
            draft = self._load(conn, participant_id)
            self._assert_open(draft)
            rikishi = self._rikishi(conn, rikishi_id)
            if rikishi.id in draft.selected_ids():
                raise AlreadySelectedError(f"{rikishi.name} is already selected", rikishi_id=rikishi.id)
            if draft.hater_pick and draft.hater_pick.rikishi.id == rikishi.id:
                raise AlreadyHaterPickError(
                    f"{rikishi.name} is your hater pick; remove the hater pick first",
                    rikishi_id=rikishi.id,
                )
            if rikishi.ranking_group == reserved and draft.hater_pick is not None:
                raise TierConflictError(
                    f"Cannot select {reserved} tier rikishi while you have a hater pick "
                    f"({draft.hater_pick.rikishi.name}). Remove the hater pick first.",
                    tier=reserved,
                    hater_pick_id=draft.hater_pick.rikishi.id,
                )
            totals = self._totals(draft)
            would_spend = totals.spent + rikishi.draft_value
            if would_spend > totals.budget:
                raise BudgetExceededError(
                    f"Not enough points. Need {rikishi.draft_value}, have {totals.remaining}",
                    current_spent=totals.spent,
                    cost=rikishi.draft_value,
                    would_spend=would_spend,
                    budget=totals.budget,
                )
            if totals.count >= totals.max_slots:
                raise SlotsFullError(
                    f"All {totals.max_slots} slots are filled",
                    count=totals.count,
                    max_slots=totals.max_slots,
                )
            self._selections.add(conn, participant_id, rikishi.id)
            return self._totals(self._load(conn, participant_id))

    def deselect_regular(self, conn: sqlite3.Connection, participant_id: str, rikishi_id: int) -> DraftTotals:
        with self._unit_of_work(conn, "deselect"):
            draft = self._load(conn, participant_id)
            self._assert_open(draft)
            if rikishi_id not in draft.selected_ids():
                raise NotSelectedError("Rikishi was not selected", rikishi_id=rikishi_id)
            self._selections.remove(conn, participant_id, rikishi_id)
            return self._totals(self._load(conn, participant_id))

    # ---------- Hater pick ----------

    def set_hater_pick(
        self, conn: sqlite3.Connection, participant_id: str, rikishi_id: int, cost: int
    ) -> DraftTotals:
        """Add or replace the hater pick. Replacement swaps the old cost for the new one."""
        if cost < 1:
            raise InvalidCostError("Hater cost must be at least 1", hater_cost=cost)
        reserved = self.settings.reserved_tier
        with self._unit_of_work(conn, "set_hater_pick"):
            draft = self._load(conn, participant_id)
            self._assert_open(draft)
            rikishi = self._rikishi(conn, rikishi_id)
            if rikishi.id in draft.selected_ids():
                raise AlreadyRegularPickError(
                    f"{rikishi.name} is already in your draft; deselect it first",
                    rikishi_id=rikishi.id,
                )
            conflict = draft.has_reserved(reserved)
            if conflict is not None:
                raise TierConflictError(
                    f"Cannot take a hater pick while you have a {reserved} tier rikishi "
                    f"({conflict.rikishi.name}). Deselect it first.",
                    tier=reserved,
                    conflicting_rikishi_id=conflict.rikishi.id,
                )
            totals = self._totals(draft)
            current_cost = draft.hater_pick.cost if draft.hater_pick else 0
            net_change = cost - current_cost
            would_spend = totals.spent + net_change
            if would_spend > totals.budget:
                raise BudgetExceededError(
                    f"Not enough points. Hater pick costs {cost}, you have {totals.remaining + current_cost} available",
                    current_spent=totals.spent,
                    cost=cost,
                    current_hater_cost=current_cost,
                    net_change=net_change,
                    would_spend=would_spend,
                    budget=totals.budget,
                )
            if draft.hater_pick is None and totals.count + 1 > totals.max_slots:
                raise SlotsFullError(
                    f"All {totals.max_slots} slots are filled",
                    count=totals.count,
                    max_slots=totals.max_slots,
                )
            self._hater_picks.upsert(conn, participant_id, rikishi.id, cost)
            return self._totals(self._load(conn, participant_id))

    def remove_hater_pick(self, conn: sqlite3.Connection, participant_id: str) -> DraftTotals:
        with self._unit_of_work(conn, "remove_hater_pick"):
            draft = self._load(conn, participant_id)
            self._assert_open(draft)
            if draft.hater_pick is None:
                raise NoHaterPickError("No hater pick found")
            self._hater_picks.remove(conn, participant_id)
            return self._totals(self._load(conn, participant_id))

    # ---------- Lifecycle ----------

    def _missing_quota(self, draft: _Draft) -> list[str]:
        minimums = self.settings.tier_minimums
        if not minimums:
            return []
        counts = self._tier_counts(draft)
        if draft.hater_pick is not None:
            # The hater pick occupies the reserved tier's slot.
            counts[self.settings.reserved_tier] = counts.get(self.settings.reserved_tier, 0) + 1
        missing = []
        for tier in TIERS:
            required = minimums.get(tier, 0)
            have = counts.get(tier, 0)
            if have < required:
                missing.append(f"{required - have} more {tier} rikishi")
        return missing

    def finalize(self, conn: sqlite3.Connection, participant_id: str) -> DraftStatus:
        with self._unit_of_work(conn, "finalize"):
            draft = self._load(conn, participant_id)
            self._assert_open(draft)
            totals = self._totals(draft)
            if totals.count == 0:
                raise EmptyDraftError("Cannot finalize empty draft")
            if totals.spent > totals.budget:
                raise BudgetExceededError(
                    "Draft exceeds point limit",
                    current_spent=totals.spent,
                    would_spend=totals.spent,
                    budget=totals.budget,
                )
            missing = self._missing_quota(draft)
            if missing:
                raise QuotaNotMetError(
                    f"Draft requirements not met. You need: {', '.join(missing)}",
                    missing_requirements=missing,
                )
            self._participants.set_finalized(conn, participant_id, True)
            draft.participant.is_draft_finalized = True
            status = self._status(draft)
        logger.info("Draft finalized for %s: %d picks, %d/%d points",
                    draft.participant.sumo_name, totals.count, totals.spent, totals.budget)
        return status

    def reset(self, conn: sqlite3.Connection, participant_id: str) -> DraftStatus:
        """Admin: clear picks and un-finalize, whatever the current state."""
        with self._unit_of_work(conn, "reset"):
            participant = self._participants.get(conn, participant_id)
            if participant is None:
                raise NotFoundError(f"Participant not found: {participant_id}", participant_id=participant_id)
            self._selections.clear_for_participant(conn, participant_id)
            self._hater_picks.remove(conn, participant_id)
            self._participants.set_finalized(conn, participant_id, False)
            status = self._status(self._load(conn, participant_id))
        logger.info("Draft reset for %s", participant.sumo_name)
        return status

    def reset_all(self, conn: sqlite3.Connection) -> int:
        """Admin: reset every participant. Returns the number of participants."""
        with self._unit_of_work(conn, "reset_all"):
            self._selections.clear_all(conn)
            self._hater_picks.clear_all(conn)
            n = self._participants.unfinalize_all(conn)
        logger.info("All drafts reset (%d participants)", n)
        return n
