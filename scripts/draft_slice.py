#!/usr/bin/env python3
"""
Vertical slice: Seed catalog → Login → Draft → Hater pick → Finalize → Reset.
Run from project root: python3 scripts/draft_slice.py
"""
from __future__ import annotations

import json
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from sumo_draft.config import DraftSettings
from sumo_draft.persistence import RikishiRepository, get_connection, init_db
from sumo_draft.services import DraftError, DraftLedger


def main() -> None:
    # Use data/draft_slice.db for demo (distinct from app.db)
    db_path = PROJECT_ROOT / "data" / "draft_slice.db"
    if db_path.exists():
        db_path.unlink()
    settings = DraftSettings(db_path=db_path, catalog_path=PROJECT_ROOT / "data" / "rikishi.json")
    init_db(settings.db_path, catalog_path=settings.catalog_path, default_budget=settings.draft_budget)

    conn = get_connection(settings.db_path)
    try:
        ledger = DraftLedger(settings)

        # 1. Login
        participant = ledger.get_or_create_participant(conn, "Slice Demo")
        print(f"Participant: {participant.sumo_name} (budget {participant.budget})")

        # 2. Draft the priciest entry of each tier until something refuses
        grouped = RikishiRepository().list_grouped(conn)
        for tier, entries in grouped.items():
            if not entries or tier == settings.reserved_tier:
                continue
            pick = entries[0]
            try:
                totals = ledger.select_regular(conn, participant.id, pick.id)
                print(f"Selected {pick.name} ({tier}, {pick.draft_value}): {totals.spent}/{totals.budget}")
            except DraftError as e:
                print(f"Rejected {pick.name}: {e.code} {e.context}")

        # 3. Hater pick from the reserved tier
        reserved = grouped.get(settings.reserved_tier) or []
        if reserved:
            totals = ledger.set_hater_pick(conn, participant.id, reserved[0].id, 1)
            print(f"Hater pick {reserved[0].name}: {totals.spent}/{totals.budget}, {totals.open_slots} slots open")

        # 4. Finalize
        status = ledger.finalize(conn, participant.id)
        print("Finalized draft:")
        print(json.dumps(status.to_dict(), indent=2))

        # 5. Admin reset
        status = ledger.reset(conn, participant.id)
        print(f"After reset: finalized={status.is_draft_finalized}, picks={status.totals.count}")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
