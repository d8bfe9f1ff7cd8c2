"""
Draft settings, read once from the environment at process start.
The app factory owns the settings object; nothing reads os.environ after that.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from sumo_draft.models import TIERS, Tier

FALLBACK_BUDGET = 50
RELAXED_BUDGET = 1000  # NO_POINTS_MODE: prices hidden in the UI, budget effectively unlimited
DEFAULT_MAX_SLOTS = 6
DEFAULT_SESSION_SECRET = "fantasy-sumo-draft-dev-secret-change-in-production"
DEFAULT_ADMIN_PASSWORD = "admin123"


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def parse_tier_minimums(raw: str | None) -> dict[str, int]:
    """
    Parse "Yellow:1,Blue:2" into {"Yellow": 1, "Blue": 2}.
    Empty or missing means no minimums (finalize only re-checks the budget).
    """
    if not raw or not raw.strip():
        return {}
    out: dict[str, int] = {}
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        name, sep, count = part.partition(":")
        if not sep:
            raise ValueError(f"Invalid tier minimum '{part}': expected Tier:count")
        tier = Tier.parse(name)
        if tier is None:
            raise ValueError(f"Unknown tier '{name.strip()}'. Must be one of: {', '.join(TIERS)}")
        n = int(count)
        if n < 0:
            raise ValueError(f"Tier minimum for {tier.value} must be >= 0")
        out[tier.value] = n
    return out


@dataclass(frozen=True)
class DraftSettings:
    """Budget cap, slot cap and tier rules plus the process-level knobs (DB path, secrets)."""
    db_path: Path = field(default_factory=lambda: _project_root() / "data" / "app.db")
    catalog_path: Path | None = field(default_factory=lambda: _project_root() / "data" / "rikishi.json")
    no_points_mode: bool = False
    draft_budget: int = FALLBACK_BUDGET
    max_slots: int = DEFAULT_MAX_SLOTS
    reserved_tier: str = Tier.WHITE.value
    tier_minimums: dict[str, int] = field(default_factory=dict)
    session_secret: str = DEFAULT_SESSION_SECRET
    session_max_age_seconds: int = 24 * 60 * 60
    admin_password: str | None = DEFAULT_ADMIN_PASSWORD
    admin_password_hash: str | None = None
    secure_cookies: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.draft_budget < 0:
            raise ValueError("draft_budget must be >= 0")
        if self.max_slots < 1:
            raise ValueError("max_slots must be >= 1")
        if Tier.parse(self.reserved_tier) is None:
            raise ValueError(f"reserved_tier must be one of: {', '.join(TIERS)}")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> DraftSettings:
        env = os.environ if environ is None else environ
        no_points = parse_bool(env.get("NO_POINTS_MODE"), default=False)
        raw_budget = env.get("DRAFT_BUDGET", "").strip()
        if raw_budget:
            budget = int(raw_budget)
        else:
            budget = RELAXED_BUDGET if no_points else FALLBACK_BUDGET
        reserved = Tier.parse(env.get("DRAFT_RESERVED_TIER", Tier.WHITE.value))
        if reserved is None:
            raise ValueError(f"DRAFT_RESERVED_TIER must be one of: {', '.join(TIERS)}")
        db_path = env.get("SUMO_DRAFT_DB_PATH")
        catalog_path = env.get("SUMO_DRAFT_CATALOG_PATH")
        defaults = cls()
        return cls(
            db_path=Path(db_path) if db_path else defaults.db_path,
            catalog_path=Path(catalog_path) if catalog_path else defaults.catalog_path,
            no_points_mode=no_points,
            draft_budget=budget,
            max_slots=int(env.get("DRAFT_MAX_SLOTS", DEFAULT_MAX_SLOTS)),
            reserved_tier=reserved.value,
            tier_minimums=parse_tier_minimums(env.get("DRAFT_TIER_MINIMUMS")),
            session_secret=env.get("SESSION_SECRET", DEFAULT_SESSION_SECRET),
            session_max_age_seconds=int(env.get("SESSION_MAX_AGE_SECONDS", 24 * 60 * 60)),
            admin_password=env.get("ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD),
            admin_password_hash=env.get("ADMIN_PASSWORD_HASH") or None,
            secure_cookies=parse_bool(env.get("SECURE_COOKIES"), default=False),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )

    def rules_dict(self) -> dict[str, object]:
        """Public draft rules (no secrets) for the /config endpoint."""
        return {
            "budget": self.draft_budget,
            "max_slots": self.max_slots,
            "reserved_tier": self.reserved_tier,
            "tiers": list(TIERS),
            "tier_minimums": dict(self.tier_minimums),
            "no_points_mode": self.no_points_mode,
        }
