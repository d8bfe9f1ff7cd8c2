"""
REST API for the fantasy sumo draft.
Thin wrappers around the draft ledger and repositories.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Generator

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from sumo_draft.auth import (
    ADMIN_SUBJECT,
    SESSION_COOKIE,
    SessionClaims,
    create_session_token,
    decode_session_token,
    verify_admin_password,
)
from sumo_draft.config import DraftSettings
from sumo_draft.persistence import RikishiRepository, SelectionRepository, HaterPickRepository, get_connection, init_db
from sumo_draft.rikishi_db import MAX_DRAFT_VALUE, MIN_DRAFT_VALUE
from sumo_draft.services.ledger import (
    AlreadyFinalizedError,
    AlreadySelectedError,
    DraftError,
    DraftLedger,
    NotFoundError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# 409 for state conflicts, 404 for missing rows, 400 for everything else
_CONFLICT_ERRORS = (AlreadyFinalizedError, AlreadySelectedError)


# ---------- Request models ----------


class LoginRequest(BaseModel):
    sumo_name: str = Field(..., min_length=1, max_length=100)


class AdminLoginRequest(BaseModel):
    password: str = Field(..., min_length=1)


class HaterPickRequest(BaseModel):
    rikishi_id: int = Field(..., gt=0)
    hater_cost: int = Field(..., description="Points charged for the hater pick; independent of the catalog price")


class DraftValueRequest(BaseModel):
    draft_value: int = Field(..., ge=MIN_DRAFT_VALUE, le=MAX_DRAFT_VALUE)


# ---------- Dependencies ----------


def _settings(request: Request) -> DraftSettings:
    return request.app.state.settings


def _ledger(request: Request) -> DraftLedger:
    return request.app.state.ledger


def db_conn(request: Request) -> Generator[sqlite3.Connection, None, None]:
    """Yield a per-request DB connection, ensure close on exit."""
    conn = get_connection(request.app.state.settings.db_path)
    try:
        yield conn
    finally:
        conn.close()


def _current_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> SessionClaims | None:
    """Session from the cookie, else from a Bearer header. None if absent or invalid."""
    settings = _settings(request)
    token = request.cookies.get(SESSION_COOKIE)
    if token is None and credentials is not None:
        token = credentials.credentials
    return decode_session_token(token, settings)


def _require_session(session: SessionClaims | None = Depends(_current_session)) -> SessionClaims:
    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return session


def _require_participant(session: SessionClaims = Depends(_require_session)) -> str:
    if session.is_admin and session.subject == ADMIN_SUBJECT:
        raise HTTPException(status_code=403, detail="Admin session cannot draft")
    return session.subject


def _require_admin(session: SessionClaims = Depends(_require_session)) -> SessionClaims:
    if not session.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return session


def _pick_flags(conn: sqlite3.Connection, session: SessionClaims) -> tuple[set[int], int | None]:
    """Selected ids and hater pick id for a participant session; nothing for admin."""
    if session.subject == ADMIN_SUBJECT:
        return set(), None
    selected = SelectionRepository().selected_ids(conn, session.subject)
    hater = HaterPickRepository().get_for_participant(conn, session.subject)
    return selected, hater.rikishi.id if hater else None


def _set_session_cookie(response: Response, token: str, settings: DraftSettings) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        path="/",
    )


# ---------- Error mapping ----------


async def _draft_error_handler(request: Request, exc: DraftError) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, _CONFLICT_ERRORS):
        status = 409
    else:
        status = 400
    return JSONResponse(status_code=status, content=exc.to_dict())


async def _store_error_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"error": "store_unavailable", "message": "Storage temporarily unavailable; please retry"},
    )


# ---------- App factory ----------


def create_app(settings: DraftSettings | None = None) -> FastAPI:
    """
    Build the app. The factory owns settings and the ledger; the DB is
    initialized (schema, migrations, catalog seed) in the lifespan.
    """
    settings = settings or DraftSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        init_db(settings.db_path, catalog_path=settings.catalog_path, default_budget=settings.draft_budget)
        logger.info(
            "Draft API ready: db=%s budget=%d max_slots=%d reserved_tier=%s",
            settings.db_path, settings.draft_budget, settings.max_slots, settings.reserved_tier,
        )
        yield

    app = FastAPI(
        title="Fantasy Sumo Draft API",
        description="Draft rikishi under a points budget",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.ledger = DraftLedger(settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(DraftError, _draft_error_handler)
    app.add_exception_handler(StoreUnavailableError, _store_error_handler)
    _register_routes(app)
    return app


# ---------- Endpoints ----------


def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok"}

    @app.get("/config")
    def get_config(settings: DraftSettings = Depends(_settings)) -> dict[str, Any]:
        """Draft rules the UI needs (budget, slots, tiers). No secrets."""
        return settings.rules_dict()

    # ---------- Auth ----------

    @app.post("/auth/login")
    def login(
        req: LoginRequest,
        response: Response,
        conn: sqlite3.Connection = Depends(db_conn),
        settings: DraftSettings = Depends(_settings),
        ledger: DraftLedger = Depends(_ledger),
    ) -> dict[str, Any]:
        """Login by sumo name. Creates the participant on first login."""
        participant = ledger.get_or_create_participant(conn, req.sumo_name)
        token = create_session_token(SessionClaims(participant.id, participant.sumo_name), settings)
        _set_session_cookie(response, token, settings)
        return {"message": "Login successful", "user": participant.to_dict(), "token": token}

    @app.post("/auth/admin")
    def admin_login(
        req: AdminLoginRequest,
        response: Response,
        settings: DraftSettings = Depends(_settings),
    ) -> dict[str, Any]:
        if not verify_admin_password(req.password, settings):
            raise HTTPException(status_code=401, detail="Invalid admin password")
        token = create_session_token(SessionClaims(ADMIN_SUBJECT, "Admin", is_admin=True), settings)
        _set_session_cookie(response, token, settings)
        return {"message": "Admin login successful", "is_admin": True, "token": token}

    @app.post("/auth/logout")
    def logout(response: Response) -> dict[str, Any]:
        response.delete_cookie(SESSION_COOKIE, path="/")
        return {"message": "Logged out"}

    @app.get("/auth/me")
    def me(
        session: SessionClaims = Depends(_require_session),
        conn: sqlite3.Connection = Depends(db_conn),
        ledger: DraftLedger = Depends(_ledger),
    ) -> dict[str, Any]:
        if session.subject == ADMIN_SUBJECT:
            return {"id": ADMIN_SUBJECT, "sumo_name": session.sumo_name, "is_admin": True}
        status = ledger.get_status(conn, session.subject)
        return {
            "id": status.participant.id,
            "sumo_name": status.participant.sumo_name,
            "is_admin": session.is_admin,
            "is_draft_finalized": status.is_draft_finalized,
        }

    # ---------- Catalog ----------

    @app.get("/rikishi")
    def list_rikishi(
        session: SessionClaims = Depends(_require_session),
        conn: sqlite3.Connection = Depends(db_conn),
    ) -> dict[str, Any]:
        """Catalog grouped by tier, with the caller's pick flags (all False for admin)."""
        selected, hater_id = _pick_flags(conn, session)
        grouped = RikishiRepository().list_grouped(conn)
        return {
            tier: [
                {**r.to_dict(), "is_selected": r.id in selected, "is_hater_pick": r.id == hater_id}
                for r in entries
            ]
            for tier, entries in grouped.items()
        }

    @app.get("/rikishi/{rikishi_id}")
    def get_rikishi(
        rikishi_id: int,
        session: SessionClaims = Depends(_require_session),
        conn: sqlite3.Connection = Depends(db_conn),
    ) -> dict[str, Any]:
        r = RikishiRepository().get(conn, rikishi_id)
        if r is None:
            raise HTTPException(status_code=404, detail="Rikishi not found")
        selected, hater_id = _pick_flags(conn, session)
        return {**r.to_dict(), "is_selected": r.id in selected, "is_hater_pick": r.id == hater_id}

    @app.put("/rikishi/{rikishi_id}/value")
    def update_rikishi_value(
        rikishi_id: int,
        req: DraftValueRequest,
        _admin: SessionClaims = Depends(_require_admin),
        conn: sqlite3.Connection = Depends(db_conn),
    ) -> dict[str, Any]:
        """Admin: change a price. Existing rosters are re-totalled on their next read."""
        if not RikishiRepository().update_draft_value(conn, rikishi_id, req.draft_value):
            raise HTTPException(status_code=404, detail="Rikishi not found")
        logger.info("Draft value for rikishi %d set to %d", rikishi_id, req.draft_value)
        return {"message": "Draft value updated successfully", "rikishi_id": rikishi_id, "draft_value": req.draft_value}

    # ---------- Draft ----------

    @app.get("/draft/status")
    def draft_status(
        participant_id: str = Depends(_require_participant),
        conn: sqlite3.Connection = Depends(db_conn),
        ledger: DraftLedger = Depends(_ledger),
    ) -> dict[str, Any]:
        return ledger.get_status(conn, participant_id).to_dict()

    @app.post("/draft/select/{rikishi_id}")
    def select_rikishi(
        rikishi_id: int,
        participant_id: str = Depends(_require_participant),
        conn: sqlite3.Connection = Depends(db_conn),
        ledger: DraftLedger = Depends(_ledger),
    ) -> dict[str, Any]:
        totals = ledger.select_regular(conn, participant_id, rikishi_id)
        return {"success": True, "rikishi_id": rikishi_id, **totals.to_dict()}

    @app.delete("/draft/deselect/{rikishi_id}")
    def deselect_rikishi(
        rikishi_id: int,
        participant_id: str = Depends(_require_participant),
        conn: sqlite3.Connection = Depends(db_conn),
        ledger: DraftLedger = Depends(_ledger),
    ) -> dict[str, Any]:
        totals = ledger.deselect_regular(conn, participant_id, rikishi_id)
        return {"success": True, "rikishi_id": rikishi_id, **totals.to_dict()}

    @app.post("/draft/hater-pick")
    def set_hater_pick(
        req: HaterPickRequest,
        participant_id: str = Depends(_require_participant),
        conn: sqlite3.Connection = Depends(db_conn),
        ledger: DraftLedger = Depends(_ledger),
    ) -> dict[str, Any]:
        totals = ledger.set_hater_pick(conn, participant_id, req.rikishi_id, req.hater_cost)
        return {"success": True, "rikishi_id": req.rikishi_id, **totals.to_dict()}

    @app.delete("/draft/hater-pick")
    def remove_hater_pick(
        participant_id: str = Depends(_require_participant),
        conn: sqlite3.Connection = Depends(db_conn),
        ledger: DraftLedger = Depends(_ledger),
    ) -> dict[str, Any]:
        totals = ledger.remove_hater_pick(conn, participant_id)
        return {"success": True, **totals.to_dict()}

    @app.post("/draft/finalize")
    def finalize_draft(
        participant_id: str = Depends(_require_participant),
        conn: sqlite3.Connection = Depends(db_conn),
        ledger: DraftLedger = Depends(_ledger),
    ) -> dict[str, Any]:
        status = ledger.finalize(conn, participant_id)
        return {"message": "Draft finalized successfully! No more changes allowed.", **status.to_dict()}

    @app.get("/draft/all-finalized")
    def all_finalized(
        _session: SessionClaims = Depends(_require_session),
        conn: sqlite3.Connection = Depends(db_conn),
        ledger: DraftLedger = Depends(_ledger),
    ) -> dict[str, Any]:
        return {"drafts": [s.to_dict() for s in ledger.list_finalized(conn)]}

    # ---------- Admin ----------

    @app.post("/draft/reset/{participant_id}")
    def reset_draft(
        participant_id: str,
        _admin: SessionClaims = Depends(_require_admin),
        conn: sqlite3.Connection = Depends(db_conn),
        ledger: DraftLedger = Depends(_ledger),
    ) -> dict[str, Any]:
        status = ledger.reset(conn, participant_id)
        return {
            "message": f"{status.participant.sumo_name}'s draft has been reset. They can now draft again.",
            **status.to_dict(),
        }

    @app.post("/admin/reset-drafts")
    def reset_all_drafts(
        _admin: SessionClaims = Depends(_require_admin),
        conn: sqlite3.Connection = Depends(db_conn),
        ledger: DraftLedger = Depends(_ledger),
    ) -> dict[str, Any]:
        n = ledger.reset_all(conn)
        return {"message": "All drafts reset", "participants_reset": n}


app = create_app()


def main() -> None:
    """Serve with logging configured from LOG_LEVEL."""
    settings = DraftSettings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host="127.0.0.1", port=8000, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()

# ---------- Run with: python -m sumo_draft.api (or uvicorn sumo_draft.api:app --reload) ----------
