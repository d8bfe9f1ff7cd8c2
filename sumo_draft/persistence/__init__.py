"""
Persistence layer for draft data.
No business logic, only read/write interfaces.
"""
from .db import get_connection, init_db, transaction
from .repositories import (
    ParticipantRepository,
    RikishiRepository,
    SelectionRepository,
    HaterPickRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "transaction",
    "ParticipantRepository",
    "RikishiRepository",
    "SelectionRepository",
    "HaterPickRepository",
]
