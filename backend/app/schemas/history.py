"""
Schémas Pydantic pour le journal d'audit des voyages.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

HISTORY_EVENT_TYPES = (
    "TRIP_CREATED",
    "TRIP_UPDATED",
    "TRIP_PAYMENT_STATUS_UPDATED",
    "TRIP_STATUS_UPDATED",
    "MEMBER_ADDED",
    "MEMBER_UPDATED",
    "MEMBER_REMOVED",
    "PAYMENT_APPLIED",
    "COVERAGE_ALLOCATED",
    "COVERAGE_RELEASED",
    "COVERAGE_TRANSFERRED",
    "CLAIM_SUBMITTED",
    "CLAIM_CREATED",
    "CLAIM_STATUS_UPDATED",
    "CLAIM_NOTE_ADDED",
    "CLAIM_MESSAGE_ADDED",
    "CLAIM_ATTACHMENT_ADDED",
)

VALID_ACTOR_ROLES = {"LEADER", "ADMIN", "SYSTEM"}


class Actor(BaseModel):
    """Auteur d'une action (pas d'authentification : rôle et id déclaratifs)."""
    role: str = "LEADER"
    id: Optional[str] = None

    @field_validator("role")
    @classmethod
    def valid_role(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in VALID_ACTOR_ROLES:
            raise ValueError(f"Rôle invalide. Valeurs acceptées : {VALID_ACTOR_ROLES}")
        return v


SYSTEM_ACTOR = Actor(role="SYSTEM", id="scheduler")


class HistoryEvent(BaseModel):
    id: str
    trip_id: str
    trip_title: str
    type: str
    actor_role: str
    actor_id: Optional[str] = None
    timestamp: datetime
    member_id: Optional[str] = None
    from_member_id: Optional[str] = None
    to_member_id: Optional[str] = None
    amount_cents: Optional[int] = None
    notes: Optional[str] = None
    prev_hash: str
    hash: str


class HistoryResponse(BaseModel):
    trip_id: str
    chain_valid: bool
    events: List[HistoryEvent]
