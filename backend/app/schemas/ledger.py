"""
Schémas Pydantic pour le grand livre des paiements d'un voyage.
Montants toujours positifs ; le sens est porté par le type.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

VALID_ENTRY_TYPES = {"CHARGE", "CREDIT", "REFUND"}  # CHARGE ajoute au solde, les autres le réduisent


class PaymentCreate(BaseModel):
    """Corps de requête pour enregistrer un paiement ou un remboursement."""
    amount_cents: int
    type: str = "CHARGE"
    provider: str = "DEV"
    provider_ref: Optional[str] = None
    note: Optional[str] = None

    @field_validator("amount_cents")
    @classmethod
    def amount_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Le montant doit être strictement positif.")
        return v

    @field_validator("type")
    @classmethod
    def valid_type(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in VALID_ENTRY_TYPES:
            raise ValueError(f"Type d'écriture invalide. Valeurs acceptées : {VALID_ENTRY_TYPES}")
        return v


class LedgerEntry(BaseModel):
    """Écriture du grand livre (append-only, jamais modifiée)."""
    id: str
    trip_id: str
    amount_cents: int
    type: str
    provider: str = "DEV"
    provider_ref: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime

    @property
    def signed_cents(self) -> int:
        return self.amount_cents if self.type == "CHARGE" else -self.amount_cents


class LedgerResponse(BaseModel):
    trip_id: str
    balance_cents: int
    entries: List[LedgerEntry]
