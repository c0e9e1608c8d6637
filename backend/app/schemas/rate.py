"""
Schémas Pydantic pour les tarifs journaliers par région.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, field_validator

from app.schemas.trip import VALID_REGIONS


class RateCreate(BaseModel):
    region: str
    amount_cents: int
    effective_start: date
    notes: Optional[str] = None

    @field_validator("region")
    @classmethod
    def valid_region(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in VALID_REGIONS:
            raise ValueError(f"Région invalide. Valeurs acceptées : {VALID_REGIONS}")
        return v

    @field_validator("amount_cents")
    @classmethod
    def amount_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Le tarif doit être strictement positif.")
        return v


class Rate(RateCreate):
    id: str
