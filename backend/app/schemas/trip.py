"""
Schémas Pydantic pour les voyages.

Note : on importe datetime en tant que module (dt) pour éviter le conflit de nommage
entre les champs de date et le type `datetime.date` dans Pydantic v2.
"""

import datetime as dt
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from app.schemas.coverage import CoverageSummary
from app.schemas.member import Member

VALID_REGIONS = {"DOMESTIC", "INTERNATIONAL"}
VALID_TRIP_STATUSES = {"ACTIVE", "ARCHIVED"}
VALID_PAYMENT_STATUSES = {"PAID", "UNPAID", "PARTIAL"}


def _check_region(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().upper()
    if v not in VALID_REGIONS:
        raise ValueError(f"Région invalide. Valeurs acceptées : {VALID_REGIONS}")
    return v


class TripCreate(BaseModel):
    title: str
    start_date: dt.date
    end_date: dt.date
    region: str
    rate_cents: Optional[int] = None  # si absent : tarif régional en vigueur à start_date
    leader_id: Optional[str] = None
    leader_name: Optional[str] = None
    leader_email: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre du voyage ne peut pas être vide.")
        return v.strip()

    @field_validator("region")
    @classmethod
    def valid_region(cls, v: str) -> str:
        return _check_region(v)

    @field_validator("rate_cents")
    @classmethod
    def rate_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("Le tarif journalier doit être strictement positif.")
        return v

    @model_validator(mode="after")
    def end_not_before_start(self):
        if self.end_date < self.start_date:
            raise ValueError("La date de fin doit être postérieure ou égale à la date de début.")
        return self


class TripUpdate(BaseModel):
    title: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    region: Optional[str] = None
    rate_cents: Optional[int] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    # False : rend le statut de paiement au rapprochement automatique
    payment_status_manual: Optional[bool] = None
    leader_name: Optional[str] = None
    leader_email: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le titre du voyage ne peut pas être vide.")
        return v.strip() if v is not None else v

    @field_validator("region")
    @classmethod
    def valid_region(cls, v: Optional[str]) -> Optional[str]:
        return _check_region(v)

    @field_validator("rate_cents")
    @classmethod
    def rate_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("Le tarif journalier doit être strictement positif.")
        return v

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_TRIP_STATUSES:
            raise ValueError(f"Statut invalide. Valeurs acceptées : {VALID_TRIP_STATUSES}")
        return v

    @field_validator("payment_status")
    @classmethod
    def valid_payment_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_PAYMENT_STATUSES:
            raise ValueError(f"Statut de paiement invalide. Valeurs acceptées : {VALID_PAYMENT_STATUSES}")
        return v


class Trip(BaseModel):
    """Forme canonique d'un voyage dans le store."""
    id: str
    short_id: str = Field(validation_alias=AliasChoices("short_id", "shortId"))
    title: str
    start_date: dt.date = Field(validation_alias=AliasChoices("start_date", "startDate"))
    end_date: dt.date = Field(validation_alias=AliasChoices("end_date", "endDate"))
    region: str
    rate_cents: int = Field(validation_alias=AliasChoices("rate_cents", "rateCents"))
    status: str = "ACTIVE"
    payment_status: str = Field(
        default="UNPAID", validation_alias=AliasChoices("payment_status", "paymentStatus")
    )
    # Statut fixé à la main par un administrateur : le rapprochement ne le recalcule pas
    payment_status_manual: bool = False
    # Cache du solde du grand livre ; jamais utilisé comme source de vérité
    credits_total_cents: int = Field(
        default=0, validation_alias=AliasChoices("credits_total_cents", "creditsTotalCents")
    )
    leader_id: Optional[str] = None
    leader_name: Optional[str] = None
    leader_email: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}

    @property
    def is_archived(self) -> bool:
        return self.status == "ARCHIVED"


class TripDetail(BaseModel):
    """Voyage avec son roster et sa couverture calculée."""
    trip: Trip
    members: List[Member]
    coverage: CoverageSummary
