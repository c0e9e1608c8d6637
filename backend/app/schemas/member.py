"""
Schémas Pydantic pour les voyageurs (membres d'un voyage).

Les anciennes variantes de noms de champs (camelCase, `minor`, `is_confirmed`,
objet `guardian` imbriqué...) sont acceptées à l'entrée et ramenées à une forme
canonique unique. Le reste du code ne lit que les noms snake_case.
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


def _flatten_guardian(data):
    """Aplati un objet `guardian` imbriqué vers les champs guardian_* (sans écraser l'existant)."""
    if not isinstance(data, dict) or not isinstance(data.get("guardian"), dict):
        return data
    data = dict(data)
    guardian = data.pop("guardian")

    def missing(*keys):
        return all(data.get(k) in (None, "") for k in keys)

    first = guardian.get("first_name") or guardian.get("firstName") or ""
    last = guardian.get("last_name") or guardian.get("lastName") or ""
    name = f"{first} {last}".strip()
    if name and missing("guardian_name", "guardianName"):
        data["guardian_name"] = name
    if guardian.get("email") and missing("guardian_email", "guardianEmail"):
        data["guardian_email"] = guardian["email"]
    if guardian.get("phone") and missing("guardian_phone", "guardianPhone"):
        data["guardian_phone"] = guardian["phone"]
    if "approved" in guardian and missing("guardian_approved", "guardianApproved", "guardianApproval"):
        data["guardian_approved"] = guardian["approved"]
    return data


class MemberFields(BaseModel):
    """Champs saisissables d'un voyageur, avec leurs alias historiques."""
    first_name: str = Field(default="", validation_alias=_alias("first_name", "firstName"))
    last_name: str = Field(default="", validation_alias=_alias("last_name", "lastName"))
    email: Optional[str] = Field(default=None, validation_alias=_alias("email", "emailAddress"))
    phone: Optional[str] = Field(default=None, validation_alias=_alias("phone", "phoneNumber"))
    is_minor: bool = Field(default=False, validation_alias=_alias("is_minor", "isMinor", "minor"))
    confirmed: bool = Field(
        default=False, validation_alias=_alias("confirmed", "is_confirmed", "isConfirmed")
    )
    guardian_approved: bool = Field(
        default=False,
        validation_alias=_alias("guardian_approved", "guardianApproved", "guardianApproval"),
    )
    guardian_name: Optional[str] = Field(default=None, validation_alias=_alias("guardian_name", "guardianName"))
    guardian_email: Optional[str] = Field(default=None, validation_alias=_alias("guardian_email", "guardianEmail"))
    guardian_phone: Optional[str] = Field(default=None, validation_alias=_alias("guardian_phone", "guardianPhone"))
    active: bool = True

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def flatten_guardian(cls, data):
        return _flatten_guardian(data)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def name_stripped(cls, v) -> str:
        return str(v or "").strip()


class MemberCreate(MemberFields):
    """Corps de requête pour ajouter un voyageur à un voyage."""

    @model_validator(mode="after")
    def has_identity(self):
        if not (self.first_name or self.last_name or self.email):
            raise ValueError("Un voyageur doit avoir au moins un nom ou un email.")
        return self


class MemberUpdate(BaseModel):
    """Mise à jour partielle : seuls les champs fournis sont modifiés."""
    first_name: Optional[str] = Field(default=None, validation_alias=_alias("first_name", "firstName"))
    last_name: Optional[str] = Field(default=None, validation_alias=_alias("last_name", "lastName"))
    email: Optional[str] = Field(default=None, validation_alias=_alias("email", "emailAddress"))
    phone: Optional[str] = Field(default=None, validation_alias=_alias("phone", "phoneNumber"))
    is_minor: Optional[bool] = Field(default=None, validation_alias=_alias("is_minor", "isMinor", "minor"))
    confirmed: Optional[bool] = Field(
        default=None, validation_alias=_alias("confirmed", "is_confirmed", "isConfirmed")
    )
    guardian_approved: Optional[bool] = Field(
        default=None,
        validation_alias=_alias("guardian_approved", "guardianApproved", "guardianApproval"),
    )
    guardian_name: Optional[str] = Field(default=None, validation_alias=_alias("guardian_name", "guardianName"))
    guardian_email: Optional[str] = Field(default=None, validation_alias=_alias("guardian_email", "guardianEmail"))
    guardian_phone: Optional[str] = Field(default=None, validation_alias=_alias("guardian_phone", "guardianPhone"))
    active: Optional[bool] = None

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def flatten_guardian(cls, data):
        return _flatten_guardian(data)


class Member(MemberFields):
    """Forme canonique d'un voyageur dans le store."""
    id: str = Field(validation_alias=_alias("id", "member_id", "memberId"))
    trip_id: str = Field(validation_alias=_alias("trip_id", "tripId"))
    confirmed_at: Optional[datetime] = Field(default=None, validation_alias=_alias("confirmed_at", "confirmedAt"))
    guardian_approved_at: Optional[datetime] = Field(
        default=None, validation_alias=_alias("guardian_approved_at", "guardianApprovedAt")
    )
    coverage_as_of: Optional[datetime] = None  # Entrée dans l'ensemble couvert (indicatif)
    seat_held: bool = False  # Place réservée pendant le standby (release avec hold)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def confirmed_from_timestamp(cls, data):
        # Anciennes lignes : seule la date de confirmation était renseignée
        if isinstance(data, dict) and (data.get("confirmed_at") or data.get("confirmedAt")):
            if not any(k in data for k in ("confirmed", "is_confirmed", "isConfirmed")):
                data = dict(data)
                data["confirmed"] = True
        return data

    @property
    def has_consent(self) -> bool:
        """Confirmé, et approuvé par un tuteur s'il est mineur (indépendamment du statut standby)."""
        return self.confirmed and (not self.is_minor or self.guardian_approved)

    @property
    def is_eligible(self) -> bool:
        """Candidat à une place : actif et consentement complet."""
        return self.active and self.has_consent

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        if full:
            return full
        if self.email:
            return self.email
        return f"Member {self.id}" if self.id else "Traveler"
