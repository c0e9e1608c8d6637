"""
Schémas Pydantic pour les déclarations de sinistre.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

VALID_CLAIM_STATUSES = {"SUBMITTED", "IN_REVIEW", "MORE_INFO", "APPROVED", "DENIED", "CLOSED"}
CLAIM_ROLES = {"LEADER", "ADMIN"}


def _not_blank(v: Optional[str], label: str) -> Optional[str]:
    if v is not None and not v.strip():
        raise ValueError(f"{label} ne peut pas être vide.")
    return v.strip() if v is not None else v


class ClaimNote(BaseModel):
    """Note interne, visible des administrateurs uniquement."""
    id: str
    author: Optional[str] = None
    text: str
    created_at: datetime


class ClaimMessage(BaseModel):
    """Message échangé entre responsable et administrateur."""
    id: str
    author_role: str
    author_name: Optional[str] = None
    text: str
    created_at: datetime


class ClaimAttachment(BaseModel):
    """Métadonnées d'une pièce jointe (le contenu est stocké ailleurs)."""
    id: str
    filename: str
    size: int = 0
    mime: Optional[str] = None
    url: Optional[str] = None
    uploaded_by_role: str
    created_at: datetime


class ClaimCreate(BaseModel):
    trip_id: str
    member_id: Optional[str] = None
    member_name: Optional[str] = None
    member_email: Optional[str] = None
    member_phone: Optional[str] = None
    reporter_name: Optional[str] = None
    reporter_email: Optional[str] = None
    incident_type: Optional[str] = None
    incident_date: Optional[date] = None
    incident_location: Optional[str] = None
    incident_description: str = Field(
        validation_alias=AliasChoices("incident_description", "description")
    )

    model_config = {"populate_by_name": True}

    @field_validator("trip_id")
    @classmethod
    def trip_id_not_empty(cls, v: str) -> str:
        return _not_blank(v, "Le voyage")

    @field_validator("incident_description")
    @classmethod
    def description_not_empty(cls, v: str) -> str:
        return _not_blank(v, "La description du sinistre")


class ClaimUpdate(BaseModel):
    status: Optional[str] = None
    incident_type: Optional[str] = None
    incident_date: Optional[date] = None
    incident_location: Optional[str] = None
    incident_description: Optional[str] = None
    reporter_name: Optional[str] = None
    reporter_email: Optional[str] = None

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_CLAIM_STATUSES:
            raise ValueError(f"Statut invalide. Valeurs acceptées : {VALID_CLAIM_STATUSES}")
        return v

    @field_validator("incident_description")
    @classmethod
    def description_not_empty(cls, v: Optional[str]) -> Optional[str]:
        return _not_blank(v, "La description du sinistre")


class NoteCreate(BaseModel):
    text: str
    author: Optional[str] = None

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v: str) -> str:
        return _not_blank(v, "La note")


class MessageCreate(BaseModel):
    text: str
    author_name: Optional[str] = None

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v: str) -> str:
        return _not_blank(v, "Le message")


class AttachmentCreate(BaseModel):
    filename: str
    size: int = 0
    mime: Optional[str] = None
    url: Optional[str] = None

    @field_validator("filename")
    @classmethod
    def filename_not_empty(cls, v: str) -> str:
        return _not_blank(v, "Le nom de fichier")

    @field_validator("size")
    @classmethod
    def size_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("La taille ne peut pas être négative.")
        return v


class Claim(BaseModel):
    """Forme canonique d'un sinistre dans le store."""
    id: str
    claim_number: str
    trip_id: str
    member_id: Optional[str] = None
    member_name: Optional[str] = None
    member_email: Optional[str] = None
    member_phone: Optional[str] = None
    reporter_name: Optional[str] = None
    reporter_email: Optional[str] = None
    reporter_role: str = "LEADER"
    status: str = "SUBMITTED"
    incident_type: Optional[str] = None
    incident_date: Optional[date] = None
    incident_location: Optional[str] = None
    incident_description: str
    attachments: List[ClaimAttachment] = []
    messages: List[ClaimMessage] = []   # plus récent en premier
    notes: List[ClaimNote] = []         # plus récente en premier
    fresh_for_admin: bool = True
    fresh_for_leader: bool = False
    created_at: datetime
    updated_at: datetime
