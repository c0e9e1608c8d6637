"""
Router pour les déclarations de sinistre.
Création, suivi du statut, notes internes, messages, pièces jointes
et indicateurs de nouveauté.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from app.dependencies import get_actor, get_store, http_error
from app.schemas.claim import (
    AttachmentCreate,
    Claim,
    ClaimCreate,
    ClaimUpdate,
    MessageCreate,
    NoteCreate,
)
from app.schemas.history import Actor
from app.services import claim_service
from app.services.record_store import RecordStore

router = APIRouter(prefix="/api/v1/claims", tags=["Sinistres"])


@router.post("", response_model=Claim, status_code=201, summary="Déclarer un sinistre")
def create_claim(
    data: ClaimCreate,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """Possible aussi sur un voyage archivé."""
    try:
        return claim_service.create_claim(store, data, actor)
    except ValueError as e:
        raise http_error(e)


@router.get("", response_model=List[Claim], summary="Lister les sinistres")
def list_claims(
    trip_id: Optional[str] = None,
    fresh_for: Optional[str] = None,
    store: RecordStore = Depends(get_store),
):
    return claim_service.list_claims(store, trip_id=trip_id, fresh_for=fresh_for)


@router.get("/{claim_id}", response_model=Claim, summary="Détail d'un sinistre")
def get_claim(claim_id: str, store: RecordStore = Depends(get_store)):
    try:
        return claim_service.get_claim(store, claim_id)
    except ValueError as e:
        raise http_error(e)


@router.put("/{claim_id}", response_model=Claim, summary="Modifier un sinistre")
def update_claim(
    claim_id: str,
    data: ClaimUpdate,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    try:
        return claim_service.update_claim(store, claim_id, data, actor)
    except ValueError as e:
        raise http_error(e)


@router.post("/{claim_id}/notes", response_model=Claim, status_code=201, summary="Ajouter une note interne")
def add_note(
    claim_id: str,
    data: NoteCreate,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """Administrateurs uniquement (400 sinon)."""
    try:
        return claim_service.add_claim_note(store, claim_id, data, actor)
    except ValueError as e:
        raise http_error(e)


@router.post("/{claim_id}/messages", response_model=Claim, status_code=201, summary="Ajouter un message")
def add_message(
    claim_id: str,
    data: MessageCreate,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    try:
        return claim_service.add_claim_message(store, claim_id, data, actor)
    except ValueError as e:
        raise http_error(e)


@router.post("/{claim_id}/attachments", response_model=Claim, status_code=201, summary="Ajouter une pièce jointe")
def add_attachment(
    claim_id: str,
    data: AttachmentCreate,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    try:
        return claim_service.add_claim_attachment(store, claim_id, data, actor)
    except ValueError as e:
        raise http_error(e)


@router.post("/{claim_id}/seen", status_code=204, summary="Marquer comme vu")
def mark_seen(
    claim_id: str,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """Efface l'indicateur de nouveauté du rôle appelant. 204 même pour un id inconnu."""
    try:
        claim_service.mark_claim_seen(store, claim_id, actor.role)
    except ValueError as e:
        raise http_error(e)
