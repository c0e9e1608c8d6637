"""
Router pour les voyageurs d'un voyage.
Ajout (unitaire ou en lot), lecture, modification et retrait.
"""

from typing import List

from fastapi import APIRouter, Depends

from app.dependencies import get_actor, get_store, http_error
from app.schemas.history import Actor
from app.schemas.member import Member, MemberCreate, MemberUpdate
from app.services import member_service
from app.services.record_store import RecordStore

router = APIRouter(prefix="/api/v1/trips", tags=["Voyageurs"])


@router.post("/{trip_id}/members", response_model=List[Member], status_code=201, summary="Ajouter des voyageurs")
def add_members(
    trip_id: str,
    data: List[MemberCreate],
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """
    Ajoute un ou plusieurs voyageurs. Les anciens noms de champs
    (camelCase, `minor`, objet `guardian`...) sont acceptés.
    """
    try:
        return member_service.add_members(store, trip_id, data, actor)
    except ValueError as e:
        raise http_error(e)


@router.get("/{trip_id}/members", response_model=List[Member], summary="Lister les voyageurs")
def list_members(trip_id: str, store: RecordStore = Depends(get_store)):
    try:
        return member_service.list_members(store, trip_id)
    except ValueError as e:
        raise http_error(e)


@router.get("/{trip_id}/members/{member_id}", response_model=Member, summary="Détail d'un voyageur")
def get_member(trip_id: str, member_id: str, store: RecordStore = Depends(get_store)):
    try:
        return member_service.get_member(store, trip_id, member_id)
    except ValueError as e:
        raise http_error(e)


@router.put("/{trip_id}/members/{member_id}", response_model=Member, summary="Modifier un voyageur")
def update_member(
    trip_id: str,
    member_id: str,
    data: MemberUpdate,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """Confirmation, accord parental, standby... seuls les champs fournis sont modifiés."""
    try:
        return member_service.update_member(store, trip_id, member_id, data, actor)
    except ValueError as e:
        raise http_error(e)


@router.delete("/{trip_id}/members/{member_id}", status_code=204, summary="Retirer un voyageur")
def remove_member(
    trip_id: str,
    member_id: str,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """Si le voyageur était couvert, sa place revient au suivant de la file."""
    try:
        member_service.remove_member(store, trip_id, member_id, actor)
    except ValueError as e:
        raise http_error(e)
