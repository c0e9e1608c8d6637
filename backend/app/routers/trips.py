"""
Router pour les voyages.
CRUD complet : création, lecture, modification, archivage, suppression.
Rapprochement manuel du statut de paiement.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_actor, get_store, http_error
from app.schemas.history import Actor
from app.schemas.trip import Trip, TripCreate, TripDetail, TripUpdate
from app.services import trip_service
from app.services.record_store import RecordStore

router = APIRouter(prefix="/api/v1/trips", tags=["Voyages"])


@router.post("", response_model=Trip, status_code=201, summary="Créer un voyage")
def create_trip(
    data: TripCreate,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """
    Crée un nouveau voyage.
    Sans tarif explicite, le tarif régional en vigueur à la date de départ est appliqué.
    """
    try:
        return trip_service.create_trip(store, data, actor)
    except ValueError as e:
        raise http_error(e)


@router.get("", response_model=List[Trip], summary="Lister les voyages")
def list_trips(
    status: Optional[str] = None,
    leader_id: Optional[str] = None,
    store: RecordStore = Depends(get_store),
):
    """Retourne les voyages, du départ le plus récent au plus ancien."""
    return trip_service.list_trips(store, status=status, leader_id=leader_id)


@router.get("/{trip_id}", response_model=TripDetail, summary="Détail d'un voyage")
def get_trip(trip_id: str, store: RecordStore = Depends(get_store)):
    """Voyage, roster et couverture calculée."""
    try:
        return trip_service.get_trip_detail(store, trip_id)
    except ValueError as e:
        raise http_error(e)


@router.put("/{trip_id}", response_model=Trip, summary="Modifier un voyage")
def update_trip(
    trip_id: str,
    data: TripUpdate,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """
    Met à jour les informations d'un voyage.
    Seuls les champs fournis sont modifiés.
    """
    try:
        return trip_service.update_trip(store, trip_id, data, actor)
    except ValueError as e:
        raise http_error(e)


@router.post("/{trip_id}/archive", response_model=Trip, summary="Archiver un voyage")
def archive_trip(
    trip_id: str,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """Le roster, le grand livre et la couverture deviennent en lecture seule."""
    try:
        return trip_service.archive_trip(store, trip_id, actor)
    except ValueError as e:
        raise http_error(e)


@router.delete("/{trip_id}", status_code=204, summary="Supprimer un voyage")
def delete_trip(
    trip_id: str,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """
    Suppression définitive (administrateurs) : voyageurs, paiements,
    sinistres et historique du voyage sont supprimés avec lui.
    """
    if actor.role != "ADMIN":
        raise HTTPException(status_code=403, detail="Suppression réservée aux administrateurs.")
    try:
        trip_service.delete_trip(store, trip_id)
    except ValueError as e:
        raise http_error(e)


@router.post("/{trip_id}/reconcile", response_model=Trip, summary="Rapprocher le statut de paiement")
def reconcile_trip(
    trip_id: str,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """Réaligne le cache du solde et le statut de paiement sur le grand livre."""
    try:
        return trip_service.reconcile_payment_status(store, trip_id, actor)
    except ValueError as e:
        raise http_error(e)
