"""
Router pour les tarifs journaliers par région.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_actor, get_store, http_error
from app.schemas.history import Actor
from app.schemas.rate import Rate, RateCreate
from app.services import rate_service
from app.services.record_store import RecordStore

router = APIRouter(prefix="/api/v1/rates", tags=["Tarifs"])


@router.get("", response_model=List[Rate], summary="Lister les tarifs")
def list_rates(store: RecordStore = Depends(get_store)):
    return rate_service.list_rates(store)


@router.post("", response_model=Rate, status_code=201, summary="Ajouter un tarif")
def create_rate(
    data: RateCreate,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """Réservé aux administrateurs. Les voyages existants gardent leur tarif."""
    if actor.role != "ADMIN":
        raise HTTPException(status_code=403, detail="Gestion des tarifs réservée aux administrateurs.")
    try:
        return rate_service.create_rate(store, data)
    except ValueError as e:
        raise http_error(e)
