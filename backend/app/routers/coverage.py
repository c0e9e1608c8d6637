"""
Router pour la couverture d'un voyage : résumé, roster, attribution,
libération et transfert de places.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_actor, get_store, http_error
from app.schemas.coverage import (
    AllocateRequest,
    CoverageSummary,
    ReleaseRequest,
    RosterSummary,
    TransferRequest,
)
from app.schemas.history import Actor
from app.services import coverage_service
from app.services.record_store import RecordStore

router = APIRouter(prefix="/api/v1/trips", tags=["Couverture"])


@router.get("/{trip_id}/coverage", response_model=CoverageSummary, summary="Couverture d'un voyage")
def get_coverage(trip_id: str, store: RecordStore = Depends(get_store)):
    try:
        return coverage_service.coverage_for_trip(store, trip_id)
    except ValueError as e:
        raise http_error(e)


@router.get("/{trip_id}/roster", response_model=RosterSummary, summary="Roster couverts / en attente")
def get_roster(trip_id: str, store: RecordStore = Depends(get_store)):
    try:
        return coverage_service.get_roster_summary(store, trip_id)
    except ValueError as e:
        raise http_error(e)


@router.post("/{trip_id}/coverage/allocate", response_model=CoverageSummary, summary="Attribuer une place")
def allocate(
    trip_id: str,
    data: AllocateRequest,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """409 si le voyageur n'est pas éligible ou s'il ne reste aucune place payée."""
    try:
        return coverage_service.allocate_coverage(store, trip_id, data.member_id, actor)
    except ValueError as e:
        raise http_error(e)


@router.post("/{trip_id}/coverage/release", response_model=CoverageSummary, summary="Libérer une place")
def release(
    trip_id: str,
    data: ReleaseRequest,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    try:
        return coverage_service.release_coverage(
            store, trip_id, data.member_id, data.reason, actor, hold=data.hold
        )
    except ValueError as e:
        raise http_error(e)


@router.post("/{trip_id}/coverage/transfer", response_model=CoverageSummary, summary="Transférer une place")
def transfer(
    trip_id: str,
    data: TransferRequest,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """Transfert atomique : soit les deux voyageurs changent, soit aucun."""
    try:
        return coverage_service.transfer_coverage(
            store, trip_id, data.from_member_id, data.to_member_id, actor
        )
    except ValueError as e:
        raise http_error(e)
