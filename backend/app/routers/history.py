"""
Router pour le journal d'audit d'un voyage (lecture seule).
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_store, http_error
from app.schemas.history import HistoryResponse
from app.services import history_service
from app.services.record_store import RecordStore

router = APIRouter(prefix="/api/v1/trips", tags=["Historique"])


@router.get("/{trip_id}/history", response_model=HistoryResponse, summary="Historique d'un voyage")
def get_history(
    trip_id: str,
    type: Optional[List[str]] = Query(default=None),
    member_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    store: RecordStore = Depends(get_store),
):
    """
    Événements du plus ancien au plus récent.
    `chain_valid` indique si la chaîne de hash du voyage est intacte.
    """
    try:
        events = history_service.get_history(
            store, trip_id,
            types=type, member_id=member_id, actor_id=actor_id, start=start, end=end,
        )
    except ValueError as e:
        raise http_error(e)
    return HistoryResponse(
        trip_id=trip_id,
        chain_valid=history_service.verify_chain(store, trip_id),
        events=events,
    )
