"""
Router pour le reçu de paiement d'un voyage (JSON ou HTML imprimable).
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from app.dependencies import get_store, http_error
from app.schemas.receipt import ReceiptSnapshot
from app.services import receipt_service
from app.services.record_store import RecordStore

router = APIRouter(prefix="/api/v1/trips", tags=["Reçus"])


@router.get("/{trip_id}/receipt", response_model=ReceiptSnapshot, summary="Reçu (JSON)")
def get_receipt(
    trip_id: str,
    payment_cents: Optional[int] = None,
    store: RecordStore = Depends(get_store),
):
    try:
        return receipt_service.receipt_for_trip(store, trip_id, payment_cents=payment_cents)
    except ValueError as e:
        raise http_error(e)


@router.get("/{trip_id}/receipt.html", response_class=HTMLResponse, summary="Reçu (HTML)")
def get_receipt_html(
    trip_id: str,
    payment_cents: Optional[int] = None,
    store: RecordStore = Depends(get_store),
):
    """Document autonome à ouvrir dans un navigateur puis imprimer."""
    try:
        snapshot = receipt_service.receipt_for_trip(store, trip_id, payment_cents=payment_cents)
    except ValueError as e:
        raise http_error(e)
    return HTMLResponse(receipt_service.render_receipt_html(snapshot))
