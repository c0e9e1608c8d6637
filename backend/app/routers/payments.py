"""
Router pour le grand livre d'un voyage : paiements, crédits et remboursements.
Aucun prestataire de paiement réel : les écritures sont déclaratives.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_actor, get_store, http_error
from app.schemas.history import Actor
from app.schemas.ledger import LedgerEntry, LedgerResponse, PaymentCreate
from app.services import ledger_service
from app.services.common import load_trip
from app.services.record_store import RecordStore

router = APIRouter(prefix="/api/v1/trips", tags=["Paiements"])


@router.post("/{trip_id}/payments", response_model=LedgerEntry, status_code=201, summary="Enregistrer une écriture")
def record_payment(
    trip_id: str,
    data: PaymentCreate,
    store: RecordStore = Depends(get_store),
    actor: Actor = Depends(get_actor),
):
    """
    Ajoute une écriture (CHARGE, CREDIT ou REFUND) et recalcule la couverture.
    Retourne 400 si un remboursement dépasse le solde ou si le voyage est archivé.
    """
    meta = {"provider": data.provider, "provider_ref": data.provider_ref, "note": data.note}
    try:
        return ledger_service.record_payment(store, trip_id, data.amount_cents, data.type, meta, actor)
    except ValueError as e:
        raise http_error(e)


@router.get("/{trip_id}/payments", response_model=LedgerResponse, summary="Grand livre d'un voyage")
def get_ledger(trip_id: str, store: RecordStore = Depends(get_store)):
    try:
        load_trip(store, trip_id)
    except ValueError as e:
        raise http_error(e)
    return LedgerResponse(
        trip_id=trip_id,
        balance_cents=ledger_service.get_ledger_balance(store, trip_id),
        entries=ledger_service.list_entries(store, trip_id),
    )
