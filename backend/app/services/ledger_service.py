"""
Service métier pour le grand livre des paiements.

Le grand livre est append-only : le solde d'un voyage est toujours recalculé
à partir des écritures. `Trip.credits_total_cents` n'en est qu'un cache.
"""

import logging
from typing import Optional

from app.exceptions import InvalidInputError
from app.schemas.history import Actor
from app.schemas.ledger import VALID_ENTRY_TYPES, LedgerEntry
from app.services import history_service
from app.services.common import (
    format_usd,
    load_trip,
    now_utc,
    require_editable,
    save_trip,
    trip_lock,
)
from app.services.record_store import PAYMENTS, RecordStore

logger = logging.getLogger(__name__)


def _entry_rows(store: RecordStore, trip_id: str) -> list[dict]:
    return store.where(PAYMENTS, lambda p: p.get("trip_id") == trip_id)


def list_entries(store: RecordStore, trip_id: str) -> list[LedgerEntry]:
    """Écritures d'un voyage, de la plus ancienne à la plus récente."""
    entries = [LedgerEntry.model_validate(r) for r in _entry_rows(store, trip_id)]
    return sorted(entries, key=lambda e: e.created_at)


def get_ledger_balance(store: RecordStore, trip_id: str) -> int:
    """Σ CHARGE − Σ (CREDIT + REFUND), en cents."""
    return sum(LedgerEntry.model_validate(r).signed_cents for r in _entry_rows(store, trip_id))


def record_entry(
    store: RecordStore,
    trip_id: str,
    amount_cents: int,
    entry_type: str,
    meta: Optional[dict] = None,
    actor: Optional[Actor] = None,
) -> LedgerEntry:
    """
    Ajoute une écriture au grand livre et recalcule la couverture.

    Dans une seule transaction : écriture, cache du solde sur le voyage,
    horodatages de couverture des voyageurs et un événement PAYMENT_APPLIED.
    Un remboursement (ou crédit) supérieur au solde courant est refusé.
    """
    # Import local pour éviter les imports circulaires
    from app.services import coverage_service

    actor = actor or Actor()
    meta = meta or {}
    entry_type = (entry_type or "").strip().upper()
    if entry_type not in VALID_ENTRY_TYPES:
        raise InvalidInputError(f"Type d'écriture invalide : {entry_type or 'vide'}")
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
        raise InvalidInputError("Le montant doit être un entier strictement positif (cents).")

    with trip_lock(trip_id), store.transaction():
        trip = load_trip(store, trip_id)
        require_editable(trip)

        before = get_ledger_balance(store, trip_id)
        entry = LedgerEntry(
            id="pending",
            trip_id=trip_id,
            amount_cents=amount_cents,
            type=entry_type,
            provider=meta.get("provider") or "DEV",
            provider_ref=meta.get("provider_ref"),
            note=meta.get("note"),
            created_at=now_utc(),
        )
        after = before + entry.signed_cents
        if after < 0:
            raise InvalidInputError(
                f"Le montant ({format_usd(amount_cents)}) dépasse le solde disponible ({format_usd(before)})."
            )

        row = entry.model_dump(mode="json")
        row.pop("id")
        entry = LedgerEntry.model_validate(store.insert(PAYMENTS, row))

        trip = save_trip(store, trip.model_copy(update={
            "credits_total_cents": after,
            "updated_at": now_utc(),
        }))
        covered_before, covered_after = coverage_service.refresh_coverage_stamps(store, trip_id)

        label = "Paiement appliqué" if entry_type == "CHARGE" else "Remboursement appliqué"
        notes = [
            f"{label} : {format_usd(amount_cents)}",
            f"Crédits : {format_usd(before)} -> {format_usd(after)}",
        ]
        gained = len(covered_after - covered_before)
        lost = len(covered_before - covered_after)
        if gained:
            notes.append(f"{gained} place(s) attribuée(s) automatiquement")
        if lost:
            notes.append(f"{lost} place(s) libérée(s) automatiquement")
        if entry.provider_ref:
            notes.append(f"Réf. : {entry.provider_ref}")

        history_service.log_event(
            store, trip, "PAYMENT_APPLIED", actor, " | ".join(notes),
            amount_cents=entry.signed_cents,
        )

    logger.info(
        "Écriture %s de %d cents sur le voyage %s (solde %d -> %d)",
        entry_type, amount_cents, trip_id, before, after,
    )
    return entry


def record_payment(
    store: RecordStore,
    trip_id: str,
    amount_cents: int,
    entry_type: str = "CHARGE",
    meta: Optional[dict] = None,
    actor: Optional[Actor] = None,
) -> LedgerEntry:
    return record_entry(store, trip_id, amount_cents, entry_type, meta, actor)


def record_refund(
    store: RecordStore,
    trip_id: str,
    amount_cents: int,
    meta: Optional[dict] = None,
    actor: Optional[Actor] = None,
) -> LedgerEntry:
    return record_entry(store, trip_id, amount_cents, "REFUND", meta, actor)


def delete_for_trip(store: RecordStore, trip_id: str) -> int:
    """Suppression en cascade à la suppression d'un voyage."""
    rows = _entry_rows(store, trip_id)
    for row in rows:
        store.remove(PAYMENTS, row["id"])
    return len(rows)
