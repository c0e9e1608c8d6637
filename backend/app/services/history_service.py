"""
Journal d'audit des voyages (append-only).

Chaque opération qui modifie un voyage, son roster, son grand livre, sa
couverture ou ses sinistres écrit exactement un événement, dans la même
transaction que le changement d'état. Les événements d'un voyage sont chaînés
(hash SHA-256 de l'événement précédent) pour détecter une altération.

Seule exception à l'append-only : la suppression en cascade d'un voyage.
"""

import hashlib
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from app.exceptions import InvalidInputError, NotFoundError
from app.schemas.history import HISTORY_EVENT_TYPES, Actor, HistoryEvent
from app.services.record_store import HISTORY, TRIPS, RecordStore

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64


def _event_hash(prev_hash: str, payload: dict) -> str:
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256((prev_hash + body).encode("utf-8")).hexdigest()


def _trip_rows(store: RecordStore, trip_id: str) -> list[dict]:
    return store.where(HISTORY, lambda e: e.get("trip_id") == trip_id)


def log_event(
    store: RecordStore,
    trip,
    event_type: str,
    actor: Actor,
    notes: Optional[str] = None,
    *,
    member_id: Optional[str] = None,
    from_member_id: Optional[str] = None,
    to_member_id: Optional[str] = None,
    amount_cents: Optional[int] = None,
) -> HistoryEvent:
    """
    Ajoute un événement au journal du voyage.
    Lève InvalidInputError pour un type hors taxonomie (rien n'est écrit).
    """
    if event_type not in HISTORY_EVENT_TYPES:
        raise InvalidInputError(f"Type d'événement inconnu : {event_type}")

    previous = _trip_rows(store, trip.id)
    prev_hash = previous[-1]["hash"] if previous else GENESIS_HASH

    event = HistoryEvent(
        id=str(uuid.uuid4()),
        trip_id=trip.id,
        trip_title=trip.title or trip.short_id,
        type=event_type,
        actor_role=actor.role,
        actor_id=actor.id,
        timestamp=datetime.now(timezone.utc),
        member_id=member_id,
        from_member_id=from_member_id,
        to_member_id=to_member_id,
        amount_cents=amount_cents,
        notes=notes,
        prev_hash=prev_hash,
        hash="",
    )
    row = event.model_dump(mode="json")
    row.pop("hash")
    row["hash"] = _event_hash(prev_hash, row)
    store.insert(HISTORY, row)

    logger.debug("Événement %s journalisé pour le voyage %s", event_type, trip.id)
    return HistoryEvent.model_validate(row)


def get_history(
    store: RecordStore,
    trip_id: str,
    *,
    types: Optional[Iterable[str]] = None,
    member_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[HistoryEvent]:
    """
    Événements d'un voyage, du plus ancien au plus récent (ordre d'insertion à égalité).
    Filtres optionnels : types, voyageur concerné (y compris transferts), auteur, période.
    """
    if store.by_id(TRIPS, trip_id) is None:
        raise NotFoundError("Voyage introuvable.")

    events = [HistoryEvent.model_validate(r) for r in _trip_rows(store, trip_id)]
    events.sort(key=lambda e: e.timestamp)

    if types:
        wanted = set(types)
        events = [e for e in events if e.type in wanted]
    if member_id:
        events = [
            e for e in events
            if member_id in (e.member_id, e.from_member_id, e.to_member_id)
        ]
    if actor_id:
        events = [e for e in events if e.actor_id == actor_id]
    if start:
        events = [e for e in events if e.timestamp >= _as_utc(start)]
    if end:
        events = [e for e in events if e.timestamp <= _as_utc(end)]
    return events


def _as_utc(value: datetime) -> datetime:
    """Les bornes sans fuseau sont interprétées en UTC (les horodatages du journal le sont)."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def verify_chain(store: RecordStore, trip_id: str) -> bool:
    """Recalcule la chaîne complète du voyage ; False au premier maillon incohérent."""
    prev_hash = GENESIS_HASH
    for row in _trip_rows(store, trip_id):
        payload = dict(row)
        stored_hash = payload.pop("hash", None)
        if payload.get("prev_hash") != prev_hash or _event_hash(prev_hash, payload) != stored_hash:
            return False
        prev_hash = stored_hash
    return True


def delete_for_trip(store: RecordStore, trip_id: str) -> int:
    """Suppression en cascade à la suppression d'un voyage. Retourne le nombre d'événements supprimés."""
    rows = _trip_rows(store, trip_id)
    for row in rows:
        store.remove(HISTORY, row["id"])
    return len(rows)
