"""
Accès partagés par les services : chargement typé depuis le store,
verrou par voyage et formatage des notes du journal.
"""

import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from app.exceptions import InvalidInputError, NotFoundError
from app.schemas.member import Member
from app.schemas.trip import Trip
from app.services.record_store import MEMBERS, TRIPS, RecordStore

_locks_guard = threading.Lock()
_trip_locks: dict[str, threading.RLock] = defaultdict(threading.RLock)


@contextmanager
def trip_lock(trip_id: str) -> Iterator[None]:
    """Sérialise les mutations d'un même voyage (release + allocate + log d'un transfert, etc.)."""
    with _locks_guard:
        lock = _trip_locks[trip_id]
    with lock:
        yield


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def load_trip(store: RecordStore, trip_id: str) -> Trip:
    row = store.by_id(TRIPS, trip_id)
    if row is None:
        raise NotFoundError("Voyage introuvable.")
    return Trip.model_validate(row)


def load_members(store: RecordStore, trip_id: str) -> list[Member]:
    """Voyageurs d'un voyage, dans l'ordre d'ajout."""
    return [
        Member.model_validate(row)
        for row in store.where(MEMBERS, lambda m: (m.get("trip_id") or m.get("tripId")) == trip_id)
    ]


def load_member(store: RecordStore, member_id: str, trip_id: Optional[str] = None) -> Member:
    """Charge un voyageur ; si trip_id est fourni, il doit appartenir à ce voyage."""
    row = store.by_id(MEMBERS, member_id)
    if row is None:
        raise NotFoundError("Voyageur introuvable.")
    member = Member.model_validate(row)
    if trip_id is not None and member.trip_id != trip_id:
        raise NotFoundError("Voyageur introuvable sur ce voyage.")
    return member


def require_editable(trip: Trip) -> None:
    """Un voyage archivé est en lecture seule (hors sinistres et statut)."""
    if trip.is_archived:
        raise InvalidInputError("Le voyage est archivé : modification impossible.")


def save_member(store: RecordStore, member: Member) -> Member:
    return Member.model_validate(store.put(MEMBERS, member.model_dump(mode="json")))


def save_trip(store: RecordStore, trip: Trip) -> Trip:
    return Trip.model_validate(store.put(TRIPS, trip.model_dump(mode="json")))


def format_usd(amount_cents: Optional[int]) -> str:
    if amount_cents is None:
        return ""
    sign = "-" if amount_cents < 0 else ""
    return f"{sign}${abs(amount_cents) / 100:,.2f}"


def change_summary(changes: list[tuple[str, object, object]]) -> str:
    """'Libellé: avant -> après | ...' ; les valeurs vides s'affichent N/A."""
    def show(value):
        return "N/A" if value is None or value == "" else str(value)

    return " | ".join(f"{label}: {show(before)} -> {show(after)}" for label, before, after in changes)


def yes_no(value: bool) -> str:
    return "Oui" if value else "Non"


def member_snapshot(member: Member, covered: Optional[bool] = None, include_guardian: bool = False) -> str:
    """Résumé lisible d'un voyageur pour les notes du journal."""
    contact = " | ".join(filter(None, [member.email, member.phone]))
    parts = [f"{member.display_name} ({contact})" if contact else member.display_name]

    details = []
    if covered is not None:
        details.append(f"Couverture : {'Couvert' if covered else 'En attente'}")
    details.append(f"Actif : {yes_no(member.active)}")
    if member.seat_held:
        details.append("Place réservée : Oui")
    details.append(f"Confirmé : {yes_no(member.confirmed)}")
    details.append(f"Mineur : {yes_no(member.is_minor)}")
    if member.is_minor:
        details.append(f"Accord tuteur : {yes_no(member.guardian_approved)}")
    parts.append(" | ".join(details))

    if include_guardian and (member.guardian_name or member.guardian_email or member.guardian_phone):
        guardian = " | ".join(filter(None, [member.guardian_name, member.guardian_email, member.guardian_phone]))
        parts.append(f"Tuteur : {guardian}")
    return " | ".join(parts)
