"""
Service métier pour les voyages.
Gère la création, la lecture, la modification, l'archivage et la suppression
des voyages, ainsi que le rapprochement du statut de paiement avec le grand livre.
"""

import logging
import re
from typing import Optional

from app.exceptions import InvalidInputError, NotFoundError
from app.schemas.history import SYSTEM_ACTOR, Actor
from app.schemas.member import Member
from app.schemas.trip import Trip, TripCreate, TripDetail, TripUpdate
from app.services import claim_service, coverage_service, history_service, ledger_service, rate_service
from app.services.common import (
    change_summary,
    format_usd,
    load_members,
    load_trip,
    now_utc,
    save_trip,
    trip_lock,
    yes_no,
)
from app.services.pricing import seat_cost, trip_total_cents
from app.services.record_store import MEMBERS, TRIPS, RecordStore

logger = logging.getLogger(__name__)

_SHORT_ID = re.compile(r"^MA-(\d{4})-(\d+)$")

TRIP_FIELD_LABELS = {
    "title": "Titre",
    "start_date": "Début",
    "end_date": "Fin",
    "region": "Région",
    "rate_cents": "Tarif journalier",
    "status": "Statut",
    "payment_status": "Statut de paiement",
    "payment_status_manual": "Statut de paiement manuel",
    "leader_name": "Responsable",
    "leader_email": "Email du responsable",
}


def _next_short_id(store: RecordStore, year: int) -> str:
    """MA-<année>-<000001>, séquence par année de création."""
    highest = 0
    for row in store.all(TRIPS):
        match = _SHORT_ID.match(row.get("short_id") or row.get("shortId") or "")
        if match and int(match.group(1)) == year:
            highest = max(highest, int(match.group(2)))
    return f"MA-{year}-{highest + 1:06d}"


def _show(value):
    return yes_no(value) if isinstance(value, bool) else value


def derive_payment_status(trip: Trip, members: list[Member], balance: int) -> str:
    """
    UNPAID sans crédit, PAID si le solde couvre tous les éligibles et les places
    réservées, PARTIAL sinon.
    """
    if balance <= 0:
        return "UNPAID"
    headcount = sum(1 for m in members if m.is_eligible or (m.seat_held and m.has_consent))
    if balance >= trip_total_cents(trip, headcount):
        return "PAID"
    return "PARTIAL"


def create_trip(store: RecordStore, data: TripCreate, actor: Optional[Actor] = None) -> Trip:
    """
    Crée un voyage.

    Étapes :
    1. Déterminer le tarif : celui fourni, sinon le tarif régional en vigueur à la date de départ
    2. Générer l'identifiant court MA-<année>-<séquence>
    3. Insérer le voyage et journaliser TRIP_CREATED
    """
    actor = actor or Actor()
    rate_cents = data.rate_cents
    if rate_cents is None:
        rate = rate_service.select_rate(store, data.region, data.start_date)
        if rate is None:
            raise InvalidInputError(
                f"Aucun tarif {data.region} en vigueur au {data.start_date.isoformat()}."
            )
        rate_cents = rate.amount_cents

    now = now_utc()
    with store.transaction():
        trip = Trip(
            id="pending",
            short_id=_next_short_id(store, now.year),
            title=data.title,
            start_date=data.start_date,
            end_date=data.end_date,
            region=data.region,
            rate_cents=rate_cents,
            leader_id=data.leader_id or actor.id,
            leader_name=data.leader_name,
            leader_email=data.leader_email,
            created_at=now,
            updated_at=now,
        )
        row = trip.model_dump(mode="json")
        row.pop("id")
        trip = Trip.model_validate(store.insert(TRIPS, row))

        history_service.log_event(
            store, trip, "TRIP_CREATED", actor,
            f"{trip.short_id} | {trip.title} | {trip.region} | "
            f"{trip.start_date.isoformat()} -> {trip.end_date.isoformat()} | "
            f"Tarif : {format_usd(trip.rate_cents)}/jour | Place : {format_usd(seat_cost(trip))}",
        )

    logger.info("Voyage créé : %s (%s)", trip.title, trip.id)
    return trip


def get_trip(store: RecordStore, trip_id: str) -> Optional[Trip]:
    """Retourne un voyage par son ID, ou None s'il n'existe pas."""
    row = store.by_id(TRIPS, trip_id)
    return Trip.model_validate(row) if row else None


def list_trips(
    store: RecordStore,
    status: Optional[str] = None,
    leader_id: Optional[str] = None,
) -> list[Trip]:
    """Voyages filtrés, du départ le plus récent au plus ancien."""
    trips = [Trip.model_validate(r) for r in store.all(TRIPS)]
    if status:
        trips = [t for t in trips if t.status == status]
    if leader_id:
        trips = [t for t in trips if t.leader_id == leader_id]
    return sorted(trips, key=lambda t: (t.start_date, t.created_at), reverse=True)


def get_trip_detail(store: RecordStore, trip_id: str) -> TripDetail:
    with store.transaction():
        trip = load_trip(store, trip_id)
        members = load_members(store, trip_id)
        coverage = coverage_service.compute_coverage(
            trip, members, ledger_service.get_ledger_balance(store, trip_id)
        )
    return TripDetail(trip=trip, members=members, coverage=coverage)


def update_trip(
    store: RecordStore,
    trip_id: str,
    data: TripUpdate,
    actor: Optional[Actor] = None,
) -> Trip:
    """
    Met à jour les champs fournis d'un voyage.

    Si la région ou la date de départ change sans tarif explicite, le tarif
    régional en vigueur est resélectionné. Un voyage archivé n'accepte qu'un
    changement de statut. Aucun changement effectif : aucun événement.
    """
    actor = actor or Actor()
    update_data = data.model_dump(exclude_unset=True)
    update_data = {k: v for k, v in update_data.items() if v is not None}
    if "payment_status" in update_data:
        update_data.setdefault("payment_status_manual", True)

    with trip_lock(trip_id), store.transaction():
        trip = load_trip(store, trip_id)

        if trip.is_archived and set(update_data) - {"status"}:
            raise InvalidInputError("Le voyage est archivé : seul son statut peut être modifié.")

        region = update_data.get("region", trip.region)
        start = update_data.get("start_date", trip.start_date)
        end = update_data.get("end_date", trip.end_date)
        if end < start:
            raise InvalidInputError("La date de fin doit être postérieure ou égale à la date de début.")

        if "rate_cents" not in update_data and (region != trip.region or start != trip.start_date):
            rate = rate_service.select_rate(store, region, start)
            if rate is not None:
                update_data["rate_cents"] = rate.amount_cents

        changes = [
            (TRIP_FIELD_LABELS[field], _show(getattr(trip, field)), _show(value))
            for field, value in update_data.items()
            if getattr(trip, field) != value
        ]
        if not changes:
            return trip

        changed = {field for field, value in update_data.items() if getattr(trip, field) != value}
        updated = save_trip(store, trip.model_copy(update={**update_data, "updated_at": now_utc()}))
        coverage_service.refresh_coverage_stamps(store, trip_id)

        if "status" in changed:
            event_type = "TRIP_STATUS_UPDATED"
        elif changed & {"payment_status", "payment_status_manual"}:
            event_type = "TRIP_PAYMENT_STATUS_UPDATED"
        else:
            event_type = "TRIP_UPDATED"
        history_service.log_event(store, updated, event_type, actor, change_summary(changes))

    logger.info("Voyage %s mis à jour (%s)", trip_id, ", ".join(sorted(changed)))
    return updated


def archive_trip(store: RecordStore, trip_id: str, actor: Optional[Actor] = None) -> Trip:
    """Archive un voyage : roster, grand livre et couverture passent en lecture seule."""
    return update_trip(store, trip_id, TripUpdate(status="ARCHIVED"), actor)


def delete_trip(store: RecordStore, trip_id: str) -> None:
    """
    Supprime définitivement un voyage et tout ce qui en dépend :
    voyageurs, grand livre, sinistres et journal.
    """
    with trip_lock(trip_id), store.transaction():
        if store.by_id(TRIPS, trip_id) is None:
            raise NotFoundError("Voyage introuvable.")

        members = load_members(store, trip_id)
        for member in members:
            store.remove(MEMBERS, member.id)
        entries = ledger_service.delete_for_trip(store, trip_id)
        claims = claim_service.delete_for_trip(store, trip_id)
        events = history_service.delete_for_trip(store, trip_id)
        store.remove(TRIPS, trip_id)

    logger.info(
        "Voyage %s supprimé (%d voyageurs, %d écritures, %d sinistres, %d événements)",
        trip_id, len(members), entries, claims, events,
    )


def reconcile_payment_status(
    store: RecordStore,
    trip_id: str,
    actor: Actor = SYSTEM_ACTOR,
) -> Trip:
    """
    Réaligne le cache du solde et le statut de paiement d'un voyage sur le grand livre.
    Un statut fixé à la main (`payment_status_manual`) est conservé ; seul le cache suit.
    Journalise TRIP_PAYMENT_STATUS_UPDATED uniquement si le statut change.
    """
    with trip_lock(trip_id), store.transaction():
        trip = load_trip(store, trip_id)
        members = load_members(store, trip_id)
        balance = ledger_service.get_ledger_balance(store, trip_id)
        if trip.payment_status_manual:
            status = trip.payment_status
        else:
            status = derive_payment_status(trip, members, balance)

        if trip.credits_total_cents == balance and trip.payment_status == status:
            return trip

        updated = save_trip(store, trip.model_copy(update={
            "credits_total_cents": balance,
            "payment_status": status,
            "updated_at": now_utc(),
        }))
        if trip.payment_status != status:
            history_service.log_event(
                store, updated, "TRIP_PAYMENT_STATUS_UPDATED", actor,
                change_summary([
                    ("Statut de paiement", trip.payment_status, status),
                    ("Crédits", format_usd(trip.credits_total_cents), format_usd(balance)),
                ]),
            )
            logger.info("Statut de paiement du voyage %s : %s -> %s", trip_id, trip.payment_status, status)
    return updated


def reconcile_all(store: RecordStore) -> int:
    """Rapproche tous les voyages actifs. Retourne le nombre de voyages modifiés."""
    changed = 0
    for trip in list_trips(store, status="ACTIVE"):
        before = (trip.credits_total_cents, trip.payment_status)
        after = reconcile_payment_status(store, trip.id)
        if (after.credits_total_cents, after.payment_status) != before:
            changed += 1
    return changed
