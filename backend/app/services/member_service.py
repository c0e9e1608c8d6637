"""
Service métier pour les voyageurs d'un voyage.

Chaque ajout, modification ou retrait recalcule la couverture (horodatages
coverage_as_of) et journalise un événement dans la même transaction.
"""

import logging
from typing import Optional

from app.exceptions import InvalidInputError
from app.schemas.history import Actor
from app.schemas.member import Member, MemberCreate, MemberUpdate
from app.services import coverage_service, history_service
from app.services.common import (
    change_summary,
    load_member,
    load_members,
    load_trip,
    member_snapshot,
    now_utc,
    require_editable,
    save_member,
    trip_lock,
    yes_no,
)
from app.services.record_store import MEMBERS, RecordStore

logger = logging.getLogger(__name__)

MEMBER_FIELD_LABELS = {
    "first_name": "Prénom",
    "last_name": "Nom",
    "email": "Email",
    "phone": "Téléphone",
    "is_minor": "Mineur",
    "confirmed": "Confirmé",
    "guardian_approved": "Accord tuteur",
    "guardian_name": "Tuteur",
    "guardian_email": "Email du tuteur",
    "guardian_phone": "Téléphone du tuteur",
    "active": "Actif",
}


def _show(value):
    return yes_no(value) if isinstance(value, bool) else value


def add_members(
    store: RecordStore,
    trip_id: str,
    members: list[MemberCreate],
    actor: Optional[Actor] = None,
) -> list[Member]:
    """Ajoute un ou plusieurs voyageurs. Un événement MEMBER_ADDED par voyageur."""
    actor = actor or Actor()
    if not members:
        raise InvalidInputError("Aucun voyageur à ajouter.")

    with trip_lock(trip_id), store.transaction():
        trip = load_trip(store, trip_id)
        require_editable(trip)

        now = now_utc()
        created = []
        for data in members:
            row = data.model_dump(mode="json")
            row.update({
                "trip_id": trip_id,
                "confirmed_at": now.isoformat() if data.confirmed else None,
                "guardian_approved_at": now.isoformat() if data.guardian_approved else None,
                "created_at": now.isoformat(),
                "updated_at": now.isoformat(),
            })
            created.append(Member.model_validate(store.insert(MEMBERS, row)))

        _, covered = coverage_service.refresh_coverage_stamps(store, trip_id)
        for member in created:
            history_service.log_event(
                store, trip, "MEMBER_ADDED", actor,
                member_snapshot(member, covered=member.id in covered, include_guardian=True),
                member_id=member.id,
            )

    logger.info("%d voyageur(s) ajouté(s) au voyage %s", len(created), trip_id)
    return [load_member(store, m.id) for m in created]


def list_members(store: RecordStore, trip_id: str) -> list[Member]:
    load_trip(store, trip_id)
    return load_members(store, trip_id)


def get_member(store: RecordStore, trip_id: str, member_id: str) -> Member:
    return load_member(store, member_id, trip_id)


def update_member(
    store: RecordStore,
    trip_id: str,
    member_id: str,
    data: MemberUpdate,
    actor: Optional[Actor] = None,
) -> Member:
    """
    Met à jour les champs fournis d'un voyageur.

    Confirmer (ou approuver en tant que tuteur) horodate l'action ; annuler
    efface l'horodatage, le voyageur repasse alors en fin de file.
    Aucun changement effectif : aucun événement.
    """
    actor = actor or Actor()
    update_data = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

    with trip_lock(trip_id), store.transaction():
        trip = load_trip(store, trip_id)
        require_editable(trip)
        member = load_member(store, member_id, trip_id)

        changed = {field: value for field, value in update_data.items() if getattr(member, field) != value}
        if not changed:
            return member

        now = now_utc()
        patch = dict(changed)
        if "confirmed" in changed:
            patch["confirmed_at"] = now if changed["confirmed"] else None
        if "guardian_approved" in changed:
            patch["guardian_approved_at"] = now if changed["guardian_approved"] else None
        if "active" in changed:
            # Une place réservée ne survit pas à un changement manuel de standby
            patch["seat_held"] = False
        patch["updated_at"] = now

        updated = member.model_copy(update=patch)
        if not (updated.first_name or updated.last_name or updated.email):
            raise InvalidInputError("Un voyageur doit avoir au moins un nom ou un email.")

        was_covered = member.coverage_as_of is not None
        save_member(store, updated)
        _, covered = coverage_service.refresh_coverage_stamps(store, trip_id)

        changes = [
            (MEMBER_FIELD_LABELS[field], _show(getattr(member, field)), _show(value))
            for field, value in changed.items()
        ]
        is_covered = updated.id in covered
        if was_covered != is_covered:
            changes.append((
                "Couverture",
                "Couvert" if was_covered else "En attente",
                "Couvert" if is_covered else "En attente",
            ))
        history_service.log_event(
            store, trip, "MEMBER_UPDATED", actor,
            f"{updated.display_name} | {change_summary(changes)}",
            member_id=member.id,
        )

    logger.info("Voyageur %s mis à jour (%s)", member_id, ", ".join(sorted(changed)))
    return load_member(store, member_id)


def remove_member(
    store: RecordStore,
    trip_id: str,
    member_id: str,
    actor: Optional[Actor] = None,
) -> None:
    """Retire un voyageur. S'il était couvert, sa place revient au suivant de la file."""
    actor = actor or Actor()
    with trip_lock(trip_id), store.transaction():
        trip = load_trip(store, trip_id)
        require_editable(trip)
        member = load_member(store, member_id, trip_id)

        summary = coverage_service.coverage_for_trip(store, trip_id)
        was_covered = member.id in summary.covered_ids

        store.remove(MEMBERS, member.id)
        coverage_service.refresh_coverage_stamps(store, trip_id)

        notes = member_snapshot(member, covered=was_covered)
        if was_covered:
            notes += " | Place rendue au pool"
        history_service.log_event(store, trip, "MEMBER_REMOVED", actor, notes, member_id=member.id)

    logger.info("Voyageur %s retiré du voyage %s", member_id, trip_id)
