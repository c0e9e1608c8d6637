"""
Moteur de couverture : qui, parmi les voyageurs d'un voyage, occupe une place payée.

La couverture n'est jamais stockée. Elle est recalculée à partir de trois
entrées (voyage, roster, solde du grand livre) par `compute_coverage`, une
fonction pure :

1. Prix d'une place = tarif journalier × jours (bornes incluses)
2. Éligibles = actifs, confirmés, et approuvés par un tuteur s'ils sont mineurs
3. Ordre de file : date de confirmation, puis nom (sans accents ni casse), puis id
4. Un voyageur en standby avec `seat_held` garde sa position dans la file
5. Places = floor(solde / prix), bornées à [0, longueur de la file]
6. Les N premiers de la file sont couverts, ou ont leur place réservée s'ils sont en standby

Attribuer, libérer ou transférer une place consiste donc à modifier l'état
des voyageurs (statut standby, réservation, position dans la file) de façon
à ce que le recalcul donne le résultat voulu.
"""

import logging
import unicodedata
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from app.exceptions import CapacityError, InvalidInputError, NotEligibleError
from app.schemas.coverage import CoverageSummary, RosterMember, RosterSummary
from app.schemas.history import Actor
from app.schemas.member import Member
from app.schemas.trip import Trip
from app.services import history_service, ledger_service
from app.services.common import (
    load_member,
    load_members,
    load_trip,
    member_snapshot,
    now_utc,
    require_editable,
    save_member,
    trip_lock,
)
from app.services.pricing import days_inclusive, seat_cost
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

# Sans date de confirmation : en fin de file
_NEVER = datetime.max.replace(tzinfo=timezone.utc)


def _collation_key(value: Optional[str]) -> str:
    decomposed = unicodedata.normalize("NFKD", value or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def _queue_key(member: Member):
    confirmed_at = member.confirmed_at or _NEVER
    if confirmed_at.tzinfo is None:
        confirmed_at = confirmed_at.replace(tzinfo=timezone.utc)
    return (confirmed_at, _collation_key(member.last_name), member.id)


def queue_order(members: Iterable[Member]) -> list[Member]:
    """Voyageurs éligibles dans l'ordre d'attribution des places."""
    return sorted((m for m in members if m.is_eligible), key=_queue_key)


def _seat_queue(members: Iterable[Member]) -> list[Member]:
    """File des places : éligibles et voyageurs en standby avec réservation, même ordre."""
    queued = (m for m in members if m.is_eligible or (m.seat_held and m.has_consent))
    return sorted(queued, key=_queue_key)


def compute_coverage(trip: Trip, members: Iterable[Member], ledger_balance: int) -> CoverageSummary:
    """Calcul pur et déterministe de la couverture d'un voyage."""
    members = list(members)
    cost = seat_cost(trip)
    eligible = queue_order(members)

    paid_seats = max(ledger_balance // cost if cost > 0 else 0, 0)
    seated = _seat_queue(members)[:paid_seats]
    covered = [m for m in seated if m.is_eligible]
    held = [m for m in seated if not m.is_eligible]

    return CoverageSummary(
        days=days_inclusive(trip.start_date, trip.end_date),
        seat_cost=cost,
        balance=ledger_balance,
        eligible_ids=frozenset(m.id for m in eligible),
        covered_ids=frozenset(m.id for m in covered),
        eligible_count=len(eligible),
        covered_count=len(covered),
        paid_seats=paid_seats,
        unassigned_seats=paid_seats - len(seated),
        held_ids=frozenset(m.id for m in held),
        held_count=len(held),
    )


def coverage_for_trip(store: RecordStore, trip_id: str) -> CoverageSummary:
    """Couverture courante d'un voyage (lecture cohérente dans une transaction)."""
    with store.transaction():
        trip = load_trip(store, trip_id)
        return compute_coverage(trip, load_members(store, trip_id), ledger_service.get_ledger_balance(store, trip_id))


def refresh_coverage_stamps(store: RecordStore, trip_id: str) -> tuple[frozenset, frozenset]:
    """
    Met à jour `coverage_as_of` après un changement (paiement, roster...).
    Retourne les ids couverts avant et après, d'après les horodatages.
    """
    trip = load_trip(store, trip_id)
    members = load_members(store, trip_id)
    summary = compute_coverage(trip, members, ledger_service.get_ledger_balance(store, trip_id))

    before = frozenset(m.id for m in members if m.coverage_as_of is not None)
    now = now_utc()
    for member in members:
        covered = member.id in summary.covered_ids
        if covered and member.coverage_as_of is None:
            save_member(store, member.model_copy(update={"coverage_as_of": now}))
        elif not covered and member.coverage_as_of is not None:
            save_member(store, member.model_copy(update={"coverage_as_of": None}))
    return before, summary.covered_ids


def get_roster_summary(store: RecordStore, trip_id: str) -> RosterSummary:
    """Roster séparé en couverts / en attente, dans l'ordre de la file."""
    with store.transaction():
        trip = load_trip(store, trip_id)
        members = load_members(store, trip_id)
        summary = compute_coverage(trip, members, ledger_service.get_ledger_balance(store, trip_id))

    ordered = queue_order(members) + [m for m in members if not m.is_eligible]
    roster = [
        RosterMember(
            **m.model_dump(),
            eligible=m.id in summary.eligible_ids,
            covered=m.id in summary.covered_ids,
            held=m.id in summary.held_ids,
        )
        for m in ordered
    ]
    ready = [m for m in roster if m.covered]
    pending = [m for m in roster if not m.covered]

    return RosterSummary(
        trip_id=trip.id,
        trip_title=trip.title,
        coverage=summary,
        ready_roster=ready,
        pending_coverage=pending,
        covered_count=len(ready),
        pending_count=len(pending),
        eligible_pending_count=sum(1 for m in pending if m.eligible),
        unassigned_seats=summary.unassigned_seats,
        held_count=summary.held_count,
        spot_price_cents=summary.seat_cost,
    )


def allocate_coverage(
    store: RecordStore,
    trip_id: str,
    member_id: str,
    actor: Optional[Actor] = None,
) -> CoverageSummary:
    """
    Attribue une place payée non utilisée à un voyageur.

    - Consentement incomplet (non confirmé, mineur sans accord) : NotEligibleError
    - Déjà couvert : aucun changement, aucun événement
    - Aucune place payée libre ni réservée pour lui : CapacityError
    Sinon le voyageur sort du standby (sa réservation éventuelle est consommée)
    et COVERAGE_ALLOCATED est journalisé.
    """
    actor = actor or Actor()
    with trip_lock(trip_id), store.transaction():
        trip = load_trip(store, trip_id)
        require_editable(trip)
        member = load_member(store, member_id, trip_id)

        if not member.has_consent:
            raise NotEligibleError(
                f"{member.display_name} n'est pas éligible : confirmation ou accord parental manquant."
            )

        summary = coverage_for_trip(store, trip_id)
        if member.id in summary.covered_ids:
            return summary
        had_hold = member.id in summary.held_ids
        if summary.unassigned_seats <= 0 and not had_hold:
            raise CapacityError("Aucune place payée disponible pour ce voyageur.")

        allocated = member.model_copy(update={"active": True, "seat_held": False, "updated_at": now_utc()})
        save_member(store, allocated)
        refresh_coverage_stamps(store, trip_id)
        summary = coverage_for_trip(store, trip_id)

        notes = f"Couverture attribuée | {member_snapshot(allocated, covered=True)}"
        if had_hold:
            notes += " | Place réservée reprise"
        history_service.log_event(store, trip, "COVERAGE_ALLOCATED", actor, notes, member_id=member.id)

    logger.info("Place attribuée à %s sur le voyage %s", member_id, trip_id)
    return summary


def release_coverage(
    store: RecordStore,
    trip_id: str,
    member_id: str,
    reason: Optional[str] = None,
    actor: Optional[Actor] = None,
    hold: bool = False,
) -> CoverageSummary:
    """
    Libère la place d'un voyageur couvert en le passant en standby.

    Sans `hold`, la place revient au suivant de la file s'il existe.
    Avec `hold`, elle reste réservée au voyageur : elle n'est pas réattribuée
    et `allocate_coverage` la lui rend sans exiger de place libre.
    """
    actor = actor or Actor()
    with trip_lock(trip_id), store.transaction():
        trip = load_trip(store, trip_id)
        require_editable(trip)
        member = load_member(store, member_id, trip_id)

        summary = coverage_for_trip(store, trip_id)
        if member.id not in summary.covered_ids:
            return summary

        save_member(store, member.model_copy(update={
            "active": False,
            "seat_held": hold,
            "coverage_as_of": None,
            "updated_at": now_utc(),
        }))
        before, after = refresh_coverage_stamps(store, trip_id)
        summary = coverage_for_trip(store, trip_id)

        notes = [f"Couverture libérée pour {member.display_name}", "Voyageur placé en standby"]
        if hold:
            notes.append(f"Place réservée au voyageur ({summary.held_count} place(s) réservée(s))")
        else:
            notes.append("Place rendue au pool")
        if reason:
            notes.append(f"Motif : {reason}")
        promoted = after - before - {member.id}
        if promoted:
            names = [load_member(store, mid).display_name for mid in sorted(promoted)]
            notes.append(f"Place réattribuée à {', '.join(names)}")
        history_service.log_event(
            store, trip, "COVERAGE_RELEASED", actor, " | ".join(notes),
            member_id=member.id,
        )

    logger.info("Place libérée pour %s sur le voyage %s (réservée : %s)", member_id, trip_id, hold)
    return summary


def transfer_coverage(
    store: RecordStore,
    trip_id: str,
    from_member_id: str,
    to_member_id: str,
    actor: Optional[Actor] = None,
) -> CoverageSummary:
    """
    Transfère la place de `from` à `to`, de façon atomique.

    `from` passe en standby et `to` est placé dans la file juste devant
    l'ancienne position de `from` (une microseconde plus tôt), donc dans le
    préfixe couvert : les autres voyageurs gardent leur statut. Une place
    que `to` avait en réserve revient au pool. Les deux voyageurs et
    l'événement COVERAGE_TRANSFERRED sont écrits dans la même transaction.
    """
    actor = actor or Actor()
    if from_member_id == to_member_id:
        raise InvalidInputError("Impossible de transférer une place vers le même voyageur.")

    with trip_lock(trip_id), store.transaction():
        trip = load_trip(store, trip_id)
        require_editable(trip)
        source = load_member(store, from_member_id, trip_id)
        target = load_member(store, to_member_id, trip_id)

        summary = coverage_for_trip(store, trip_id)
        if source.id not in summary.covered_ids:
            raise NotEligibleError(f"{source.display_name} n'a pas de place à transférer.")
        if not target.has_consent:
            raise NotEligibleError(
                f"{target.display_name} n'est pas éligible : confirmation ou accord parental manquant."
            )
        if target.id in summary.covered_ids:
            return summary

        now = now_utc()
        # Ancienne date de confirmation manquante : `now` précède déjà _NEVER
        queue_at = source.confirmed_at - timedelta(microseconds=1) if source.confirmed_at else now
        save_member(store, source.model_copy(update={
            "active": False,
            "seat_held": False,
            "coverage_as_of": None,
            "updated_at": now,
        }))
        save_member(store, target.model_copy(update={
            "active": True,
            "seat_held": False,
            "confirmed_at": queue_at,
            "coverage_as_of": now,
            "updated_at": now,
        }))
        refresh_coverage_stamps(store, trip_id)
        result = coverage_for_trip(store, trip_id)

        history_service.log_event(
            store, trip, "COVERAGE_TRANSFERRED", actor,
            f"Place transférée de {source.display_name} à {target.display_name}",
            from_member_id=source.id,
            to_member_id=target.id,
        )

    logger.info("Place transférée de %s à %s sur le voyage %s", from_member_id, to_member_id, trip_id)
    return result
