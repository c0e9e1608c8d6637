"""
Tests du moteur de couverture : calcul pur, scénarios de bout en bout,
attribution, libération et transfert de places.
"""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from app.exceptions import CapacityError, InvalidInputError, NotEligibleError, NotFoundError
from app.schemas.member import Member, MemberCreate, MemberUpdate
from app.schemas.trip import Trip
from app.services import coverage_service, history_service, ledger_service, member_service, trip_service
from app.services.common import load_member
from app.services.coverage_service import compute_coverage


# --- Helpers ---

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_trip(rate_cents=125) -> Trip:
    return Trip(
        id="trip-1",
        short_id="MA-2025-000001",
        title="Test",
        start_date=date(2025, 6, 1),
        end_date=date(2025, 6, 7),
        region="DOMESTIC",
        rate_cents=rate_cents,
        created_at=T0,
        updated_at=T0,
    )


def make_member(member_id, last_name="Diaz", minutes=0, **kwargs) -> Member:
    data = {
        "id": member_id,
        "trip_id": "trip-1",
        "first_name": "X",
        "last_name": last_name,
        "confirmed": True,
        "confirmed_at": T0 + timedelta(minutes=minutes),
    }
    data.update(kwargs)
    return Member(**data)


def history_types(store, trip_id):
    return [e.type for e in history_service.get_history(store, trip_id)]


# --- Calcul pur ---

def test_compute_coverage_deterministe():
    members = [make_member("a", minutes=2), make_member("b", minutes=1), make_member("c", minutes=3)]
    first = compute_coverage(make_trip(), members, 1750)
    second = compute_coverage(make_trip(), list(reversed(members)), 1750)
    assert first == second
    assert first.covered_ids == {"a", "b"}


def test_compute_coverage_monotone_en_solde():
    members = [make_member(str(i), minutes=i) for i in range(5)]
    previous = -1
    for balance in range(0, 6 * 875, 100):
        covered = compute_coverage(make_trip(), members, balance).covered_count
        assert covered >= previous
        previous = covered


def test_compute_coverage_ordre_par_confirmation():
    early = make_member("z-early", last_name="Zimmer", minutes=0)
    late = make_member("a-late", last_name="Adams", minutes=10)
    summary = compute_coverage(make_trip(), [late, early], 875)
    assert summary.covered_ids == {"z-early"}


def test_compute_coverage_egalite_departagee_par_nom_sans_accent():
    emile = make_member("m1", last_name="Émond")
    durand = make_member("m2", last_name="durand")
    summary = compute_coverage(make_trip(), [emile, durand], 875)
    assert summary.covered_ids == {"m2"}


def test_compute_coverage_sans_date_confirmation_en_fin_de_file():
    legacy = make_member("legacy", confirmed_at=None)
    dated = make_member("dated", minutes=500)
    summary = compute_coverage(make_trip(), [legacy, dated], 875)
    assert summary.covered_ids == {"dated"}


def test_compute_coverage_mineur_sans_accord_jamais_couvert():
    minor = make_member("kid", is_minor=True, guardian_approved=False)
    summary = compute_coverage(make_trip(), [minor], 100_000)
    assert summary.eligible_count == 0
    assert summary.covered_count == 0


def test_compute_coverage_standby_exclu():
    summary = compute_coverage(make_trip(), [make_member("a", active=False)], 875)
    assert summary.eligible_count == 0


def test_compute_coverage_prix_nul_aucune_place():
    summary = compute_coverage(make_trip(rate_cents=0), [make_member("a")], 10_000)
    assert summary.seat_cost == 0
    assert summary.covered_count == 0
    assert summary.paid_seats == 0


def test_compute_coverage_solde_negatif():
    summary = compute_coverage(make_trip(), [make_member("a")], -500)
    assert summary.covered_count == 0
    assert summary.unassigned_seats == 0


def test_compute_coverage_places_non_attribuees():
    summary = compute_coverage(make_trip(), [make_member("a")], 3 * 875 + 10)
    assert summary.paid_seats == 3
    assert summary.covered_count == 1
    assert summary.unassigned_seats == 2


def test_compute_coverage_serialise_ids_tries():
    summary = compute_coverage(make_trip(), [make_member("b"), make_member("a", minutes=1)], 1750)
    assert summary.model_dump(mode="json")["covered_ids"] == ["a", "b"]


# --- Scénarios de bout en bout ---

def test_scenario_paiement_exact_une_place(store, trip, add_member):
    add_member()
    ledger_service.record_payment(store, trip.id, 875)

    summary = coverage_service.coverage_for_trip(store, trip.id)
    assert summary.seat_cost == 875
    assert summary.covered_count == 1
    assert summary.unassigned_seats == 0


def test_scenario_credit_excedentaire_reste_libre(store, trip, add_member):
    add_member()
    ledger_service.record_payment(store, trip.id, 1750)

    summary = coverage_service.coverage_for_trip(store, trip.id)
    assert summary.covered_count == 1
    assert summary.unassigned_seats == 1


def test_scenario_mineur_sans_accord(store, trip, add_member):
    add_member(is_minor=True, guardian_approved=False)
    ledger_service.record_payment(store, trip.id, 875)

    assert coverage_service.coverage_for_trip(store, trip.id).eligible_count == 0


def test_scenario_retrait_membre_couvert(store, trip, add_member):
    covered = add_member(last_name="Adams")
    ledger_service.record_payment(store, trip.id, 875)

    member_service.remove_member(store, trip.id, covered.id)

    assert "MEMBER_REMOVED" in history_types(store, trip.id)
    summary = coverage_service.coverage_for_trip(store, trip.id)
    assert summary.covered_count == 0
    assert summary.unassigned_seats == 1

    newcomer = add_member(last_name="Brown")
    assert coverage_service.coverage_for_trip(store, trip.id).covered_ids == {newcomer.id}


def test_scenario_remboursement_retire_les_derniers(store, trip, add_member):
    adams = add_member(last_name="Adams")
    brown = add_member(last_name="Brown")
    clark = add_member(last_name="Clark")
    ledger_service.record_payment(store, trip.id, 3 * 875)
    assert coverage_service.coverage_for_trip(store, trip.id).covered_count == 3

    ledger_service.record_refund(store, trip.id, 875)

    summary = coverage_service.coverage_for_trip(store, trip.id)
    assert summary.covered_ids == {adams.id, brown.id}
    assert clark.id not in summary.covered_ids


def test_horodatage_couverture_suit_le_recalcul(store, trip, add_member):
    member = add_member()
    assert load_member(store, member.id).coverage_as_of is None

    ledger_service.record_payment(store, trip.id, 875)
    assert load_member(store, member.id).coverage_as_of is not None

    ledger_service.record_refund(store, trip.id, 875)
    assert load_member(store, member.id).coverage_as_of is None


# --- Roster ---

def test_roster_summary(store, trip, add_member):
    ready = add_member(last_name="Adams")
    waiting = add_member(last_name="Brown")
    unconfirmed = add_member(last_name="Clark", confirmed=False)
    ledger_service.record_payment(store, trip.id, 875)

    roster = coverage_service.get_roster_summary(store, trip.id)

    assert [m.id for m in roster.ready_roster] == [ready.id]
    assert [m.id for m in roster.pending_coverage] == [waiting.id, unconfirmed.id]
    assert roster.pending_count == 2
    assert roster.eligible_pending_count == 1
    assert roster.spot_price_cents == 875


def test_roster_summary_voyage_inconnu(store):
    with pytest.raises(NotFoundError):
        coverage_service.get_roster_summary(store, "absent")


# --- Attribution ---

def test_allocate_depuis_standby(store, trip, add_member):
    member = add_member(active=False)
    ledger_service.record_payment(store, trip.id, 875)

    summary = coverage_service.allocate_coverage(store, trip.id, member.id)

    assert member.id in summary.covered_ids
    assert load_member(store, member.id).active is True
    assert history_types(store, trip.id)[-1] == "COVERAGE_ALLOCATED"


def test_allocate_deja_couvert_sans_evenement(store, trip, add_member):
    member = add_member()
    ledger_service.record_payment(store, trip.id, 875)
    before = history_types(store, trip.id)

    summary = coverage_service.allocate_coverage(store, trip.id, member.id)

    assert member.id in summary.covered_ids
    assert history_types(store, trip.id) == before


def test_allocate_sans_place_payee(store, trip, add_member):
    add_member(last_name="Adams")
    standby = add_member(last_name="Brown", active=False)
    ledger_service.record_payment(store, trip.id, 875)
    before = history_types(store, trip.id)

    with pytest.raises(CapacityError):
        coverage_service.allocate_coverage(store, trip.id, standby.id)

    assert load_member(store, standby.id).active is False
    assert history_types(store, trip.id) == before


def test_allocate_mineur_sans_accord(store, trip, add_member):
    minor = add_member(is_minor=True, guardian_approved=False)
    ledger_service.record_payment(store, trip.id, 875)

    with pytest.raises(NotEligibleError):
        coverage_service.allocate_coverage(store, trip.id, minor.id)


def test_allocate_voyageur_autre_voyage(store, trip):
    with pytest.raises(NotFoundError):
        coverage_service.allocate_coverage(store, trip.id, "inconnu")


# --- Libération ---

def test_release_passe_en_standby_et_promeut_le_suivant(store, trip, add_member):
    first = add_member(last_name="Adams")
    second = add_member(last_name="Brown")
    ledger_service.record_payment(store, trip.id, 875)

    summary = coverage_service.release_coverage(store, trip.id, first.id, reason="Annulation")

    assert summary.covered_ids == {second.id}
    assert load_member(store, first.id).active is False
    event = history_service.get_history(store, trip.id)[-1]
    assert event.type == "COVERAGE_RELEASED"
    assert "Annulation" in event.notes
    assert "Brown" in event.notes


def test_release_non_couvert_sans_effet(store, trip, add_member):
    member = add_member()
    before = history_types(store, trip.id)

    coverage_service.release_coverage(store, trip.id, member.id)

    assert load_member(store, member.id).active is True
    assert history_types(store, trip.id) == before


# --- Transfert ---

def test_transfer_atomique(store, trip, add_member):
    source = add_member(last_name="Adams")
    target = add_member(last_name="Brown")
    ledger_service.record_payment(store, trip.id, 875)

    summary = coverage_service.transfer_coverage(store, trip.id, source.id, target.id)

    assert summary.covered_ids == {target.id}
    assert load_member(store, source.id).active is False
    assert load_member(store, target.id).confirmed_at < load_member(store, source.id).confirmed_at
    events = history_service.get_history(store, trip.id, types=["COVERAGE_TRANSFERRED"])
    assert len(events) == 1
    assert events[0].from_member_id == source.id
    assert events[0].to_member_id == target.id


def test_transfer_vers_soi_meme(store, trip, add_member):
    member = add_member()
    with pytest.raises(InvalidInputError):
        coverage_service.transfer_coverage(store, trip.id, member.id, member.id)


def test_transfer_source_non_couverte(store, trip, add_member):
    source = add_member(last_name="Adams")
    target = add_member(last_name="Brown")
    with pytest.raises(NotEligibleError):
        coverage_service.transfer_coverage(store, trip.id, source.id, target.id)


def test_transfer_cible_non_eligible_rien_ecrit(store, trip, add_member):
    source = add_member(last_name="Adams")
    target = add_member(last_name="Brown", is_minor=True, guardian_approved=False)
    ledger_service.record_payment(store, trip.id, 875)
    before = history_types(store, trip.id)

    with pytest.raises(NotEligibleError):
        coverage_service.transfer_coverage(store, trip.id, source.id, target.id)

    assert load_member(store, source.id).active is True
    assert coverage_service.coverage_for_trip(store, trip.id).covered_ids == {source.id}
    assert history_types(store, trip.id) == before


def test_transfer_cible_deja_couverte_sans_effet(store, trip, add_member):
    source = add_member(last_name="Adams")
    target = add_member(last_name="Brown")
    ledger_service.record_payment(store, trip.id, 1750)
    before = history_types(store, trip.id)

    summary = coverage_service.transfer_coverage(store, trip.id, source.id, target.id)

    assert summary.covered_ids == {source.id, target.id}
    assert history_types(store, trip.id) == before


def test_transfer_meme_lot_de_confirmation(store, trip):
    """Voyageurs ajoutés ensemble : même date de confirmation, départage par nom."""
    adams, brown, clark = member_service.add_members(store, trip.id, [
        MemberCreate(first_name="A", last_name="Adams", confirmed=True),
        MemberCreate(first_name="B", last_name="Brown", confirmed=True),
        MemberCreate(first_name="C", last_name="Clark", confirmed=True),
    ])
    ledger_service.record_payment(store, trip.id, 875)

    summary = coverage_service.transfer_coverage(store, trip.id, adams.id, clark.id)

    assert summary.covered_ids == {clark.id}
    assert load_member(store, adams.id).active is False
    assert load_member(store, brown.id).coverage_as_of is None
    assert history_types(store, trip.id)[-1] == "COVERAGE_TRANSFERRED"


def test_transfer_ne_deplace_pas_les_autres_couverts(store, trip):
    adams, brown, clark, dunn = member_service.add_members(store, trip.id, [
        MemberCreate(first_name="A", last_name="Adams", confirmed=True),
        MemberCreate(first_name="B", last_name="Brown", confirmed=True),
        MemberCreate(first_name="C", last_name="Clark", confirmed=True),
        MemberCreate(first_name="D", last_name="Dunn", confirmed=True),
    ])
    ledger_service.record_payment(store, trip.id, 1750)

    summary = coverage_service.transfer_coverage(store, trip.id, brown.id, dunn.id)

    assert summary.covered_ids == {adams.id, dunn.id}


def test_transfer_annule_si_journal_echoue(store, trip, add_member):
    source = add_member(last_name="Adams")
    target = add_member(last_name="Brown")
    ledger_service.record_payment(store, trip.id, 875)

    with patch("app.services.coverage_service.history_service.log_event", side_effect=RuntimeError("boom")):
        with pytest.raises(RuntimeError):
            coverage_service.transfer_coverage(store, trip.id, source.id, target.id)

    assert load_member(store, source.id).active is True
    assert coverage_service.coverage_for_trip(store, trip.id).covered_ids == {source.id}


def test_voyage_archive_refuse_les_mutations(store, trip, add_member):
    member = add_member()
    ledger_service.record_payment(store, trip.id, 875)
    trip_service.archive_trip(store, trip.id)

    with pytest.raises(InvalidInputError):
        coverage_service.release_coverage(store, trip.id, member.id)
    with pytest.raises(InvalidInputError):
        member_service.update_member(store, trip.id, member.id, MemberUpdate(phone="555"))


# --- Place réservée ---

def test_compute_coverage_place_reservee_garde_sa_position():
    members = [
        make_member("a", last_name="Adams", minutes=1, active=False, seat_held=True),
        make_member("b", last_name="Brown", minutes=2),
        make_member("c", last_name="Clark", minutes=3),
    ]
    summary = compute_coverage(make_trip(), members, 1750)

    assert summary.held_ids == {"a"}
    assert summary.covered_ids == {"b"}
    assert summary.unassigned_seats == 0


def test_compute_coverage_reservation_ignoree_sans_consentement():
    members = [make_member("a", active=False, seat_held=True, confirmed=False, confirmed_at=None)]
    summary = compute_coverage(make_trip(), members, 875)

    assert summary.held_count == 0
    assert summary.unassigned_seats == 1


def test_release_avec_reservation(store, trip, add_member):
    adams = add_member(last_name="Adams")
    brown = add_member(last_name="Brown")
    ledger_service.record_payment(store, trip.id, 875)

    summary = coverage_service.release_coverage(store, trip.id, adams.id, reason="Malade", hold=True)

    assert summary.covered_ids == set()
    assert summary.held_ids == {adams.id}
    assert summary.unassigned_seats == 0
    assert brown.id not in summary.covered_ids
    event = history_service.get_history(store, trip.id)[-1]
    assert event.type == "COVERAGE_RELEASED"
    assert "Place réservée au voyageur (1 place(s) réservée(s))" in event.notes
    assert coverage_service.get_roster_summary(store, trip.id).held_count == 1


def test_allocate_reprend_la_place_reservee(store, trip, add_member):
    adams = add_member(last_name="Adams")
    add_member(last_name="Brown")
    ledger_service.record_payment(store, trip.id, 875)
    coverage_service.release_coverage(store, trip.id, adams.id, hold=True)

    summary = coverage_service.allocate_coverage(store, trip.id, adams.id)

    assert summary.covered_ids == {adams.id}
    assert summary.held_count == 0
    assert load_member(store, adams.id).seat_held is False
    assert "Place réservée reprise" in history_service.get_history(store, trip.id)[-1].notes


def test_remise_en_service_manuelle_annule_la_reservation(store, trip, add_member):
    adams = add_member(last_name="Adams")
    ledger_service.record_payment(store, trip.id, 875)
    coverage_service.release_coverage(store, trip.id, adams.id, hold=True)

    member_service.update_member(store, trip.id, adams.id, MemberUpdate(active=True))

    member = load_member(store, adams.id)
    assert member.seat_held is False
    assert coverage_service.coverage_for_trip(store, trip.id).covered_ids == {adams.id}


def test_transfer_vers_un_voyageur_avec_reservation(store, trip, add_member):
    adams = add_member(last_name="Adams")
    brown = add_member(last_name="Brown")
    ledger_service.record_payment(store, trip.id, 1750)
    coverage_service.release_coverage(store, trip.id, brown.id, hold=True)

    summary = coverage_service.transfer_coverage(store, trip.id, adams.id, brown.id)

    assert summary.covered_ids == {brown.id}
    assert summary.held_count == 0
    assert summary.unassigned_seats == 1
