"""
Tests unitaires pour le reçu de paiement.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.exceptions import NotFoundError
from app.services import ledger_service, receipt_service
from app.services.common import load_members, load_trip

GENERATED_AT = datetime(2025, 6, 1, 9, 30, tzinfo=timezone.utc)


def build(store, trip, **kwargs):
    return receipt_service.build_receipt_snapshot(
        load_trip(store, trip.id),
        load_members(store, trip.id),
        ledger_service.get_ledger_balance(store, trip.id),
        generated_at=GENERATED_AT,
        **kwargs,
    )


def test_snapshot_idempotent(store, trip, add_member):
    add_member()
    ledger_service.record_payment(store, trip.id, 875)

    assert build(store, trip) == build(store, trip)


def test_snapshot_fige(store, trip):
    snapshot = build(store, trip)
    with pytest.raises(ValidationError):
        snapshot.credits_cents = 1


def test_snapshot_montants(store, trip, add_member):
    add_member(last_name="Adams")
    add_member(last_name="Brown")
    ledger_service.record_payment(store, trip.id, 1000)

    snapshot = build(store, trip, payment_cents=1000)

    assert snapshot.covered_count == 1
    assert snapshot.seat_cost_cents == 875
    assert snapshot.subtotal_cents == 875
    assert snapshot.credits_cents == 1000
    assert snapshot.balance_due_cents == 0
    assert snapshot.refund_eligible_cents == 125
    assert snapshot.total_paid_to_date_cents == 1000
    assert snapshot.paid_in_full is True


def test_snapshot_solde_du(store, trip, add_member):
    add_member()
    snapshot = build(store, trip)

    assert snapshot.covered_count == 0
    assert snapshot.balance_due_cents == 0
    assert snapshot.not_covered_names == ("Ana Diaz",)


def test_snapshot_motifs_non_couverts(store, trip, add_member):
    add_member(first_name="Ana", last_name="Adams")
    add_member(first_name="Ben", last_name="Brown", active=False)
    add_member(first_name="Cleo", last_name="Clark", confirmed=False)
    add_member(first_name="Dan", last_name="Dale", is_minor=True, guardian_approved=False)
    add_member(first_name="Eve", last_name="Evans")
    ledger_service.record_payment(store, trip.id, 875)

    snapshot = build(store, trip)

    assert snapshot.covered_names == ("Ana Adams",)
    assert snapshot.not_covered_names == (
        "Ben Brown (Standby)",
        "Cleo Clark (Not confirmed)",
        "Dan Dale (No guardian approval)",
        "Eve Evans",
    )


def test_snapshot_libelles(store, trip):
    snapshot = build(store, trip)
    assert snapshot.trip_id.startswith("MA-")
    assert snapshot.region == "Domestic"
    assert snapshot.leader_name == "Dana Leader"


def test_receipt_for_trip(store, trip, add_member):
    add_member()
    ledger_service.record_payment(store, trip.id, 875)

    snapshot = receipt_service.receipt_for_trip(store, trip.id, payment_cents=875)

    assert snapshot.covered_names == ("Ana Diaz",)
    assert snapshot.payment_cents == 875


def test_receipt_for_trip_inconnu(store):
    with pytest.raises(NotFoundError):
        receipt_service.receipt_for_trip(store, "absent")


def test_render_html(store, trip, add_member):
    add_member(first_name="<script>", last_name="Diaz")
    ledger_service.record_payment(store, trip.id, 875)

    html = receipt_service.render_receipt_html(build(store, trip, payment_cents=875))

    assert html.startswith("<!doctype html>")
    assert "Payment Receipt" in html
    assert "Paid in full as of 06/01/2025 09:30 UTC" in html
    assert "Payment today" in html
    assert "$8.75" in html
    assert "&lt;script&gt; Diaz" in html
    assert "<script>" not in html


def test_render_html_paiement_partiel(store, trip, add_member):
    add_member(last_name="Adams")
    add_member(last_name="Brown")
    ledger_service.record_payment(store, trip.id, 875)
    snapshot = build(store, trip)
    # Un seul couvert : le sous-total reste égal aux crédits
    assert snapshot.balance_due_cents == 0

    partial = snapshot.model_copy(update={"balance_due_cents": 500})
    assert "Partial payment on file" in receipt_service.render_receipt_html(partial)
