"""
Tests unitaires pour le journal d'audit.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.exceptions import InvalidInputError, NotFoundError
from app.schemas.history import SYSTEM_ACTOR, Actor
from app.services import history_service, ledger_service
from app.services.record_store import HISTORY


def test_creation_voyage_journalisee(store, trip):
    events = history_service.get_history(store, trip.id)
    assert [e.type for e in events] == ["TRIP_CREATED"]
    assert events[0].trip_title == "Mission Guatemala"
    assert events[0].prev_hash == history_service.GENESIS_HASH


def test_type_inconnu_refuse(store, trip):
    with pytest.raises(InvalidInputError, match="inconnu"):
        history_service.log_event(store, trip, "TRIP_TELEPORTED", Actor())
    assert len(history_service.get_history(store, trip.id)) == 1


def test_acteur_enregistre(store, trip):
    event = history_service.log_event(
        store, trip, "TRIP_UPDATED", Actor(role="admin", id="u-42"), "Titre: A -> B"
    )
    assert event.actor_role == "ADMIN"
    assert event.actor_id == "u-42"


def test_role_acteur_invalide():
    with pytest.raises(ValueError):
        Actor(role="GUEST")


def test_filtres(store, trip, add_member):
    member = add_member()
    ledger_service.record_payment(store, trip.id, 875, actor=Actor(role="ADMIN", id="admin-1"))
    history_service.log_event(store, trip, "TRIP_PAYMENT_STATUS_UPDATED", SYSTEM_ACTOR)

    by_type = history_service.get_history(store, trip.id, types=["MEMBER_ADDED", "PAYMENT_APPLIED"])
    assert [e.type for e in by_type] == ["MEMBER_ADDED", "PAYMENT_APPLIED"]

    by_member = history_service.get_history(store, trip.id, member_id=member.id)
    assert [e.type for e in by_member] == ["MEMBER_ADDED"]

    by_actor = history_service.get_history(store, trip.id, actor_id="admin-1")
    assert [e.type for e in by_actor] == ["PAYMENT_APPLIED"]


def test_filtre_periode(store, trip):
    now = datetime.now(timezone.utc)
    assert len(history_service.get_history(store, trip.id, start=now - timedelta(hours=1))) == 1
    assert history_service.get_history(store, trip.id, end=now - timedelta(hours=1)) == []


def test_filtre_periode_sans_fuseau(store, trip):
    naive_past = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=1)
    assert len(history_service.get_history(store, trip.id, start=naive_past)) == 1


def test_historique_voyage_inconnu(store):
    with pytest.raises(NotFoundError):
        history_service.get_history(store, "absent")


def test_chaine_valide(store, trip, add_member):
    add_member()
    ledger_service.record_payment(store, trip.id, 875)

    events = history_service.get_history(store, trip.id)
    for previous, current in zip(events, events[1:]):
        assert current.prev_hash == previous.hash
    assert history_service.verify_chain(store, trip.id) is True


def test_chaine_alteree_detectee(store, trip, add_member):
    add_member()
    row = store.where(HISTORY, lambda e: e["trip_id"] == trip.id)[0]
    row["notes"] = "réécrit"
    store.put(HISTORY, row)

    assert history_service.verify_chain(store, trip.id) is False


def test_delete_for_trip(store, trip):
    assert history_service.delete_for_trip(store, trip.id) == 1
    assert store.where(HISTORY, lambda e: e["trip_id"] == trip.id) == []
