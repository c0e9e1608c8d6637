"""
Configuration partagée pour tous les tests.
Store en mémoire injecté à la place du store SQL, scheduler désactivé.
"""

import os

os.environ["STORE_BACKEND"] = "memory"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.dependencies import get_store  # noqa: E402
from app.main import app  # noqa: E402
from app.schemas.member import MemberCreate  # noqa: E402
from app.schemas.trip import TripCreate  # noqa: E402
from app.services import member_service, trip_service  # noqa: E402
from app.services.rate_service import seed_rates_if_empty  # noqa: E402
from app.services.record_store import MemoryRecordStore  # noqa: E402


@pytest.fixture
def store():
    """Store vide (tarifs par défaut uniquement)."""
    s = MemoryRecordStore()
    seed_rates_if_empty(s)
    return s


@pytest.fixture
def trip(store):
    """Voyage de 7 jours à 1,25 $/jour : une place coûte 875 cents."""
    return trip_service.create_trip(store, TripCreate(
        title="Mission Guatemala",
        start_date=date(2025, 6, 1),
        end_date=date(2025, 6, 7),
        region="DOMESTIC",
        rate_cents=125,
        leader_name="Dana Leader",
        leader_email="dana@example.org",
    ))


@pytest.fixture
def add_member(store, trip):
    """Fabrique : ajoute un voyageur au voyage (confirmé et majeur par défaut)."""
    def _add(**kwargs):
        data = {"first_name": "Ana", "last_name": "Diaz", "confirmed": True}
        data.update(kwargs)
        return member_service.add_members(store, trip.id, [MemberCreate(**data)])[0]
    return _add


@pytest.fixture
def client(store):
    """Client HTTP de test branché sur le store en mémoire du test."""
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
