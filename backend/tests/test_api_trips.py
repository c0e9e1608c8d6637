"""
Tests d'intégration API pour les voyages, les voyageurs et les tarifs.
Testent les URLs, les codes HTTP, la validation et le format des réponses.
"""

from datetime import date, datetime, timezone
from unittest.mock import patch

from app.exceptions import InvalidInputError, NotFoundError
from app.schemas.trip import Trip


# --- Helpers ---

TRIP_PAYLOAD = {
    "title": "Mission Honduras",
    "start_date": "2025-06-01",
    "end_date": "2025-06-07",
    "region": "DOMESTIC",
}

ADMIN = {"X-Actor-Role": "ADMIN", "X-Actor-Id": "admin-1"}


def make_trip(**kwargs) -> Trip:
    now = datetime.now(timezone.utc)
    return Trip(
        id=kwargs.get("id", "t-1"),
        short_id="MA-2025-000001",
        title=kwargs.get("title", "Mission Honduras"),
        start_date=date(2025, 6, 1),
        end_date=date(2025, 6, 7),
        region="DOMESTIC",
        rate_cents=125,
        status=kwargs.get("status", "ACTIVE"),
        created_at=now,
        updated_at=now,
    )


def create_trip(client, **overrides) -> dict:
    response = client.post("/api/v1/trips", json={**TRIP_PAYLOAD, **overrides})
    assert response.status_code == 201
    return response.json()


# ============================================================
# POST /api/v1/trips
# ============================================================

def test_create_trip_succes(client):
    """Création d'un voyage valide → 201, tarif régional appliqué."""
    body = create_trip(client)

    assert body["title"] == "Mission Honduras"
    assert body["rate_cents"] == 125
    assert body["payment_status"] == "UNPAID"
    assert body["short_id"].startswith("MA-")


def test_create_trip_fin_avant_debut(client):
    """Date de fin avant la date de début → 422."""
    response = client.post("/api/v1/trips", json={**TRIP_PAYLOAD, "end_date": "2025-05-01"})
    assert response.status_code == 422


def test_create_trip_region_invalide(client):
    response = client.post("/api/v1/trips", json={**TRIP_PAYLOAD, "region": "MOON"})
    assert response.status_code == 422


def test_create_trip_role_invalide(client):
    response = client.post("/api/v1/trips", json=TRIP_PAYLOAD, headers={"X-Actor-Role": "GUEST"})
    assert response.status_code == 400


def test_create_trip_sans_tarif(client):
    """Aucun tarif en vigueur → 400 avec le message du service."""
    with patch("app.routers.trips.trip_service.create_trip") as mock:
        mock.side_effect = InvalidInputError("Aucun tarif DOMESTIC en vigueur au 2020-01-01.")
        response = client.post("/api/v1/trips", json=TRIP_PAYLOAD)

    assert response.status_code == 400
    assert "Aucun tarif" in response.json()["detail"]


# ============================================================
# GET /api/v1/trips
# ============================================================

def test_list_trips(client):
    with patch("app.routers.trips.trip_service.list_trips") as mock:
        mock.return_value = [make_trip(id="t-1"), make_trip(id="t-2")]
        response = client.get("/api/v1/trips?status=ACTIVE")

    assert response.status_code == 200
    assert [t["id"] for t in response.json()] == ["t-1", "t-2"]
    assert mock.call_args.kwargs["status"] == "ACTIVE"


def test_get_trip_detail(client):
    trip = create_trip(client)
    client.post(f"/api/v1/trips/{trip['id']}/members", json=[{"firstName": "Ana", "lastName": "Diaz", "confirmed": True}])

    response = client.get(f"/api/v1/trips/{trip['id']}")

    assert response.status_code == 200
    body = response.json()
    assert body["trip"]["id"] == trip["id"]
    assert len(body["members"]) == 1
    assert body["coverage"]["seat_cost"] == 875
    assert body["coverage"]["covered_ids"] == []


def test_get_trip_introuvable(client):
    response = client.get("/api/v1/trips/absent")
    assert response.status_code == 404
    assert "introuvable" in response.json()["detail"]


# ============================================================
# PUT / archive / DELETE
# ============================================================

def test_update_trip(client):
    trip = create_trip(client)
    response = client.put(f"/api/v1/trips/{trip['id']}", json={"title": "Mission Belize"})

    assert response.status_code == 200
    assert response.json()["title"] == "Mission Belize"


def test_update_trip_introuvable(client):
    with patch("app.routers.trips.trip_service.update_trip") as mock:
        mock.side_effect = NotFoundError("Voyage introuvable.")
        response = client.put("/api/v1/trips/absent", json={"title": "x"})
    assert response.status_code == 404


def test_archive_trip_puis_roster_refuse(client):
    trip = create_trip(client)
    response = client.post(f"/api/v1/trips/{trip['id']}/archive")
    assert response.status_code == 200
    assert response.json()["status"] == "ARCHIVED"

    response = client.post(f"/api/v1/trips/{trip['id']}/members", json=[{"first_name": "Ana"}])
    assert response.status_code == 400


def test_delete_trip_reserve_admin(client):
    trip = create_trip(client)
    assert client.delete(f"/api/v1/trips/{trip['id']}").status_code == 403
    assert client.delete(f"/api/v1/trips/{trip['id']}", headers=ADMIN).status_code == 204
    assert client.get(f"/api/v1/trips/{trip['id']}").status_code == 404


def test_reconcile_trip(client):
    trip = create_trip(client)
    client.post(f"/api/v1/trips/{trip['id']}/members", json=[{"first_name": "Ana", "confirmed": True}])
    client.post(f"/api/v1/trips/{trip['id']}/payments", json={"amount_cents": 875})

    response = client.post(f"/api/v1/trips/{trip['id']}/reconcile", headers=ADMIN)

    assert response.status_code == 200
    assert response.json()["payment_status"] == "PAID"
    assert response.json()["credits_total_cents"] == 875


# ============================================================
# Voyageurs
# ============================================================

def test_add_members_alias(client):
    trip = create_trip(client)
    response = client.post(f"/api/v1/trips/{trip['id']}/members", json=[
        {"firstName": "Léo", "minor": True, "confirmed": True, "guardian": {"firstName": "Marie", "approved": True}},
        {"first_name": "Ana", "email": "ana@example.org"},
    ])

    assert response.status_code == 201
    first, second = response.json()
    assert first["is_minor"] is True
    assert first["guardian_name"] == "Marie"
    assert first["guardian_approved"] is True
    assert second["confirmed"] is False


def test_add_members_sans_identite(client):
    trip = create_trip(client)
    response = client.post(f"/api/v1/trips/{trip['id']}/members", json=[{"phone": "555"}])
    assert response.status_code == 422


def test_member_crud(client):
    trip = create_trip(client)
    member = client.post(f"/api/v1/trips/{trip['id']}/members", json=[{"first_name": "Ana"}]).json()[0]
    url = f"/api/v1/trips/{trip['id']}/members/{member['id']}"

    assert client.get(url).json()["first_name"] == "Ana"
    assert client.put(url, json={"isConfirmed": True}).json()["confirmed"] is True
    assert client.delete(url).status_code == 204
    assert client.get(url).status_code == 404
    assert client.get(f"/api/v1/trips/{trip['id']}/members").json() == []


# ============================================================
# Tarifs
# ============================================================

def test_list_rates(client):
    response = client.get("/api/v1/rates")
    assert response.status_code == 200
    assert {r["region"] for r in response.json()} == {"DOMESTIC", "INTERNATIONAL"}


def test_create_rate_reserve_admin(client):
    payload = {"region": "DOMESTIC", "amount_cents": 150, "effective_start": "2026-01-01"}
    assert client.post("/api/v1/rates", json=payload).status_code == 403

    response = client.post("/api/v1/rates", json=payload, headers=ADMIN)
    assert response.status_code == 201
    assert response.json()["amount_cents"] == 150

    assert client.post("/api/v1/rates", json=payload, headers=ADMIN).status_code == 400


def test_health(client):
    assert client.get("/api/health").json()["status"] == "ok"
