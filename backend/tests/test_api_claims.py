"""
Tests d'intégration API pour les sinistres.
"""

from unittest.mock import patch

LEADER = {"X-Actor-Role": "LEADER", "X-Actor-Id": "leader-1"}
ADMIN = {"X-Actor-Role": "ADMIN", "X-Actor-Id": "admin-1"}


# --- Helpers ---

def create_claim(client, trip_id, headers=LEADER, **overrides):
    payload = {"trip_id": trip_id, "incident_type": "Medical", "description": "Chute dans l'escalier."}
    payload.update(overrides)
    return client.post("/api/v1/claims", json=payload, headers=headers)


def test_create_claim(client, trip):
    response = create_claim(client, trip.id)

    assert response.status_code == 201
    body = response.json()
    assert body["claim_number"].startswith("CLM-")
    assert body["incident_description"] == "Chute dans l'escalier."
    assert body["fresh_for_admin"] is True
    assert body["fresh_for_leader"] is False


def test_create_claim_sans_description(client, trip):
    response = client.post("/api/v1/claims", json={"trip_id": trip.id}, headers=LEADER)
    assert response.status_code == 422


def test_create_claim_voyage_inconnu(client):
    assert create_claim(client, "absent").status_code == 404


def test_list_et_get_claim(client, trip):
    claim = create_claim(client, trip.id).json()

    listed = client.get(f"/api/v1/claims?trip_id={trip.id}&fresh_for=ADMIN").json()
    assert [c["id"] for c in listed] == [claim["id"]]
    assert client.get(f"/api/v1/claims/{claim['id']}").json()["id"] == claim["id"]
    assert client.get("/api/v1/claims/absent").status_code == 404


def test_update_claim_statut(client, trip):
    claim = create_claim(client, trip.id).json()
    response = client.put(f"/api/v1/claims/{claim['id']}", json={"status": "APPROVED"}, headers=ADMIN)

    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"
    assert response.json()["fresh_for_leader"] is True


def test_update_claim_statut_invalide(client, trip):
    claim = create_claim(client, trip.id).json()
    response = client.put(f"/api/v1/claims/{claim['id']}", json={"status": "PAID"}, headers=ADMIN)
    assert response.status_code == 422


def test_note_reservee_admin(client, trip):
    claim = create_claim(client, trip.id).json()
    url = f"/api/v1/claims/{claim['id']}/notes"

    assert client.post(url, json={"text": "Interne"}, headers=LEADER).status_code == 400
    response = client.post(url, json={"text": "Interne"}, headers=ADMIN)
    assert response.status_code == 201
    assert response.json()["notes"][0]["text"] == "Interne"


def test_messages_et_pieces_jointes(client, trip):
    claim = create_claim(client, trip.id).json()

    response = client.post(f"/api/v1/claims/{claim['id']}/messages", json={"text": "Reçu ?"}, headers=ADMIN)
    assert response.json()["messages"][0]["author_role"] == "ADMIN"
    assert response.json()["fresh_for_leader"] is True

    response = client.post(
        f"/api/v1/claims/{claim['id']}/attachments",
        json={"filename": "facture.pdf", "size": 1024},
        headers=LEADER,
    )
    assert response.status_code == 201
    assert response.json()["attachments"][0]["filename"] == "facture.pdf"


def test_mark_seen(client, trip):
    claim = create_claim(client, trip.id).json()

    assert client.post(f"/api/v1/claims/{claim['id']}/seen", headers=ADMIN).status_code == 204
    assert client.get(f"/api/v1/claims/{claim['id']}").json()["fresh_for_admin"] is False


def test_mark_seen_inconnu_204(client):
    assert client.post("/api/v1/claims/absent/seen", headers=ADMIN).status_code == 204


def test_mark_seen_transmet_le_role(client):
    with patch("app.routers.claims.claim_service.mark_claim_seen") as mock:
        mock.return_value = None
        client.post("/api/v1/claims/c-1/seen", headers=LEADER)

    mock.assert_called_once()
    assert mock.call_args.args[1:] == ("c-1", "LEADER")
