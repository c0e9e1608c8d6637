"""
Service métier pour les déclarations de sinistre.

Indicateurs de nouveauté : `fresh_for_admin` / `fresh_for_leader` signalent
une activité non vue par l'autre partie. Leurs variations sont décrites par
une seule table (opération, rôle) appliquée par `_apply_freshness`.
"""

import logging
import re
import uuid
from typing import Optional

from app.exceptions import InvalidInputError, NotFoundError
from app.schemas.claim import (
    CLAIM_ROLES,
    AttachmentCreate,
    Claim,
    ClaimAttachment,
    ClaimCreate,
    ClaimMessage,
    ClaimNote,
    ClaimUpdate,
    MessageCreate,
    NoteCreate,
)
from app.schemas.history import Actor
from app.services import history_service
from app.services.common import change_summary, load_member, load_trip, now_utc
from app.services.record_store import CLAIMS, RecordStore

logger = logging.getLogger(__name__)

FRESHNESS_RULES = {
    ("create", "LEADER"): {"fresh_for_admin": True, "fresh_for_leader": False},
    ("create", "ADMIN"): {"fresh_for_admin": True, "fresh_for_leader": True},
    ("update", "LEADER"): {"fresh_for_admin": True, "fresh_for_leader": False},
    ("update", "ADMIN"): {"fresh_for_admin": False, "fresh_for_leader": True},
    ("message", "LEADER"): {"fresh_for_admin": True, "fresh_for_leader": False},
    ("message", "ADMIN"): {"fresh_for_admin": False, "fresh_for_leader": True},
    ("attachment", "LEADER"): {"fresh_for_admin": True, "fresh_for_leader": False},
    ("attachment", "ADMIN"): {"fresh_for_admin": False, "fresh_for_leader": True},
    ("note", "ADMIN"): {"fresh_for_admin": False},
    ("seen", "LEADER"): {"fresh_for_leader": False},
    ("seen", "ADMIN"): {"fresh_for_admin": False},
}

_CLAIM_NUMBER = re.compile(r"-(\d+)$")


def _apply_freshness(claim: Claim, operation: str, role: str) -> Claim:
    rule = FRESHNESS_RULES.get((operation, role))
    if rule is None:
        raise InvalidInputError(f"Action '{operation}' non autorisée pour le rôle {role}.")
    return claim.model_copy(update=rule)


def _claim_role(actor: Actor) -> str:
    if actor.role not in CLAIM_ROLES:
        raise InvalidInputError(f"Rôle non autorisé sur les sinistres : {actor.role}")
    return actor.role


def _trip_claims(store: RecordStore, trip_id: str) -> list[Claim]:
    return [Claim.model_validate(r) for r in store.where(CLAIMS, lambda c: c.get("trip_id") == trip_id)]


def _next_claim_number(store: RecordStore, trip, year: int) -> str:
    """CLM-<numéro court du voyage>-<année>-<00001>, séquence par voyage."""
    highest = 0
    for claim in _trip_claims(store, trip.id):
        match = _CLAIM_NUMBER.search(claim.claim_number)
        if match:
            highest = max(highest, int(match.group(1)))
    trip_short = trip.short_id.rsplit("-", 1)[-1]
    return f"CLM-{trip_short}-{year}-{highest + 1:05d}"


def _load_claim(store: RecordStore, claim_id: str) -> Claim:
    row = store.by_id(CLAIMS, claim_id)
    if row is None:
        raise NotFoundError("Sinistre introuvable.")
    return Claim.model_validate(row)


def _save(store: RecordStore, claim: Claim) -> Claim:
    return Claim.model_validate(store.put(CLAIMS, claim.model_dump(mode="json")))


def create_claim(store: RecordStore, data: ClaimCreate, actor: Optional[Actor] = None) -> Claim:
    """
    Déclare un sinistre sur un voyage (archivé ou non).
    Si member_id est fourni, le nom et les coordonnées du voyageur sont copiés
    sur la déclaration (les valeurs saisies explicitement sont conservées).
    """
    actor = actor or Actor()
    role = _claim_role(actor)

    with store.transaction():
        trip = load_trip(store, data.trip_id)

        member_fields = {
            "member_name": data.member_name,
            "member_email": data.member_email,
            "member_phone": data.member_phone,
        }
        if data.member_id:
            member = load_member(store, data.member_id, trip.id)
            member_fields = {
                "member_name": data.member_name or member.display_name,
                "member_email": data.member_email or member.email,
                "member_phone": data.member_phone or member.phone,
            }

        now = now_utc()
        claim = Claim(
            id=str(uuid.uuid4()),
            claim_number=_next_claim_number(store, trip, now.year),
            trip_id=trip.id,
            member_id=data.member_id,
            reporter_name=data.reporter_name,
            reporter_email=data.reporter_email,
            reporter_role=role,
            incident_type=data.incident_type,
            incident_date=data.incident_date,
            incident_location=data.incident_location,
            incident_description=data.incident_description,
            created_at=now,
            updated_at=now,
            **member_fields,
        )
        claim = _save(store, _apply_freshness(claim, "create", role))

        event_type = "CLAIM_SUBMITTED" if role == "LEADER" else "CLAIM_CREATED"
        notes = [claim.claim_number]
        if claim.member_name:
            notes.append(f"Voyageur : {claim.member_name}")
        if claim.incident_type:
            notes.append(f"Type : {claim.incident_type}")
        history_service.log_event(
            store, trip, event_type, actor, " | ".join(notes),
            member_id=claim.member_id,
        )

    logger.info("Sinistre %s déclaré sur le voyage %s", claim.claim_number, trip.id)
    return claim


def get_claim(store: RecordStore, claim_id: str) -> Claim:
    return _load_claim(store, claim_id)


def list_claims(
    store: RecordStore,
    trip_id: Optional[str] = None,
    fresh_for: Optional[str] = None,
) -> list[Claim]:
    """Sinistres, du plus récent au plus ancien. fresh_for : LEADER ou ADMIN."""
    claims = [Claim.model_validate(r) for r in store.all(CLAIMS)]
    if trip_id:
        claims = [c for c in claims if c.trip_id == trip_id]
    if fresh_for == "ADMIN":
        claims = [c for c in claims if c.fresh_for_admin]
    elif fresh_for == "LEADER":
        claims = [c for c in claims if c.fresh_for_leader]
    return sorted(claims, key=lambda c: c.created_at, reverse=True)


def update_claim(
    store: RecordStore,
    claim_id: str,
    data: ClaimUpdate,
    actor: Optional[Actor] = None,
) -> Claim:
    """
    Applique les champs fournis. Toute transition de statut est permise.
    CLAIM_STATUS_UPDATED n'est journalisé que si le statut change.
    """
    actor = actor or Actor()
    role = _claim_role(actor)
    update_data = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

    with store.transaction():
        claim = _load_claim(store, claim_id)
        changed = {k: v for k, v in update_data.items() if getattr(claim, k) != v}
        if not changed:
            return claim

        updated = claim.model_copy(update={**changed, "updated_at": now_utc()})
        updated = _save(store, _apply_freshness(updated, "update", role))

        if "status" in changed:
            trip = load_trip(store, claim.trip_id)
            history_service.log_event(
                store, trip, "CLAIM_STATUS_UPDATED", actor,
                f"{claim.claim_number} | {change_summary([('Statut', claim.status, updated.status)])}",
                member_id=claim.member_id,
            )

    logger.info("Sinistre %s mis à jour (%s)", claim.claim_number, ", ".join(sorted(changed)))
    return updated


def add_claim_note(
    store: RecordStore,
    claim_id: str,
    data: NoteCreate,
    actor: Optional[Actor] = None,
) -> Claim:
    """Note interne (administrateurs uniquement), ajoutée en tête de liste."""
    actor = actor or Actor(role="ADMIN")
    role = _claim_role(actor)
    if role != "ADMIN":
        raise InvalidInputError("Seul un administrateur peut ajouter une note interne.")

    with store.transaction():
        claim = _load_claim(store, claim_id)
        now = now_utc()
        note = ClaimNote(id=str(uuid.uuid4()), author=data.author or actor.id, text=data.text, created_at=now)
        updated = claim.model_copy(update={"notes": [note] + claim.notes, "updated_at": now})
        updated = _save(store, _apply_freshness(updated, "note", role))

        history_service.log_event(
            store, load_trip(store, claim.trip_id), "CLAIM_NOTE_ADDED", actor,
            f"{claim.claim_number} | {data.text}",
            member_id=claim.member_id,
        )

    logger.info("Note ajoutée au sinistre %s", claim.claim_number)
    return updated


def add_claim_message(
    store: RecordStore,
    claim_id: str,
    data: MessageCreate,
    actor: Optional[Actor] = None,
) -> Claim:
    actor = actor or Actor()
    role = _claim_role(actor)

    with store.transaction():
        claim = _load_claim(store, claim_id)
        now = now_utc()
        message = ClaimMessage(
            id=str(uuid.uuid4()),
            author_role=role,
            author_name=data.author_name or actor.id,
            text=data.text,
            created_at=now,
        )
        updated = claim.model_copy(update={"messages": [message] + claim.messages, "updated_at": now})
        updated = _save(store, _apply_freshness(updated, "message", role))

        history_service.log_event(
            store, load_trip(store, claim.trip_id), "CLAIM_MESSAGE_ADDED", actor,
            f"{claim.claim_number} | {role} : {data.text}",
            member_id=claim.member_id,
        )

    logger.info("Message ajouté au sinistre %s par %s", claim.claim_number, role)
    return updated


def add_claim_attachment(
    store: RecordStore,
    claim_id: str,
    data: AttachmentCreate,
    actor: Optional[Actor] = None,
) -> Claim:
    """Enregistre les métadonnées d'une pièce jointe (pas de stockage de fichier)."""
    actor = actor or Actor()
    role = _claim_role(actor)

    with store.transaction():
        claim = _load_claim(store, claim_id)
        now = now_utc()
        attachment = ClaimAttachment(
            id=str(uuid.uuid4()),
            filename=data.filename,
            size=data.size,
            mime=data.mime,
            url=data.url,
            uploaded_by_role=role,
            created_at=now,
        )
        updated = claim.model_copy(update={"attachments": [attachment] + claim.attachments, "updated_at": now})
        updated = _save(store, _apply_freshness(updated, "attachment", role))

        history_service.log_event(
            store, load_trip(store, claim.trip_id), "CLAIM_ATTACHMENT_ADDED", actor,
            f"{claim.claim_number} | {data.filename} ({data.size} octets)",
            member_id=claim.member_id,
        )

    logger.info("Pièce jointe %s ajoutée au sinistre %s", data.filename, claim.claim_number)
    return updated


def mark_claim_seen(store: RecordStore, claim_id: str, role: str) -> Optional[Claim]:
    """
    Efface l'indicateur de nouveauté du rôle qui consulte le sinistre.
    Appel sans retour attendu par l'interface : un id inconnu est journalisé, pas levé.
    Aucun événement d'historique.
    """
    role = (role or "").upper()
    with store.transaction():
        row = store.by_id(CLAIMS, claim_id)
        if row is None:
            logger.warning("mark_claim_seen : sinistre %s introuvable", claim_id)
            return None
        claim = Claim.model_validate(row)
        return _save(store, _apply_freshness(claim, "seen", role))


def delete_for_trip(store: RecordStore, trip_id: str) -> int:
    """Suppression en cascade à la suppression d'un voyage."""
    claims = _trip_claims(store, trip_id)
    for claim in claims:
        store.remove(CLAIMS, claim.id)
    return len(claims)
