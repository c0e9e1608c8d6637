"""
Dépendances FastAPI partagées par les routers : store, auteur de la requête,
traduction des erreurs métier en réponses HTTP.
"""

from typing import Optional

from fastapi import Header, HTTPException, Request
from pydantic import ValidationError

from app.exceptions import CapacityError, NotEligibleError, NotFoundError
from app.schemas.history import Actor
from app.services.record_store import RecordStore


def get_store(request: Request) -> RecordStore:
    """Store construit au démarrage (lifespan de app.main)."""
    return request.app.state.store


def get_actor(
    x_actor_role: str = Header(default="LEADER"),
    x_actor_id: Optional[str] = Header(default=None),
) -> Actor:
    """Pas d'authentification : le rôle et l'id sont déclarés par le client."""
    try:
        return Actor(role=x_actor_role, id=x_actor_id)
    except ValidationError:
        raise HTTPException(status_code=400, detail=f"Rôle invalide : {x_actor_role}")


def http_error(exc: ValueError) -> HTTPException:
    """404 introuvable, 409 conflit de couverture, 400 pour le reste."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (CapacityError, NotEligibleError)):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
