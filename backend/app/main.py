"""
Point d'entrée principal de l'API Mission Assure.
Démarrage : uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import app.models  # noqa: F401 (enregistre les modèles dans Base.metadata avant create_all)
from app.config import settings
from app.database import Base, SessionLocal, engine
from app.exceptions import StorageError
from app.routers import claims, coverage, history, members, payments, rates, receipts, trips
from app.scheduler import start_scheduler, stop_scheduler
from app.services.rate_service import seed_rates_if_empty
from app.services.record_store import MemoryRecordStore, RecordStore, SqlRecordStore

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_store() -> RecordStore:
    """Construit le store choisi par STORE_BACKEND (sql par défaut)."""
    if settings.STORE_BACKEND == "memory":
        logger.info("Store en mémoire (données perdues à l'arrêt)")
        return MemoryRecordStore()
    Base.metadata.create_all(bind=engine)
    return SqlRecordStore(SessionLocal)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie : construit le store, insère les tarifs par défaut, démarre le scheduler."""
    app.state.store = build_store()
    if settings.SEED_RATES:
        seed_rates_if_empty(app.state.store)
    if settings.SCHEDULER_ENABLED:
        start_scheduler(app.state.store)
    yield
    stop_scheduler()


app = FastAPI(
    title="Mission Assure API",
    description="API d'allocation de couverture et de grand livre pour assurance voyage",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS : autorise tous les ports localhost en développement (à restreindre en production).
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Accept", "X-Actor-Role", "X-Actor-Id"],
)


app.include_router(trips.router)
app.include_router(members.router)
app.include_router(payments.router)
app.include_router(coverage.router)
app.include_router(history.router)
app.include_router(receipts.router)
app.include_router(claims.router)
app.include_router(rates.router)


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    """La transaction a été annulée : aucun changement n'a été persisté."""
    logger.error("Erreur de persistance : %s", exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Stockage indisponible, aucune modification enregistrée."},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "Mission Assure API", "version": "0.1.0"}
