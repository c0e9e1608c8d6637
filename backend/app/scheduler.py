"""
Planificateur APScheduler pour le rapprochement des paiements.

Le job réaligne périodiquement, pour chaque voyage actif, le cache du solde
(`credits_total_cents`) et le statut de paiement sur le grand livre.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import settings
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _reconcile_payments_scheduled(store: RecordStore) -> None:
    """
    Tâche planifiée : rapproche tous les voyages actifs.
    Import local pour éviter les imports circulaires.
    """
    from app.services.trip_service import reconcile_all

    try:
        changed = reconcile_all(store)
        logger.info("Rapprochement des paiements : %d voyage(s) mis à jour", changed)
    except Exception as exc:
        logger.error("Erreur lors du rapprochement des paiements : %s", exc, exc_info=True)


def start_scheduler(store: RecordStore) -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(
        _reconcile_payments_scheduled,
        trigger="interval",
        minutes=settings.RECONCILE_INTERVAL_MINUTES,
        args=[store],
        id="payment_reconciliation",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré : rapprochement des paiements toutes les %d minutes.",
        settings.RECONCILE_INTERVAL_MINUTES,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
