"""
Service métier pour les tarifs journaliers par région.
Le tarif applicable à un voyage est celui de sa région le plus récent
dont la date d'effet est antérieure ou égale à la date de départ.
"""

import logging
from datetime import date
from typing import Optional

from app.exceptions import InvalidInputError
from app.schemas.rate import Rate, RateCreate
from app.services.record_store import RATES, RecordStore

logger = logging.getLogger(__name__)

DEFAULT_RATES = (
    ("DOMESTIC", 125, date(2025, 1, 1)),
    ("INTERNATIONAL", 425, date(2025, 1, 1)),
)


def seed_rates_if_empty(store: RecordStore) -> int:
    """Insère les tarifs par défaut si aucun tarif n'existe. Retourne le nombre inséré."""
    if store.all(RATES):
        return 0
    with store.transaction():
        for region, amount, effective_start in DEFAULT_RATES:
            store.insert(RATES, {
                "region": region,
                "amount_cents": amount,
                "effective_start": effective_start.isoformat(),
                "notes": None,
            })
    logger.info("Tarifs par défaut insérés (%d)", len(DEFAULT_RATES))
    return len(DEFAULT_RATES)


def list_rates(store: RecordStore) -> list[Rate]:
    """Tous les tarifs, date d'effet la plus récente en premier."""
    rates = [Rate.model_validate(r) for r in store.all(RATES)]
    return sorted(rates, key=lambda r: r.effective_start, reverse=True)


def create_rate(store: RecordStore, data: RateCreate) -> Rate:
    """Ajoute un tarif. Refuse un doublon (même région, même date d'effet)."""
    exists = any(
        r.region == data.region and r.effective_start == data.effective_start
        for r in list_rates(store)
    )
    if exists:
        raise InvalidInputError("Un tarif existe déjà pour cette région et cette date.")

    row = store.insert(RATES, data.model_dump(mode="json"))
    logger.info("Tarif créé : %s %d cents à partir du %s", data.region, data.amount_cents, data.effective_start)
    return Rate.model_validate(row)


def select_rate(store: RecordStore, region: str, start: date) -> Optional[Rate]:
    """Tarif en vigueur pour une région à une date de départ, ou None."""
    for rate in list_rates(store):
        if rate.region == region and rate.effective_start <= start:
            return rate
    return None
