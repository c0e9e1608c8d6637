"""
Calcul des prix : tarif journalier × nombre de jours (bornes incluses) × voyageurs.
"""

from datetime import date
from typing import Optional


def days_inclusive(start: Optional[date], end: Optional[date]) -> int:
    """Nombre de jours calendaires, les deux bornes comprises. 0 si plage invalide ou incomplète."""
    if start is None or end is None or end < start:
        return 0
    return (end - start).days + 1


def seat_cost(trip) -> int:
    """Prix d'une place : rate_cents × jours."""
    return (trip.rate_cents or 0) * days_inclusive(trip.start_date, trip.end_date)


def trip_total_cents(trip, headcount: int) -> int:
    return seat_cost(trip) * max(0, headcount)
