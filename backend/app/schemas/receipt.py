"""
Schéma du reçu de paiement : instantané figé de la couverture et du solde.
"""

import datetime as dt
from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel


class ReceiptSnapshot(BaseModel):
    """
    Instantané immuable. Un nouvel état (paiement, changement de roster)
    impose de reconstruire un reçu, jamais de modifier celui-ci.
    """
    trip_id: str
    title: str
    region: str                  # libellé : Domestic / International
    start_date: Optional[dt.date]
    end_date: Optional[dt.date]
    leader_name: Optional[str] = None
    leader_email: Optional[str] = None
    members_count: int
    covered_count: int
    covered_names: Tuple[str, ...]
    not_covered_names: Tuple[str, ...]
    seat_cost_cents: int
    subtotal_cents: int
    credits_cents: int
    balance_due_cents: int
    refund_eligible_cents: int
    payment_cents: Optional[int] = None
    total_paid_to_date_cents: int
    generated_at: datetime
    paid_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @property
    def paid_in_full(self) -> bool:
        return self.balance_due_cents == 0
