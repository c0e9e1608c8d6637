"""
Schémas Pydantic pour la couverture (places payées attribuées aux voyageurs).
"""

from typing import FrozenSet, List, Optional

from pydantic import BaseModel, field_serializer, field_validator

from app.schemas.member import Member


class CoverageSummary(BaseModel):
    """
    Résultat du calcul de couverture pour un voyage, à un instant donné.
    Vue dérivée : rien de ceci n'est persisté.
    """
    days: int
    seat_cost: int
    balance: int
    eligible_ids: FrozenSet[str]
    covered_ids: FrozenSet[str]
    eligible_count: int
    covered_count: int
    paid_seats: int          # floor(balance / seat_cost)
    unassigned_seats: int    # places payées ni occupées ni réservées
    held_ids: FrozenSet[str] = frozenset()
    held_count: int = 0      # places payées réservées à des voyageurs en standby

    model_config = {"frozen": True}

    @field_serializer("eligible_ids", "covered_ids", "held_ids")
    def sorted_ids(self, ids: FrozenSet[str]) -> List[str]:
        return sorted(ids)


class RosterMember(Member):
    """Voyageur enrichi de son statut de couverture."""
    eligible: bool
    covered: bool
    held: bool = False


class RosterSummary(BaseModel):
    """Roster d'un voyage séparé en couverts / en attente (écran du responsable)."""
    trip_id: str
    trip_title: str
    coverage: CoverageSummary
    ready_roster: List[RosterMember]
    pending_coverage: List[RosterMember]
    covered_count: int
    pending_count: int
    eligible_pending_count: int
    unassigned_seats: int
    held_count: int
    spot_price_cents: int


class AllocateRequest(BaseModel):
    member_id: str


class ReleaseRequest(BaseModel):
    member_id: str
    reason: Optional[str] = None
    hold: bool = False  # réserver la place au voyageur au lieu de la rendre au pool

    @field_validator("reason")
    @classmethod
    def reason_stripped(cls, v: Optional[str]) -> Optional[str]:
        return (v.strip() or None) if v is not None else None


class TransferRequest(BaseModel):
    from_member_id: str
    to_member_id: str
