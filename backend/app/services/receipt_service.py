"""
Reçu de paiement d'un voyage : instantané figé puis rendu HTML imprimable.

Le document est destiné au client final (assureur américain) : ses libellés
sont en anglais et les montants en dollars.
"""

import logging
from datetime import datetime
from html import escape
from typing import Iterable, Optional

from app.schemas.member import Member
from app.schemas.receipt import ReceiptSnapshot
from app.schemas.trip import Trip
from app.services import coverage_service, ledger_service
from app.services.common import format_usd, load_members, load_trip, now_utc
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

REGION_LABELS = {"DOMESTIC": "Domestic", "INTERNATIONAL": "International"}


def not_covered_reason(member: Member) -> Optional[str]:
    """Premier motif applicable, ou None pour un éligible simplement sans place."""
    if not member.active:
        return "Standby"
    if not member.confirmed:
        return "Not confirmed"
    if member.is_minor and not member.guardian_approved:
        return "No guardian approval"
    return None


def build_receipt_snapshot(
    trip: Trip,
    members: Iterable[Member],
    ledger_balance: int,
    *,
    payment_cents: Optional[int] = None,
    paid_at: Optional[datetime] = None,
    generated_at: Optional[datetime] = None,
) -> ReceiptSnapshot:
    """
    Construit l'instantané du reçu. Fonction pure : mêmes entrées, même reçu
    (à generated_at près, qu'on peut fixer).
    """
    members = list(members)
    coverage = coverage_service.compute_coverage(trip, members, ledger_balance)

    covered_names = []
    not_covered_names = []
    for member in members:
        if member.id in coverage.covered_ids:
            covered_names.append(member.display_name)
            continue
        reason = not_covered_reason(member)
        not_covered_names.append(f"{member.display_name} ({reason})" if reason else member.display_name)

    subtotal = coverage.seat_cost * coverage.covered_count
    return ReceiptSnapshot(
        trip_id=trip.short_id or trip.id,
        title=trip.title or "Mission Assure Trip",
        region=REGION_LABELS.get(trip.region, "Domestic"),
        start_date=trip.start_date,
        end_date=trip.end_date,
        leader_name=trip.leader_name,
        leader_email=trip.leader_email,
        members_count=len(members),
        covered_count=coverage.covered_count,
        covered_names=tuple(covered_names),
        not_covered_names=tuple(not_covered_names),
        seat_cost_cents=coverage.seat_cost,
        subtotal_cents=subtotal,
        credits_cents=ledger_balance,
        balance_due_cents=max(0, subtotal - ledger_balance),
        refund_eligible_cents=max(0, ledger_balance - subtotal),
        payment_cents=payment_cents,
        total_paid_to_date_cents=ledger_balance,
        generated_at=generated_at or now_utc(),
        paid_at=paid_at,
    )


def receipt_for_trip(
    store: RecordStore,
    trip_id: str,
    *,
    payment_cents: Optional[int] = None,
    paid_at: Optional[datetime] = None,
) -> ReceiptSnapshot:
    """Reçu d'un voyage à partir d'une lecture cohérente du store."""
    with store.transaction():
        trip = load_trip(store, trip_id)
        members = load_members(store, trip_id)
        balance = ledger_service.get_ledger_balance(store, trip_id)
    snapshot = build_receipt_snapshot(trip, members, balance, payment_cents=payment_cents, paid_at=paid_at)
    logger.info("Reçu généré pour le voyage %s (%d couverts)", trip_id, snapshot.covered_count)
    return snapshot


def _fmt_date(value) -> str:
    return value.strftime("%m/%d/%Y") if value else ""


def _fmt_datetime(value: datetime) -> str:
    return value.strftime("%m/%d/%Y %H:%M UTC")


def _name_list(names: tuple) -> str:
    if not names:
        return '<li class="muted">None</li>'
    return "".join(f"<li>{escape(name)}</li>" for name in names)


def render_receipt_html(snap: ReceiptSnapshot) -> str:
    """Document HTML autonome, prêt à imprimer. Toutes les valeurs saisies sont échappées."""
    if snap.start_date or snap.end_date:
        period = f"{_fmt_date(snap.start_date)} – {_fmt_date(snap.end_date)}"
    else:
        period = "Dates TBA"

    if snap.paid_in_full:
        paid_state = f"Paid in full as of {_fmt_datetime(snap.generated_at)}"
    else:
        paid_state = f"Partial payment on file as of {_fmt_datetime(snap.generated_at)}"

    leader = ""
    if snap.leader_name:
        leader += f"<div>Leader: {escape(snap.leader_name)}</div>"
    if snap.leader_email:
        leader += f"<div>{escape(snap.leader_email)}</div>"

    payment_today = ""
    if snap.payment_cents is not None:
        payment_today = (
            f'<div class="row"><span class="muted">Payment today</span>'
            f"<span>{format_usd(snap.payment_cents)}</span></div>"
        )
    refund = ""
    if snap.refund_eligible_cents > 0:
        refund = (
            f'<div class="row"><span class="muted">Refund eligible</span>'
            f"<span>{format_usd(snap.refund_eligible_cents)}</span></div>"
        )
    paid_at = f'<div class="small muted">Paid at {_fmt_datetime(snap.paid_at)}</div>' if snap.paid_at else ""

    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Receipt – {escape(snap.title)}</title>
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <style>
    body {{ margin: 24px; font: 14px/1.45 Arial, sans-serif; color: #111; }}
    .header {{ display: flex; justify-content: space-between; border-bottom: 1px solid #e5e7eb;
      padding-bottom: 12px; margin-bottom: 16px; }}
    .brand {{ font-weight: 700; font-size: 16px; color: #00A3B3; }}
    .muted {{ color: #666; }}
    .grid {{ display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }}
    .card {{ border: 1px solid #e5e7eb; border-radius: 8px; padding: 12px; }}
    .row {{ display: flex; justify-content: space-between; margin: 4px 0; }}
    .paid-box {{ border: 2px solid #00A3B3; border-radius: 10px; padding: 12px; margin-top: 8px; }}
    .small {{ font-size: 12px; }}
    .legal {{ margin-top: 16px; font-size: 12px; color: #666; }}
    @media print {{ body {{ margin: 10mm; }} }}
  </style>
</head>
<body>
  <div class="header">
    <div>
      <div class="brand">AGFinancial – Mission Assure</div>
      <h1>Payment Receipt</h1>
      <div class="muted">Trip #{escape(snap.trip_id)}</div>
    </div>
    <div class="small" style="text-align: right;">
      <div><strong>{escape(snap.title)}</strong></div>
      <div>{escape(snap.region)} trip</div>
      <div>{period}</div>
      {leader}
    </div>
  </div>

  <div class="grid">
    <div class="card">
      <div class="row"><span class="muted">Seat price</span><span>{format_usd(snap.seat_cost_cents)}</span></div>
      <div class="row"><span class="muted">Covered travelers</span><span>{snap.covered_count} / {snap.members_count}</span></div>
      <div class="row"><span class="muted">Subtotal</span><span>{format_usd(snap.subtotal_cents)}</span></div>
      <div class="row"><span class="muted">Credits applied</span><span>- {format_usd(snap.credits_cents)}</span></div>
      <div class="row"><strong>Balance due</strong><strong>{format_usd(snap.balance_due_cents)}</strong></div>
      <div class="paid-box">
        <div><strong>{paid_state}</strong></div>
        <div class="row"><span class="muted">Total paid to date</span><span>{format_usd(snap.total_paid_to_date_cents)}</span></div>
        {payment_today}
        {refund}
        {paid_at}
      </div>
    </div>
    <div class="card">
      <div><strong>Covered ({snap.covered_count})</strong></div>
      <ul>{_name_list(snap.covered_names)}</ul>
      <div><strong>Not covered ({len(snap.not_covered_names)})</strong></div>
      <ul>{_name_list(snap.not_covered_names)}</ul>
    </div>
  </div>

  <div class="legal">
    This receipt reflects coverage and payments on file at the time it was generated.
    Coverage applies only to travelers listed as covered.
  </div>
</body>
</html>
"""
