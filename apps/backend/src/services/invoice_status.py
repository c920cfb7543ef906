"""Invoice payment-status projection."""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time

from src.models import InvoiceStatus


@dataclass(frozen=True)
class StatusProjection:
    """Status and paid timestamp an invoice should carry after a payment change."""

    status: InvoiceStatus
    paid_at: datetime | None
    changed: bool


def project_invoice_status(
    *,
    total: int,
    paid: int,
    due_date: date,
    now: datetime,
    previous_status: InvoiceStatus | None = None,
) -> StatusProjection:
    """Map an invoice's payment totals to its payment status.

    Fully paid (or over-paid) invoices become PAID stamped with ``now``. Partly
    paid ones become PARTIALLY_PAID. With nothing paid the invoice is OVERDUE
    once ``now`` is past the start of the due date (midnight UTC), otherwise
    SENT. An invoice still unpaid during its due day is already OVERDUE.

    ``previous_status`` only feeds ``changed``. An invoice that was VIEWED
    before being paid falls back to SENT, not VIEWED, when its payments are
    removed.
    """
    if paid >= total:
        status, paid_at = InvoiceStatus.PAID, now
    elif paid > 0:
        status, paid_at = InvoiceStatus.PARTIALLY_PAID, None
    elif now > datetime.combine(due_date, time.min, tzinfo=UTC):
        status, paid_at = InvoiceStatus.OVERDUE, None
    else:
        status, paid_at = InvoiceStatus.SENT, None

    return StatusProjection(status=status, paid_at=paid_at, changed=status != previous_status)
