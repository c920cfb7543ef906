"""Invoice payment-status projection."""

from datetime import UTC, date, datetime

import pytest

from src.models import InvoiceStatus
from src.services.invoice_status import project_invoice_status

NOW = datetime(2024, 3, 15, 10, 30, tzinfo=UTC)
DUE_FUTURE = date(2024, 3, 31)
DUE_PAST = date(2024, 3, 1)


@pytest.mark.parametrize(
    ("paid", "due_date", "expected"),
    [
        (100_000, DUE_FUTURE, InvoiceStatus.PAID),
        (150_000, DUE_FUTURE, InvoiceStatus.PAID),
        (100_000, DUE_PAST, InvoiceStatus.PAID),
        (40_000, DUE_FUTURE, InvoiceStatus.PARTIALLY_PAID),
        (40_000, DUE_PAST, InvoiceStatus.PARTIALLY_PAID),
        (0, DUE_PAST, InvoiceStatus.OVERDUE),
        (0, DUE_FUTURE, InvoiceStatus.SENT),
    ],
)
def test_status_truth_table(paid, due_date, expected) -> None:
    projection = project_invoice_status(total=100_000, paid=paid, due_date=due_date, now=NOW)
    assert projection.status == expected


def test_paid_is_stamped_with_event_time() -> None:
    projection = project_invoice_status(total=100_000, paid=100_000, due_date=DUE_FUTURE, now=NOW)
    assert projection.paid_at == NOW


@pytest.mark.parametrize("paid", [0, 99_999])
def test_paid_at_cleared_when_not_fully_paid(paid) -> None:
    projection = project_invoice_status(total=100_000, paid=paid, due_date=DUE_FUTURE, now=NOW)
    assert projection.paid_at is None


def test_unpaid_on_due_day_is_overdue() -> None:
    projection = project_invoice_status(total=100_000, paid=0, due_date=NOW.date(), now=NOW)
    assert projection.status == InvoiceStatus.OVERDUE


@pytest.mark.parametrize(
    ("now", "expected"),
    [
        (datetime(2024, 3, 15, 0, 0, tzinfo=UTC), InvoiceStatus.SENT),
        (datetime(2024, 3, 15, 0, 0, 1, tzinfo=UTC), InvoiceStatus.OVERDUE),
    ],
)
def test_overdue_starts_after_due_day_midnight(now, expected) -> None:
    projection = project_invoice_status(total=100_000, paid=0, due_date=date(2024, 3, 15), now=now)
    assert projection.status == expected


def test_viewed_invoice_falls_back_to_sent() -> None:
    projection = project_invoice_status(
        total=100_000,
        paid=0,
        due_date=DUE_FUTURE,
        now=NOW,
        previous_status=InvoiceStatus.VIEWED,
    )
    assert projection.status == InvoiceStatus.SENT
    assert projection.changed is True


def test_changed_flag_false_when_status_kept() -> None:
    projection = project_invoice_status(
        total=100_000,
        paid=50_000,
        due_date=DUE_FUTURE,
        now=NOW,
        previous_status=InvoiceStatus.PARTIALLY_PAID,
    )
    assert projection.changed is False
