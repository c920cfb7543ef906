"""Invoice balance aggregation.

Remaining amounts are always computed from the current Payment rows. Nothing
here caches: partial payments accumulate over an invoice's lifetime and a
concurrent match may have added one since the last read.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import Invoice, Payment


def remaining_from(total: int, paid: int) -> int:
    """Return the amount still owed; negative when over-paid."""
    return total - paid


async def get_paid_amount(db: AsyncSession, invoice_id: UUID) -> int:
    """Sum of all payments recorded against an invoice."""
    result = await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.invoice_id == invoice_id)
    )
    return int(result.scalar_one())


async def get_remaining_amount(db: AsyncSession, invoice: Invoice) -> int:
    """Invoice total minus everything paid so far."""
    paid = await get_paid_amount(db, invoice.id)
    return remaining_from(invoice.total, paid)


async def get_remaining_amounts(db: AsyncSession, invoices: Iterable[Invoice]) -> dict[UUID, int]:
    """Remaining amount for each invoice, read with a single grouped query."""
    invoices = list(invoices)
    if not invoices:
        return {}

    result = await db.execute(
        select(Payment.invoice_id, func.sum(Payment.amount))
        .where(Payment.invoice_id.in_([invoice.id for invoice in invoices]))
        .group_by(Payment.invoice_id)
    )
    paid_by_invoice = {invoice_id: int(paid) for invoice_id, paid in result.all()}
    return {invoice.id: remaining_from(invoice.total, paid_by_invoice.get(invoice.id, 0)) for invoice in invoices}
