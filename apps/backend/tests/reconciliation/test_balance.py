"""Remaining-amount aggregation over live payment rows."""

from src.services.balance import (
    get_paid_amount,
    get_remaining_amount,
    get_remaining_amounts,
    remaining_from,
)
from tests.factories import InvoiceFactory, PaymentFactory


def test_remaining_from_can_go_negative() -> None:
    assert remaining_from(100_000, 30_000) == 70_000
    assert remaining_from(100_000, 120_000) == -20_000


async def test_paid_amount_is_zero_without_payments(db, organization) -> None:
    invoice = await InvoiceFactory.create_async(db, organization_id=organization.id)

    assert await get_paid_amount(db, invoice.id) == 0
    assert await get_remaining_amount(db, invoice) == invoice.total


async def test_remaining_amount_sums_partial_payments(db, organization) -> None:
    invoice = await InvoiceFactory.create_async(db, organization_id=organization.id, total=121_000)
    await PaymentFactory.create_async(db, invoice_id=invoice.id, amount=21_000)
    await PaymentFactory.create_async(db, invoice_id=invoice.id, amount=50_000)

    assert await get_paid_amount(db, invoice.id) == 71_000
    assert await get_remaining_amount(db, invoice) == 50_000


async def test_remaining_amount_reflects_new_payment_immediately(db, organization) -> None:
    invoice = await InvoiceFactory.create_async(db, organization_id=organization.id, total=100_000)
    assert await get_remaining_amount(db, invoice) == 100_000

    await PaymentFactory.create_async(db, invoice_id=invoice.id, amount=60_000)

    assert await get_remaining_amount(db, invoice) == 40_000


async def test_remaining_amounts_grouped(db, organization) -> None:
    paid = await InvoiceFactory.create_async(db, organization_id=organization.id, total=100_000)
    unpaid = await InvoiceFactory.create_async(db, organization_id=organization.id, total=50_000)
    await PaymentFactory.create_async(db, invoice_id=paid.id, amount=100_000)

    remaining = await get_remaining_amounts(db, [paid, unpaid])

    assert remaining == {paid.id: 0, unpaid.id: 50_000}


async def test_remaining_amounts_empty_input(db) -> None:
    assert await get_remaining_amounts(db, []) == {}
