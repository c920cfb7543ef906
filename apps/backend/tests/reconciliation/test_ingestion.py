"""Bank-feed import with de-duplication by external id."""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import select

from src.models import BankTransaction
from src.services.ingestion import BankTransactionData, import_bank_transactions
from src.services.reconciliation import BankAccountNotFoundError
from tests.factories import BankAccountFactory, BankTransactionFactory


def feed_item(external_id: str, **kwargs) -> BankTransactionData:
    defaults = {
        "txn_date": date(2024, 3, 10),
        "amount": 121_000,
        "currency": "CZK",
    }
    defaults.update(kwargs)
    return BankTransactionData(external_id=external_id, **defaults)


async def test_import_creates_transactions(db, organization) -> None:
    account = await BankAccountFactory.create_async(db, organization_id=organization.id)
    items = [
        feed_item("FIO-1", variable_symbol="20260001", counterparty_name="Acme Trading"),
        feed_item("FIO-2", amount=-2_500, description="Bank fee"),
    ]

    result = await import_bank_transactions(db, organization.id, account.id, items)

    assert (result.created, result.skipped) == (2, 0)
    rows = (await db.execute(select(BankTransaction).order_by(BankTransaction.external_id))).scalars().all()
    assert [row.external_id for row in rows] == ["FIO-1", "FIO-2"]
    assert rows[0].variable_symbol == "20260001"
    assert rows[0].matched_payment_id is None
    assert rows[1].amount == -2_500


async def test_import_skips_known_and_repeated_external_ids(db, organization) -> None:
    account = await BankAccountFactory.create_async(db, organization_id=organization.id)
    existing = await BankTransactionFactory.create_async(
        db, bank_account_id=account.id, external_id="FIO-1", amount=5_000
    )

    result = await import_bank_transactions(
        db,
        organization.id,
        account.id,
        [feed_item("FIO-1"), feed_item("FIO-2"), feed_item("FIO-2", amount=1)],
    )

    assert (result.created, result.skipped) == (1, 2)
    assert existing.amount == 5_000


async def test_same_external_id_allowed_on_another_account(db, organization) -> None:
    first = await BankAccountFactory.create_async(db, organization_id=organization.id)
    second = await BankAccountFactory.create_async(db, organization_id=organization.id)
    await BankTransactionFactory.create_async(db, bank_account_id=first.id, external_id="FIO-1")

    result = await import_bank_transactions(db, organization.id, second.id, [feed_item("FIO-1")])

    assert result.created == 1


async def test_import_empty_batch(db, organization) -> None:
    account = await BankAccountFactory.create_async(db, organization_id=organization.id)

    result = await import_bank_transactions(db, organization.id, account.id, [])

    assert (result.created, result.skipped) == (0, 0)


async def test_import_into_foreign_account_not_found(db, organization, other_organization) -> None:
    foreign_account = await BankAccountFactory.create_async(db, organization_id=other_organization.id)

    with pytest.raises(BankAccountNotFoundError):
        await import_bank_transactions(db, organization.id, foreign_account.id, [feed_item("FIO-1")])
    with pytest.raises(BankAccountNotFoundError):
        await import_bank_transactions(db, organization.id, uuid4(), [feed_item("FIO-1")])
