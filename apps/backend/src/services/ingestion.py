"""Bank-feed ingestion: store transactions delivered by a bank feed, skipping duplicates."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import unit_of_work
from src.logger import get_logger
from src.models import BankAccount, BankTransaction
from src.services.reconciliation import BankAccountNotFoundError

logger = get_logger(__name__)


@dataclass(frozen=True)
class BankTransactionData:
    """One transaction as delivered by the feed. Amount in minor units, credits positive."""

    external_id: str
    txn_date: date
    amount: int
    currency: str
    counterparty_name: str | None = None
    counterparty_account: str | None = None
    variable_symbol: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class ImportResult:
    created: int
    skipped: int


async def import_bank_transactions(
    db: AsyncSession,
    organization_id: UUID,
    account_id: UUID,
    items: Sequence[BankTransactionData],
) -> ImportResult:
    """Insert new transactions for a bank account.

    Rows whose ``external_id`` is already stored for the account, or repeats
    earlier in the same batch, are counted as skipped. Stored rows are never
    updated.
    """
    result = await db.execute(
        select(BankAccount.id)
        .where(BankAccount.id == account_id)
        .where(BankAccount.organization_id == organization_id)
    )
    if result.scalar_one_or_none() is None:
        raise BankAccountNotFoundError(account_id)

    external_ids = {item.external_id for item in items}
    existing: set[str] = set()
    if external_ids:
        existing_result = await db.execute(
            select(BankTransaction.external_id)
            .where(BankTransaction.bank_account_id == account_id)
            .where(BankTransaction.external_id.in_(external_ids))
        )
        existing = set(existing_result.scalars().all())

    created = 0
    skipped = 0
    async with unit_of_work(db):
        for item in items:
            if item.external_id in existing:
                skipped += 1
                continue
            existing.add(item.external_id)
            db.add(
                BankTransaction(
                    bank_account_id=account_id,
                    external_id=item.external_id,
                    txn_date=item.txn_date,
                    amount=item.amount,
                    currency=item.currency,
                    counterparty_name=item.counterparty_name,
                    counterparty_account=item.counterparty_account,
                    variable_symbol=item.variable_symbol,
                    description=item.description,
                )
            )
            created += 1

    logger.info(
        "Bank transactions imported",
        account_id=str(account_id),
        created=created,
        skipped=skipped,
    )
    return ImportResult(created=created, skipped=skipped)
