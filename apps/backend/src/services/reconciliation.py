"""Bank transaction to invoice reconciliation.

``ReconciliationEngine`` is the only writer of Payment rows created from bank
transactions and of ``BankTransaction.matched_payment_id``. Every payment
mutation runs in ``unit_of_work`` so that the payment, the transaction link
and the invoice status commit or roll back together. The link itself is a
conditional UPDATE, which makes a second concurrent match of the same
transaction fail with ``AlreadyMatchedError`` instead of creating a second
payment.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, tuple_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from src.database import unit_of_work
from src.logger import async_log_timing, get_logger, log_exception
from src.models import (
    PAYABLE_STATUSES,
    UNMATCHABLE_STATUSES,
    BankAccount,
    BankTransaction,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
)
from src.services.balance import get_paid_amount, get_remaining_amount
from src.services.invoice_status import StatusProjection, project_invoice_status
from src.services.matching import (
    MatchCandidate,
    MatchCandidateFinder,
    MatchingConfig,
    load_matching_config,
    within_tolerance,
)

logger = get_logger(__name__)


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    code = "RECONCILIATION_ERROR"


class NotFoundError(ReconciliationError):
    """Entity missing or owned by another organization."""

    code = "NOT_FOUND"


class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: UUID) -> None:
        super().__init__(f"Transaction {transaction_id} not found")


class InvoiceNotFoundError(NotFoundError):
    def __init__(self, invoice_id: UUID) -> None:
        super().__init__(f"Invoice {invoice_id} not found")


class BankAccountNotFoundError(NotFoundError):
    def __init__(self, account_id: UUID) -> None:
        super().__init__(f"Bank account {account_id} not found")


class AlreadyMatchedError(ReconciliationError):
    """Transaction is already linked to a payment."""

    code = "ALREADY_MATCHED"

    def __init__(self, transaction_id: UUID) -> None:
        super().__init__(f"Transaction {transaction_id} is already matched to a payment")


class NotMatchedError(ReconciliationError):
    """Transaction is not linked to any payment."""

    code = "NOT_MATCHED"

    def __init__(self, transaction_id: UUID) -> None:
        super().__init__(f"Transaction {transaction_id} is not matched to any payment")


class InvoiceNotMatchableError(ReconciliationError):
    """Invoice is in a status that never takes payments (DRAFT or CANCELLED)."""

    code = "INVOICE_NOT_MATCHABLE"

    def __init__(self, invoice_id: UUID, status: InvoiceStatus) -> None:
        super().__init__(f"Invoice {invoice_id} is {status.value} and cannot be matched")
        self.status = status


@dataclass(frozen=True)
class MatchResult:
    payment_id: UUID
    new_status: InvoiceStatus


@dataclass(frozen=True)
class UnmatchResult:
    new_status: InvoiceStatus


@dataclass(frozen=True)
class TransactionPage:
    items: list[BankTransaction]
    next_cursor: UUID | None


@dataclass(frozen=True)
class AutoMatchResult:
    matched_count: int


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReconciliationEngine:
    """Reconciliation operations scoped to one organization.

    The session's outer transaction belongs to the caller; the engine only
    opens savepoints and flushes. Commit after a successful call.
    """

    def __init__(
        self,
        db: AsyncSession,
        organization_id: UUID,
        *,
        config: MatchingConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db = db
        self.organization_id = organization_id
        self.config = config or load_matching_config()
        self.clock = clock

    # ------------------------------------------------------------------
    # Scoped lookups
    # ------------------------------------------------------------------

    def _transactions_query(self):
        return (
            select(BankTransaction)
            .join(BankAccount, BankAccount.id == BankTransaction.bank_account_id)
            .where(BankAccount.organization_id == self.organization_id)
        )

    async def get_transaction(self, transaction_id: UUID) -> BankTransaction:
        result = await self.db.execute(self._transactions_query().where(BankTransaction.id == transaction_id))
        transaction = result.scalar_one_or_none()
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    async def get_invoice(self, invoice_id: UUID) -> Invoice:
        result = await self.db.execute(
            select(Invoice).where(Invoice.id == invoice_id).where(Invoice.organization_id == self.organization_id)
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    async def get_bank_account(self, account_id: UUID) -> BankAccount:
        result = await self.db.execute(
            select(BankAccount)
            .where(BankAccount.id == account_id)
            .where(BankAccount.organization_id == self.organization_id)
        )
        account = result.scalar_one_or_none()
        if account is None:
            raise BankAccountNotFoundError(account_id)
        return account

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_unmatched_transactions(
        self,
        account_id: UUID | None = None,
        limit: int = 50,
    ) -> list[BankTransaction]:
        """Unmatched credit transactions, newest first."""
        query = (
            self._transactions_query()
            .where(BankTransaction.matched_payment_id.is_(None))
            .where(BankTransaction.amount > 0)
        )
        if account_id is not None:
            query = query.where(BankTransaction.bank_account_id == account_id)
        query = query.order_by(BankTransaction.txn_date.desc(), BankTransaction.created_at.desc()).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_transactions(
        self,
        account_id: UUID,
        limit: int = 50,
        cursor: UUID | None = None,
    ) -> TransactionPage:
        """All transactions of one account, matched or not, newest first.

        ``cursor`` is the id of the first transaction of the requested page, as
        returned in ``next_cursor`` by the previous page.
        """
        await self.get_bank_account(account_id)
        ordering = (BankTransaction.txn_date, BankTransaction.created_at, BankTransaction.id)

        query = select(BankTransaction).where(BankTransaction.bank_account_id == account_id)
        if cursor is not None:
            anchor = await self.db.get(BankTransaction, cursor)
            if anchor is None or anchor.bank_account_id != account_id:
                raise TransactionNotFoundError(cursor)
            query = query.where(
                tuple_(*ordering) <= tuple_(anchor.txn_date, anchor.created_at, anchor.id)
            )
        query = query.order_by(*(column.desc() for column in ordering)).limit(limit + 1)

        transactions = list((await self.db.execute(query)).scalars().all())
        next_cursor = None
        if len(transactions) > limit:
            next_cursor = transactions.pop().id
        return TransactionPage(items=transactions, next_cursor=next_cursor)

    async def suggest_matches(self, transaction_id: UUID) -> list[MatchCandidate]:
        """Ranked invoice candidates for a transaction (empty when nothing fits)."""
        transaction = await self.get_transaction(transaction_id)
        if transaction.matched_payment_id is not None or transaction.amount <= 0:
            logger.debug(
                "Suggestions skipped for matched or debit transaction",
                transaction_id=str(transaction_id),
            )
            return []

        finder = MatchCandidateFinder(self.db, self.organization_id, config=self.config)
        return await finder.suggest(transaction)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def match_transaction(self, transaction_id: UUID, invoice_id: UUID) -> MatchResult:
        """Record a transaction as a payment of an invoice.

        Amount and currency are not re-validated: any invoice of the
        organization can be chosen, and over-payment is accepted. DRAFT and
        CANCELLED invoices are refused.
        """
        transaction = await self.get_transaction(transaction_id)
        if transaction.matched_payment_id is not None:
            raise AlreadyMatchedError(transaction_id)
        invoice = await self.get_invoice(invoice_id)
        if invoice.status in UNMATCHABLE_STATUSES:
            raise InvoiceNotMatchableError(invoice_id, invoice.status)

        result = await self._apply_match(transaction, invoice)
        logger.info(
            "Transaction matched",
            transaction_id=str(transaction_id),
            invoice_id=str(invoice_id),
            payment_id=str(result.payment_id),
            amount=transaction.amount,
            new_status=result.new_status.value,
        )
        return result

    async def unmatch_transaction(self, transaction_id: UUID) -> UnmatchResult:
        """Remove the payment a transaction was matched into and re-derive the invoice status."""
        transaction = await self.get_transaction(transaction_id)
        payment_id = transaction.matched_payment_id
        if payment_id is None:
            raise NotMatchedError(transaction_id)
        payment = await self.db.get(Payment, payment_id)
        if payment is None:
            raise NotMatchedError(transaction_id)
        invoice = await self.db.get(Invoice, payment.invoice_id)

        async with unit_of_work(self.db):
            await self._lock_invoice(invoice)
            unlinked = await self.db.execute(
                update(BankTransaction)
                .where(BankTransaction.id == transaction.id)
                .where(BankTransaction.matched_payment_id == payment_id)
                .values(matched_payment_id=None)
                .execution_options(synchronize_session=False)
            )
            if unlinked.rowcount != 1:
                raise NotMatchedError(transaction_id)
            await self.db.delete(payment)
            await self.db.flush()
            projection = await self._reproject_invoice(invoice, stamp_paid_at=False)

        set_committed_value(transaction, "matched_payment_id", None)
        logger.info(
            "Transaction unmatched",
            transaction_id=str(transaction_id),
            invoice_id=str(invoice.id),
            payment_id=str(payment_id),
            new_status=projection.status.value,
        )
        return UnmatchResult(new_status=projection.status)

    async def auto_match_transactions(self, account_id: UUID | None = None) -> AutoMatchResult:
        """Match every unmatched credit transaction whose variable symbol settles a payable invoice.

        Transactions are processed oldest first, one at a time. A failure on
        one transaction is logged and skipped; earlier matches are kept.
        """
        if account_id is not None:
            await self.get_bank_account(account_id)

        query = (
            self._transactions_query()
            .where(BankTransaction.matched_payment_id.is_(None))
            .where(BankTransaction.amount > 0)
            .where(BankTransaction.variable_symbol.is_not(None))
        )
        if account_id is not None:
            query = query.where(BankTransaction.bank_account_id == account_id)
        query = query.order_by(BankTransaction.txn_date, BankTransaction.created_at)
        transactions = list((await self.db.execute(query)).scalars().all())

        matched_count = 0
        async with async_log_timing(
            "auto_match_transactions",
            logger=logger,
            organization_id=str(self.organization_id),
            account_id=str(account_id) if account_id else None,
        ) as timing:
            for transaction in transactions:
                transaction_id = transaction.id
                try:
                    if await self._auto_match_one(transaction):
                        matched_count += 1
                except (ReconciliationError, SQLAlchemyError) as exc:
                    log_exception(
                        logger,
                        exc,
                        "Auto-match failed for transaction, continuing",
                        level="warning",
                        transaction_id=str(transaction_id),
                    )
            timing.update(candidates=len(transactions), matched_count=matched_count)

        return AutoMatchResult(matched_count=matched_count)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _auto_match_one(self, transaction: BankTransaction) -> bool:
        async with unit_of_work(self.db):
            result = await self.db.execute(
                select(Invoice)
                .where(Invoice.organization_id == self.organization_id)
                .where(Invoice.variable_symbol == transaction.variable_symbol)
                .where(Invoice.status.in_(PAYABLE_STATUSES))
                .order_by(Invoice.due_date, Invoice.number, Invoice.id)
                .limit(1)
            )
            invoice = result.scalar_one_or_none()
            if invoice is None:
                return False

            remaining = await get_remaining_amount(self.db, invoice)
            if not within_tolerance(transaction.amount, remaining, self.config):
                logger.debug(
                    "Auto-match skipped: amount outside tolerance",
                    transaction_id=str(transaction.id),
                    invoice_id=str(invoice.id),
                    amount=transaction.amount,
                    remaining=remaining,
                )
                return False

            match = await self._apply_match(transaction, invoice)

        logger.info(
            "Transaction auto-matched",
            transaction_id=str(transaction.id),
            invoice_id=str(invoice.id),
            payment_id=str(match.payment_id),
            new_status=match.new_status.value,
        )
        return True

    async def _apply_match(self, transaction: BankTransaction, invoice: Invoice) -> MatchResult:
        async with unit_of_work(self.db):
            await self._lock_invoice(invoice)
            payment = Payment(
                invoice_id=invoice.id,
                amount=transaction.amount,
                currency=transaction.currency,
                paid_at=transaction.txn_date,
                method=PaymentMethod.BANK_TRANSFER,
                reference=(
                    transaction.variable_symbol
                    if transaction.variable_symbol is not None
                    else transaction.external_id
                ),
            )
            self.db.add(payment)
            await self.db.flush()

            linked = await self.db.execute(
                update(BankTransaction)
                .where(BankTransaction.id == transaction.id)
                .where(BankTransaction.matched_payment_id.is_(None))
                .values(matched_payment_id=payment.id)
                .execution_options(synchronize_session=False)
            )
            if linked.rowcount != 1:
                raise AlreadyMatchedError(transaction.id)

            projection = await self._reproject_invoice(invoice)

        set_committed_value(transaction, "matched_payment_id", payment.id)
        return MatchResult(payment_id=payment.id, new_status=projection.status)

    async def _lock_invoice(self, invoice: Invoice) -> None:
        # Serializes payment changes per invoice so the paid sum below is current
        await self.db.execute(select(Invoice.id).where(Invoice.id == invoice.id).with_for_update())

    async def _reproject_invoice(self, invoice: Invoice, *, stamp_paid_at: bool = True) -> StatusProjection:
        """Re-derive status and paid_at from the invoice's payments.

        With ``stamp_paid_at=False`` an invoice that stays PAID keeps its
        original settlement time instead of taking the clock's.
        """
        paid = await get_paid_amount(self.db, invoice.id)
        projection = project_invoice_status(
            total=invoice.total,
            paid=paid,
            due_date=invoice.due_date,
            now=self.clock(),
            previous_status=invoice.status,
        )
        keep_settlement = (
            not stamp_paid_at and projection.status is InvoiceStatus.PAID and invoice.paid_at is not None
        )
        invoice.status = projection.status
        if not keep_settlement:
            invoice.paid_at = projection.paid_at
        return projection
