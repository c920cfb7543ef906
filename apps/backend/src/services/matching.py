"""Ranked invoice suggestions for an incoming bank transaction.

Candidates come from three ordered strategies (tiers):

1. Variable symbol: payable invoices carrying the transaction's payment
   reference. Scores 100 when the amount is within tolerance of the remaining
   balance, otherwise 80.
2. Amount: only when tier 1 found nothing. Payable invoices in the
   transaction's currency whose remaining balance equals the amount (70) or is
   within tolerance of it (50).
3. Counterparty: while fewer than ``max_suggestions`` candidates exist, payable
   invoices of contacts whose name contains the first word of the
   counterparty name (30).

Each strategy owns its gate (``should_run``) so the tiering policy can be read
and tested on its own. Ranking is a stable sort on score, so ties keep tier
order and then fetch order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.config import settings
from src.logger import get_logger
from src.models import PAYABLE_STATUSES, BankTransaction, Contact, Invoice
from src.services.balance import get_remaining_amounts

logger = get_logger(__name__)


@dataclass(frozen=True)
class MatchingConfig:
    """Runtime configuration for candidate scoring."""

    tolerance_bps: int
    max_suggestions: int
    score_reference_close: int = 100
    score_reference: int = 80
    score_amount_exact: int = 70
    score_amount_close: int = 50
    score_counterparty: int = 30


DEFAULT_CONFIG = MatchingConfig(tolerance_bps=100, max_suggestions=5)


def load_matching_config() -> MatchingConfig:
    """Build the matching configuration from application settings."""
    return MatchingConfig(
        tolerance_bps=settings.reconciliation_tolerance_bps,
        max_suggestions=settings.reconciliation_max_suggestions,
    )


def amount_tolerance(remaining: int, config: MatchingConfig = DEFAULT_CONFIG) -> int:
    """Allowed absolute difference for a remaining amount, rounded up to a whole minor unit."""
    return -(-remaining * config.tolerance_bps // 10_000)


def within_tolerance(amount: int, remaining: int, config: MatchingConfig = DEFAULT_CONFIG) -> bool:
    """Return True if ``amount`` is close enough to ``remaining`` to settle it."""
    return abs(amount - remaining) <= amount_tolerance(remaining, config)


def format_minor_units(amount: int, currency: str) -> str:
    """Render minor units as a decimal amount, e.g. ``1000.00 CZK``."""
    return f"{Decimal(amount).scaleb(-2):.2f} {currency}"


def first_word(value: str | None) -> str | None:
    if not value:
        return None
    words = value.split()
    return words[0] if words else None


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class MatchCandidate:
    """Suggested invoice for a transaction."""

    invoice: Invoice
    score: int
    reason: str
    tier: str


def payable_invoices_query(organization_id: UUID) -> Select[tuple[Invoice]]:
    """Payable invoices of an organization, in a stable fetch order."""
    return (
        select(Invoice)
        .where(Invoice.organization_id == organization_id)
        .where(Invoice.status.in_(PAYABLE_STATUSES))
        .order_by(Invoice.due_date, Invoice.number, Invoice.id)
    )


class MatchStrategy(ABC):
    """One tier of the candidate pipeline."""

    name: str

    @abstractmethod
    def should_run(
        self,
        transaction: BankTransaction,
        found: Sequence[MatchCandidate],
        config: MatchingConfig,
    ) -> bool:
        """Tiering policy: whether this tier runs given what earlier tiers found."""

    @abstractmethod
    async def find_candidates(
        self,
        db: AsyncSession,
        organization_id: UUID,
        transaction: BankTransaction,
        found: Sequence[MatchCandidate],
        config: MatchingConfig,
    ) -> list[MatchCandidate]:
        """Return this tier's candidates in fetch order."""


class VariableSymbolStrategy(MatchStrategy):
    name = "variable_symbol"

    def should_run(self, transaction, found, config) -> bool:
        return bool(transaction.variable_symbol)

    async def find_candidates(self, db, organization_id, transaction, found, config) -> list[MatchCandidate]:
        result = await db.execute(
            payable_invoices_query(organization_id).where(Invoice.variable_symbol == transaction.variable_symbol)
        )
        invoices = result.scalars().all()
        remaining = await get_remaining_amounts(db, invoices)

        candidates = []
        for invoice in invoices:
            close = within_tolerance(transaction.amount, remaining[invoice.id], config)
            candidates.append(
                MatchCandidate(
                    invoice=invoice,
                    score=config.score_reference_close if close else config.score_reference,
                    reason=f"Variable symbol match: {transaction.variable_symbol}",
                    tier=self.name,
                )
            )
        return candidates


class AmountStrategy(MatchStrategy):
    name = "amount"

    def should_run(self, transaction, found, config) -> bool:
        return not found

    async def find_candidates(self, db, organization_id, transaction, found, config) -> list[MatchCandidate]:
        result = await db.execute(
            payable_invoices_query(organization_id).where(Invoice.currency == transaction.currency)
        )
        invoices = result.scalars().all()
        remaining = await get_remaining_amounts(db, invoices)

        candidates = []
        for invoice in invoices:
            invoice_remaining = remaining[invoice.id]
            if transaction.amount == invoice_remaining:
                candidates.append(
                    MatchCandidate(
                        invoice=invoice,
                        score=config.score_amount_exact,
                        reason="Exact amount match",
                        tier=self.name,
                    )
                )
            elif within_tolerance(transaction.amount, invoice_remaining, config):
                formatted = format_minor_units(invoice_remaining, transaction.currency)
                candidates.append(
                    MatchCandidate(
                        invoice=invoice,
                        score=config.score_amount_close,
                        reason=f"Amount close to remaining: {formatted}",
                        tier=self.name,
                    )
                )
        return candidates


class CounterpartyStrategy(MatchStrategy):
    name = "counterparty"

    def should_run(self, transaction, found, config) -> bool:
        return first_word(transaction.counterparty_name) is not None and len(found) < config.max_suggestions

    async def find_candidates(self, db, organization_id, transaction, found, config) -> list[MatchCandidate]:
        token = first_word(transaction.counterparty_name)
        contact_ids = select(Contact.id).where(
            Contact.organization_id == organization_id,
            Contact.name.ilike(f"%{escape_like(token)}%", escape="\\"),
        )
        result = await db.execute(
            payable_invoices_query(organization_id)
            .where(Invoice.contact_id.in_(contact_ids))
            .options(selectinload(Invoice.contact))
        )

        seen = {candidate.invoice.id for candidate in found}
        return [
            MatchCandidate(
                invoice=invoice,
                score=config.score_counterparty,
                reason=f"Contact name match: {invoice.contact.name}",
                tier=self.name,
            )
            for invoice in result.scalars().all()
            if invoice.id not in seen
        ]


DEFAULT_STRATEGIES: tuple[MatchStrategy, ...] = (
    VariableSymbolStrategy(),
    AmountStrategy(),
    CounterpartyStrategy(),
)


def rank_candidates(candidates: Sequence[MatchCandidate], limit: int) -> list[MatchCandidate]:
    """Order by score descending, keeping discovery order for ties, and truncate."""
    return sorted(candidates, key=lambda candidate: candidate.score, reverse=True)[:limit]


class MatchCandidateFinder:
    """Produces ranked invoice suggestions for one unmatched credit transaction."""

    def __init__(
        self,
        db: AsyncSession,
        organization_id: UUID,
        *,
        config: MatchingConfig | None = None,
        strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
    ) -> None:
        self.db = db
        self.organization_id = organization_id
        self.config = config or load_matching_config()
        self.strategies = strategies

    async def suggest(self, transaction: BankTransaction) -> list[MatchCandidate]:
        found: list[MatchCandidate] = []
        for strategy in self.strategies:
            if not strategy.should_run(transaction, found, self.config):
                continue
            tier_candidates = await strategy.find_candidates(
                self.db, self.organization_id, transaction, found, self.config
            )
            found.extend(tier_candidates)
            logger.debug(
                "Match tier evaluated",
                tier=strategy.name,
                transaction_id=str(transaction.id),
                candidates=len(tier_candidates),
            )

        return rank_candidates(found, self.config.max_suggestions)
