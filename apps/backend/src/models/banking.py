"""Bank account and bank transaction models."""

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, Date, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database import Base
from src.models.base import OrganizationOwnedMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from src.models.invoice import Payment


class BankAccount(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """Bank account whose feed delivers transactions."""

    __tablename__ = "bank_accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    transactions: Mapped[list["BankTransaction"]] = relationship(
        "BankTransaction",
        back_populates="bank_account",
    )


class BankTransaction(Base, UUIDMixin):
    """One posted bank-ledger line.

    Immutable after import except for ``matched_payment_id``, which links the
    transaction to the Payment it was reconciled into.
    """

    __tablename__ = "bank_transactions"
    __table_args__ = (
        UniqueConstraint("bank_account_id", "external_id", name="uq_bank_transactions_account_external_id"),
    )

    bank_account_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bank_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    external_id: Mapped[str] = mapped_column(String(100), nullable=False)

    txn_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    # Minor currency units; positive = credit (incoming)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    counterparty_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    counterparty_account: Mapped[str | None] = mapped_column(String(64), nullable=True)
    variable_symbol: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # At most one transaction per payment
    matched_payment_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("payments.id"),
        nullable=True,
        unique=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    bank_account: Mapped["BankAccount"] = relationship(
        "BankAccount",
        back_populates="transactions",
    )
    matched_payment: Mapped["Payment | None"] = relationship("Payment")
