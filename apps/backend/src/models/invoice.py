"""Invoice, contact and payment models (fields used by reconciliation)."""

from datetime import UTC, date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, Date, DateTime, ForeignKey, String, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database import Base
from src.models.base import OrganizationOwnedMixin, TimestampMixin, UUIDMixin


class InvoiceStatus(str, Enum):
    """Invoice lifecycle and payment status."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    OVERDUE = "OVERDUE"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


# Invoices in these states can be settled by a bank transaction
PAYABLE_STATUSES = frozenset(
    {
        InvoiceStatus.SENT,
        InvoiceStatus.VIEWED,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.PARTIALLY_PAID,
    }
)

# Never take payments, not even a forced match
UNMATCHABLE_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED})


class PaymentMethod(str, Enum):
    """How a payment was settled."""

    BANK_TRANSFER = "BANK_TRANSFER"
    CARD = "CARD"
    CASH = "CASH"
    OTHER = "OTHER"


class Contact(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """Customer or supplier."""

    __tablename__ = "contacts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Invoice(Base, UUIDMixin, OrganizationOwnedMixin, TimestampMixin):
    """Issued invoice. Reconciliation only writes ``status`` and ``paid_at``."""

    __tablename__ = "invoices"

    contact_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("contacts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    number: Mapped[str] = mapped_column(String(50), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    # Minor currency units
    total: Mapped[int] = mapped_column(BigInteger, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    variable_symbol: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(InvoiceStatus, name="invoice_status_enum"),
        default=InvoiceStatus.DRAFT,
        nullable=False,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    contact: Mapped["Contact | None"] = relationship("Contact")
    payments: Mapped[list["Payment"]] = relationship(
        "Payment",
        back_populates="invoice",
    )


class Payment(Base, UUIDMixin):
    """One settlement event against one invoice."""

    __tablename__ = "payments"

    invoice_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    paid_at: Mapped[date] = mapped_column(Date, nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, name="payment_method_enum"),
        default=PaymentMethod.BANK_TRANSFER,
        nullable=False,
    )
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    invoice: Mapped["Invoice"] = relationship(
        "Invoice",
        back_populates="payments",
    )
