"""SQLAlchemy models package."""

from src.models.banking import BankAccount, BankTransaction
from src.models.invoice import (
    PAYABLE_STATUSES,
    UNMATCHABLE_STATUSES,
    Contact,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
)
from src.models.organization import Organization, User

__all__ = [
    "PAYABLE_STATUSES",
    "UNMATCHABLE_STATUSES",
    "BankAccount",
    "BankTransaction",
    "Contact",
    "Invoice",
    "InvoiceStatus",
    "Organization",
    "Payment",
    "PaymentMethod",
    "User",
]
