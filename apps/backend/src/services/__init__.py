"""Services package."""

from src.services.balance import get_paid_amount, get_remaining_amount, get_remaining_amounts
from src.services.ingestion import BankTransactionData, ImportResult, import_bank_transactions
from src.services.invoice_status import StatusProjection, project_invoice_status
from src.services.matching import (
    MatchCandidate,
    MatchCandidateFinder,
    MatchingConfig,
    load_matching_config,
)
from src.services.reconciliation import (
    AlreadyMatchedError,
    AutoMatchResult,
    BankAccountNotFoundError,
    InvoiceNotFoundError,
    InvoiceNotMatchableError,
    MatchResult,
    NotFoundError,
    NotMatchedError,
    ReconciliationEngine,
    ReconciliationError,
    TransactionNotFoundError,
    TransactionPage,
    UnmatchResult,
)

__all__ = [
    "AlreadyMatchedError",
    "AutoMatchResult",
    "BankAccountNotFoundError",
    "BankTransactionData",
    "ImportResult",
    "InvoiceNotFoundError",
    "InvoiceNotMatchableError",
    "MatchCandidate",
    "MatchCandidateFinder",
    "MatchResult",
    "MatchingConfig",
    "NotFoundError",
    "NotMatchedError",
    "ReconciliationEngine",
    "ReconciliationError",
    "StatusProjection",
    "TransactionNotFoundError",
    "TransactionPage",
    "UnmatchResult",
    "get_paid_amount",
    "get_remaining_amount",
    "get_remaining_amounts",
    "import_bank_transactions",
    "load_matching_config",
    "project_invoice_status",
]
