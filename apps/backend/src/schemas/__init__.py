from src.schemas.banking import (
    AutoMatchRequest,
    AutoMatchResponse,
    BankTransactionImportItem,
    BankTransactionImportRequest,
    BankTransactionResponse,
    ImportResponse,
    InvoiceSummary,
    MatchRequest,
    MatchResponse,
    MatchSuggestionResponse,
    TransactionPageResponse,
    UnmatchResponse,
)
from src.schemas.base import BaseResponse, ListResponse

__all__ = [
    "AutoMatchRequest",
    "AutoMatchResponse",
    "BankTransactionImportItem",
    "BankTransactionImportRequest",
    "BankTransactionResponse",
    "BaseResponse",
    "ImportResponse",
    "InvoiceSummary",
    "ListResponse",
    "MatchRequest",
    "MatchResponse",
    "MatchSuggestionResponse",
    "TransactionPageResponse",
    "UnmatchResponse",
]
