"""Pydantic schemas for banking reconciliation API."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from src.models import InvoiceStatus
from src.schemas.base import BaseResponse


class BankTransactionResponse(BaseResponse):
    """Bank transaction as returned by the API. Amount in minor units."""

    id: UUID
    bank_account_id: UUID
    external_id: str
    txn_date: date
    amount: int
    currency: str
    counterparty_name: str | None
    counterparty_account: str | None
    variable_symbol: str | None
    description: str | None
    matched_payment_id: UUID | None
    created_at: datetime


class TransactionPageResponse(BaseModel):
    """One page of an account's transactions; pass ``next_cursor`` back as ``cursor``."""

    items: list[BankTransactionResponse]
    next_cursor: UUID | None


class InvoiceSummary(BaseResponse):
    """Summary of an invoice offered as a match."""

    id: UUID
    number: str
    currency: str
    total: int
    due_date: date
    variable_symbol: str | None
    status: InvoiceStatus


class MatchSuggestionResponse(BaseModel):
    invoice: InvoiceSummary
    score: int
    reason: str


class MatchRequest(BaseModel):
    """Request body to match a transaction to an invoice."""

    invoice_id: UUID


class MatchResponse(BaseModel):
    payment_id: UUID
    new_status: InvoiceStatus


class UnmatchResponse(BaseModel):
    new_status: InvoiceStatus


class AutoMatchRequest(BaseModel):
    """Request body to run auto-matching, optionally for one bank account."""

    account_id: UUID | None = None


class AutoMatchResponse(BaseModel):
    matched_count: int


class BankTransactionImportItem(BaseModel):
    """One bank-feed transaction to import."""

    external_id: str = Field(min_length=1, max_length=100)
    txn_date: date
    amount: int
    currency: str = Field(min_length=3, max_length=3)
    counterparty_name: str | None = Field(default=None, max_length=255)
    counterparty_account: str | None = Field(default=None, max_length=64)
    variable_symbol: str | None = Field(default=None, max_length=20)
    description: str | None = None


class BankTransactionImportRequest(BaseModel):
    items: list[BankTransactionImportItem] = Field(max_length=1000)


class ImportResponse(BaseModel):
    created: int
    skipped: int
