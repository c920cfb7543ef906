"""Banking reconciliation API router.

Service errors (``ReconciliationError``) are translated to HTTP responses by
the application-level handler in ``src.main``.
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from src.deps import CurrentOrganizationId, DbSession
from src.logger import get_logger
from src.schemas import (
    AutoMatchRequest,
    AutoMatchResponse,
    BankTransactionImportRequest,
    BankTransactionResponse,
    ImportResponse,
    InvoiceSummary,
    ListResponse,
    MatchRequest,
    MatchResponse,
    MatchSuggestionResponse,
    TransactionPageResponse,
    UnmatchResponse,
)
from src.services import BankTransactionData, ReconciliationEngine, import_bank_transactions

router = APIRouter(prefix="/banking", tags=["banking"])
logger = get_logger(__name__)


@router.get("/transactions/unmatched", response_model=ListResponse[BankTransactionResponse])
async def list_unmatched_transactions(
    db: DbSession,
    organization_id: CurrentOrganizationId,
    account_id: UUID | None = None,
    limit: int = Query(50, ge=1, le=100),
) -> ListResponse[BankTransactionResponse]:
    """List unmatched incoming transactions, newest first."""
    engine = ReconciliationEngine(db, organization_id)
    transactions = await engine.get_unmatched_transactions(account_id=account_id, limit=limit)
    items = [BankTransactionResponse.model_validate(txn) for txn in transactions]
    return ListResponse[BankTransactionResponse](items=items, total=len(items))


@router.get("/accounts/{account_id}/transactions", response_model=TransactionPageResponse)
async def list_account_transactions(
    account_id: UUID,
    db: DbSession,
    organization_id: CurrentOrganizationId,
    limit: int = Query(50, ge=1, le=100),
    cursor: UUID | None = None,
) -> TransactionPageResponse:
    """List every transaction of an account, newest first, one page at a time."""
    engine = ReconciliationEngine(db, organization_id)
    page = await engine.get_transactions(account_id, limit=limit, cursor=cursor)
    return TransactionPageResponse(
        items=[BankTransactionResponse.model_validate(txn) for txn in page.items],
        next_cursor=page.next_cursor,
    )


@router.get("/transactions/{transaction_id}/suggestions", response_model=list[MatchSuggestionResponse])
async def get_match_suggestions(
    transaction_id: UUID,
    db: DbSession,
    organization_id: CurrentOrganizationId,
) -> list[MatchSuggestionResponse]:
    """Ranked invoice suggestions for a transaction."""
    engine = ReconciliationEngine(db, organization_id)
    candidates = await engine.suggest_matches(transaction_id)
    return [
        MatchSuggestionResponse(
            invoice=InvoiceSummary.model_validate(candidate.invoice),
            score=candidate.score,
            reason=candidate.reason,
        )
        for candidate in candidates
    ]


@router.post("/transactions/{transaction_id}/match", response_model=MatchResponse)
async def match_transaction(
    transaction_id: UUID,
    payload: MatchRequest,
    db: DbSession,
    organization_id: CurrentOrganizationId,
) -> MatchResponse:
    """Record a transaction as a payment of the chosen invoice."""
    engine = ReconciliationEngine(db, organization_id)
    result = await engine.match_transaction(transaction_id, payload.invoice_id)
    await db.commit()
    return MatchResponse(payment_id=result.payment_id, new_status=result.new_status)


@router.post("/transactions/{transaction_id}/unmatch", response_model=UnmatchResponse)
async def unmatch_transaction(
    transaction_id: UUID,
    db: DbSession,
    organization_id: CurrentOrganizationId,
) -> UnmatchResponse:
    """Undo a match: delete its payment and re-derive the invoice status."""
    engine = ReconciliationEngine(db, organization_id)
    result = await engine.unmatch_transaction(transaction_id)
    await db.commit()
    return UnmatchResponse(new_status=result.new_status)


@router.post("/auto-match", response_model=AutoMatchResponse)
async def auto_match(
    db: DbSession,
    organization_id: CurrentOrganizationId,
    payload: AutoMatchRequest | None = None,
) -> AutoMatchResponse:
    """Match every unmatched transaction whose variable symbol settles a payable invoice."""
    account_id = payload.account_id if payload else None
    engine = ReconciliationEngine(db, organization_id)
    result = await engine.auto_match_transactions(account_id=account_id)
    await db.commit()
    return AutoMatchResponse(matched_count=result.matched_count)


@router.post(
    "/accounts/{account_id}/transactions",
    response_model=ImportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def import_transactions(
    account_id: UUID,
    payload: BankTransactionImportRequest,
    db: DbSession,
    organization_id: CurrentOrganizationId,
) -> ImportResponse:
    """Import transactions delivered by a bank feed; known external ids are skipped."""
    items = [BankTransactionData(**item.model_dump()) for item in payload.items]
    result = await import_bank_transactions(db, organization_id, account_id, items)
    await db.commit()
    return ImportResponse(created=result.created, skipped=result.skipped)
