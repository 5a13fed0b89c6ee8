"""
Transactions Router for the StockDash API.

Endpoints:
- POST / - Submit a trade request (PENDING)
- GET /my - Current user's requests
- GET /all - Every request with user details (admin)
- GET /{id} - One request (owner or admin)
- PUT /{id}/approve - Settle a request (admin)
- PUT /{id}/reject - Reject a request (admin)
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.concurrency import run_in_threadpool

from stockdash.api.deps import (
    AdminUser,
    CurrentUser,
    get_market_data,
    get_settings,
    get_transaction_service,
    get_user_service,
)
from stockdash.api.schemas import (
    AdminTransactionResponse,
    RejectRequest,
    TransactionCreate,
    TransactionResponse,
)
from stockdash.config import Settings
from stockdash.core.errors import NotFoundError, ValidationError
from stockdash.core.ledger import validate_trade
from stockdash.core.transactions import TransactionService
from stockdash.core.users import User, UserService
from stockdash.market import MarketDataProvider


logger = logging.getLogger(__name__)

router = APIRouter()

TransactionsDep = Annotated[TransactionService, Depends(get_transaction_service)]
UsersDep = Annotated[UserService, Depends(get_user_service)]


async def _check_price_deviation(
    market: MarketDataProvider,
    symbol: str,
    price: Decimal,
    max_deviation_pct: Decimal,
) -> None:
    """Reject a client price too far from the live quote."""
    quote = await market.get_quote(symbol)
    if quote.price <= 0:
        return

    deviation = abs(price - quote.price) / quote.price * 100
    if deviation > max_deviation_pct:
        logger.info(
            "Price %s for %s deviates %.2f%% from market %s",
            price,
            symbol,
            deviation,
            quote.price,
        )
        raise ValidationError(
            f"Price {price} deviates more than {max_deviation_pct}% "
            f"from market price {quote.price}"
        )


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def submit_transaction(
    body: TransactionCreate,
    current_user: CurrentUser,
    transactions: TransactionsDep,
    settings: Annotated[Settings, Depends(get_settings)],
    market: Annotated[MarketDataProvider, Depends(get_market_data)],
) -> TransactionResponse:
    """
    Submit a buy or sell request.

    Balance and holdings are checked but not reserved; the request waits
    for an admin decision.
    """
    if settings.max_price_deviation_pct is not None:
        _, price = validate_trade(body.type, body.symbol, body.quantity, body.price)
        await _check_price_deviation(market, body.symbol, price, settings.max_price_deviation_pct)

    transaction = await run_in_threadpool(
        transactions.submit,
        current_user.id,
        body.symbol,
        body.name,
        body.type,
        body.quantity,
        body.price,
    )
    return TransactionResponse.model_validate(transaction)


@router.get("/my", response_model=list[TransactionResponse])
def get_my_transactions(
    current_user: CurrentUser,
    transactions: TransactionsDep,
) -> list[TransactionResponse]:
    """Current user's requests, newest first."""
    return [
        TransactionResponse.model_validate(t)
        for t in transactions.list_for_user(current_user.id)
    ]


@router.get("/all", response_model=list[AdminTransactionResponse])
def get_all_transactions(
    _admin: AdminUser,
    transactions: TransactionsDep,
    users: UsersDep,
) -> list[AdminTransactionResponse]:
    """Every request, newest first, with requester and processor names."""
    cache: dict[str, User | None] = {}

    def lookup(user_id: str | None) -> User | None:
        if user_id is None:
            return None
        if user_id not in cache:
            try:
                cache[user_id] = users.get(user_id)
            except NotFoundError:
                cache[user_id] = None
        return cache[user_id]

    results = []
    for t in transactions.list_all():
        requester = lookup(t.user_id)
        processor = lookup(t.processed_by)
        results.append(
            AdminTransactionResponse.model_validate(
                {
                    **TransactionResponse.model_validate(t).model_dump(),
                    "user_name": requester.name if requester else None,
                    "user_email": requester.email if requester else None,
                    "processed_by_name": processor.name if processor else None,
                }
            )
        )
    return results


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: str,
    current_user: CurrentUser,
    transactions: TransactionsDep,
) -> TransactionResponse:
    """Get one request. Other users' requests are reported as not found."""
    transaction = transactions.get(transaction_id)
    if transaction.user_id != current_user.id and not current_user.is_admin:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return TransactionResponse.model_validate(transaction)


@router.put("/{transaction_id}/approve", response_model=TransactionResponse)
def approve_transaction(
    transaction_id: str,
    admin: AdminUser,
    transactions: TransactionsDep,
) -> TransactionResponse:
    """
    Approve and settle a pending request.

    If the requester can no longer afford it, the request is rejected with
    the reason as its note and a 400 is returned carrying the rejected
    request.
    """
    return TransactionResponse.model_validate(transactions.approve(admin.id, transaction_id))


@router.put("/{transaction_id}/reject", response_model=TransactionResponse)
def reject_transaction(
    transaction_id: str,
    admin: AdminUser,
    transactions: TransactionsDep,
    body: RejectRequest | None = None,
) -> TransactionResponse:
    """Reject a pending request; notes default to "Rejected by admin"."""
    notes = body.notes if body else None
    return TransactionResponse.model_validate(
        transactions.reject(admin.id, transaction_id, notes=notes)
    )
