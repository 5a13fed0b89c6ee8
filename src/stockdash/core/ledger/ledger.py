"""
Account ledger operations.

Answers "can this trade be covered?" and, when told to commit, produces the
account state after the trade. All functions are pure: they never mutate the
Account they are given, which lets the caller persist the result atomically
alongside the transaction status change.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, localcontext

import msgspec

from stockdash.core.errors import (
    InsufficientBalanceError,
    InsufficientHoldingsError,
    ValidationError,
)
from stockdash.core.ledger.models import LEDGER_CONTEXT, Account, Position, TradeType


# Average cost basis precision
AVG_PRICE_QUANTUM = Decimal("0.000001")

# Largest share count a store can hold (signed 64-bit)
MAX_QUANTITY = 2**63 - 1

# Prices are below MAX_PRICE with at most 8 decimal places
MAX_PRICE = Decimal("1000000000000")
PRICE_QUANTUM = Decimal("0.00000001")


def coerce_trade_type(value: TradeType | str) -> TradeType:
    """Convert "buy"/"sell" strings into TradeType."""
    if isinstance(value, TradeType):
        return value
    try:
        return TradeType(value)
    except ValueError:
        raise ValidationError(f"Invalid trade type: {value!r}") from None


def validate_trade(
    trade_type: TradeType | str,
    symbol: str,
    quantity: int,
    price: Decimal,
) -> tuple[TradeType, Decimal]:
    """
    Validate raw trade parameters.

    Args:
        trade_type: "buy" or "sell"
        symbol: Ticker symbol, kept exactly as given
        quantity: Whole number of shares, 1 to MAX_QUANTITY
        price: Price per share, > 0 and < MAX_PRICE, at most 8 decimal places

    Returns:
        The parsed TradeType and the price as a Decimal

    Raises:
        ValidationError: If any parameter is malformed
    """
    parsed = coerce_trade_type(trade_type)

    if not isinstance(symbol, str) or not symbol.strip():
        raise ValidationError("Symbol is required")

    # bool is an int subclass; True shares make no sense
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be a whole number of shares")
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"Quantity must be at most {MAX_QUANTITY}")

    if not isinstance(price, Decimal):
        try:
            price = Decimal(str(price))
        except InvalidOperation:
            raise ValidationError(f"Invalid price: {price!r}") from None
    if not price.is_finite() or price <= 0:
        raise ValidationError("Price must be greater than zero")
    if price >= MAX_PRICE:
        raise ValidationError(f"Price must be less than {MAX_PRICE}")
    if price.quantize(PRICE_QUANTUM) != price:
        raise ValidationError("Price supports at most 8 decimal places")

    return parsed, price


def trade_total(quantity: int, price: Decimal) -> Decimal:
    """Total cash amount of a trade, computed exactly."""
    with localcontext(LEDGER_CONTEXT):
        return quantity * price


def can_afford(
    account: Account,
    trade_type: TradeType | str,
    symbol: str,
    quantity: int,
    price: Decimal,
) -> bool:
    """
    Check whether the account covers the trade.

    Buy: balance >= quantity * price.
    Sell: a position for ``symbol`` exists holding at least ``quantity`` shares.
    """
    if coerce_trade_type(trade_type) is TradeType.BUY:
        return account.balance >= trade_total(quantity, price)

    position = account.position(symbol)
    return position is not None and position.quantity >= quantity


def ensure_affordable(
    account: Account,
    trade_type: TradeType | str,
    symbol: str,
    quantity: int,
    price: Decimal,
) -> None:
    """
    Like can_afford, but raise the specific shortfall.

    Raises:
        InsufficientBalanceError: Buy total exceeds balance
        InsufficientHoldingsError: No position, or not enough shares to sell
    """
    if can_afford(account, trade_type, symbol, quantity, price):
        return

    if coerce_trade_type(trade_type) is TradeType.BUY:
        raise InsufficientBalanceError(
            f"Insufficient balance: need {trade_total(quantity, price)}, "
            f"available {account.balance}"
        )

    position = account.position(symbol)
    held = position.quantity if position else 0
    raise InsufficientHoldingsError(
        f"Insufficient holdings: need {quantity} {symbol}, held {held}"
    )


def apply_trade(
    account: Account,
    trade_type: TradeType | str,
    symbol: str,
    quantity: int,
    price: Decimal,
    now: datetime | None = None,
) -> Account:
    """
    Return the account after settling the trade.

    Buy debits the balance and merges into the position using a weighted
    average cost. Sell credits the balance and shrinks the position, dropping
    it entirely at zero shares. The version is left unchanged; the store bumps
    it on commit.

    Raises:
        InsufficientBalanceError / InsufficientHoldingsError: Re-check failed
        ValidationError: Malformed trade, or a position over MAX_QUANTITY
    """
    parsed, price = validate_trade(trade_type, symbol, quantity, price)
    ensure_affordable(account, parsed, symbol, quantity, price)

    total = trade_total(quantity, price)
    holdings = list(account.holdings)
    index = next(
        (i for i, h in enumerate(holdings) if h.symbol == symbol),
        None,
    )

    with localcontext(LEDGER_CONTEXT):
        if parsed is TradeType.BUY:
            balance = account.balance - total
            if index is None:
                holdings.append(Position(symbol=symbol, quantity=quantity, avg_price=price))
            else:
                existing = holdings[index]
                new_quantity = existing.quantity + quantity
                if new_quantity > MAX_QUANTITY:
                    raise ValidationError(
                        f"Position in {symbol} would exceed {MAX_QUANTITY} shares"
                    )
                avg_price = (existing.cost_basis + total) / new_quantity
                holdings[index] = Position(
                    symbol=symbol,
                    quantity=new_quantity,
                    avg_price=avg_price.quantize(AVG_PRICE_QUANTUM, rounding=ROUND_HALF_EVEN),
                )
        else:
            balance = account.balance + total
            # ensure_affordable guarantees the position exists
            existing = holdings[index]
            remaining = existing.quantity - quantity
            if remaining == 0:
                del holdings[index]
            else:
                holdings[index] = Position(
                    symbol=symbol,
                    quantity=remaining,
                    avg_price=existing.avg_price,
                )

    return msgspec.structs.replace(
        account,
        balance=balance,
        holdings=tuple(holdings),
        updated_at=now or datetime.now(timezone.utc),
    )
