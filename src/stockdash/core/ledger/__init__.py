"""
Account Ledger.

Owns a user's cash balance and share positions and exposes the
validate/apply operations used by transaction settlement.

Example:
    >>> from decimal import Decimal
    >>> from stockdash.core.ledger import Account, apply_trade, can_afford
    >>> account = Account(user_id="usr_1", balance=Decimal("10000"))
    >>> can_afford(account, "buy", "AAPL", 10, Decimal("150"))
    True
    >>> account = apply_trade(account, "buy", "AAPL", 10, Decimal("150"))
    >>> account.balance
    Decimal('8500')
"""

from stockdash.core.ledger.ledger import (
    AVG_PRICE_QUANTUM,
    MAX_PRICE,
    MAX_QUANTITY,
    PRICE_QUANTUM,
    apply_trade,
    can_afford,
    coerce_trade_type,
    ensure_affordable,
    trade_total,
    validate_trade,
)
from stockdash.core.ledger.models import LEDGER_CONTEXT, Account, Position, TradeType


__all__ = [
    # Models
    "Account",
    "Position",
    "TradeType",
    # Operations
    "apply_trade",
    "can_afford",
    "coerce_trade_type",
    "ensure_affordable",
    "trade_total",
    "validate_trade",
    # Constants
    "AVG_PRICE_QUANTUM",
    "LEDGER_CONTEXT",
    "MAX_PRICE",
    "MAX_QUANTITY",
    "PRICE_QUANTUM",
]
