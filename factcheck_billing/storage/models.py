"""
Data models for the points ledger.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class TransactionType(Enum):
    """Kinds of balance movement."""
    DEDUCTION = "deduction"
    PURCHASE = "purchase"
    BONUS = "bonus"


@dataclass(frozen=True)
class PointsTransaction:
    """Immutable record of a balance change.
    
    Append-only: once written, a transaction is never modified. Only the
    derived points amount is stored, never the raw usage counts.
    """
    timestamp: datetime
    user_id: str
    type: TransactionType
    amount: int  # Always positive; direction follows from type
    balance_after: int
    description: str = ""
    order_id: Optional[str] = None
