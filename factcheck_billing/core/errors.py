"""
Billing error taxonomy.

All errors are local and synchronous; callers handle them before any
balance mutation is attempted.
"""


class BillingError(Exception):
    """Base class for billing errors."""


class InvalidUsageError(BillingError, ValueError):
    """Raised when usage counts are negative or not integers."""


class NotFoundError(BillingError, LookupError):
    """Raised when a catalog entry or account does not exist."""


class InsufficientPointsError(BillingError):
    """Raised when a balance cannot cover a charge."""

    code = "INSUFFICIENT_POINTS"

    def __init__(self, required: int, balance: int):
        super().__init__(
            f"Insufficient points: {required} required, {balance} available"
        )
        self.required = required
        self.balance = balance
