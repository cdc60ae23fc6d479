"""
Exceptions raised by the swap engine.

Every failure path surfaces one of these to the caller. None of them is
retried inside the engine: each reflects either bad input or a precondition
that only an outside event (more blocks, more funds) can satisfy.
"""

from __future__ import annotations


class SwapError(Exception):
    """Base class for all swap engine errors."""


class InvalidParametersError(SwapError, ValueError):
    """Malformed hash, key, height or fee input. Never retried."""


class DuplicateSwapError(SwapError):
    """A swap record already exists for this payment hash."""

    def __init__(self, payment_hash: str):
        self.payment_hash = payment_hash
        super().__init__(f"Swap already exists for hash {payment_hash}")


class SwapNotFoundError(SwapError):
    """No swap is known for the given hash or address."""


class InvalidPreimageError(SwapError):
    """The preimage does not hash to the swap's payment hash."""


class LockNotExpiredError(SwapError):
    def __init__(self, lock_height: int, current_height: int):
        self.lock_height = lock_height
        self.current_height = current_height
        super().__init__(
            f"Refund not possible before height {lock_height} (current height {current_height})"
        )


class InsufficientFundsError(SwapError):
    def __init__(self, available: int, fee: int, minimum_output: int = 0):
        self.available = available
        self.fee = fee
        self.minimum_output = minimum_output
        super().__init__(
            f"Insufficient funds: have {available} sats, fee {fee} sats, "
            f"minimum output {minimum_output} sats"
        )


class FeeEstimationUnavailableError(SwapError):
    """The fee estimator could not produce a rate. Retry with an explicit rate."""


class ChainQueryError(SwapError):
    """A chain backend call failed. Potentially retryable by the caller."""


class PermissionDeniedError(SwapError):
    """The caller lacks a permission required by the operation."""


class CorruptRecordError(SwapError):
    """A stored swap record cannot be read back or contradicts itself."""
