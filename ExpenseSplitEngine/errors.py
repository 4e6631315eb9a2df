"""
Errors Module

Typed failures raised by the split engine. Every error is local to the call
that raised it; the engine performs no I/O and never retries.

Classes:
    SplitError: Base class for all split engine errors.
    InvalidInput: Malformed arguments (also a ValueError).
    NotFound: Unknown participant or group id (also a LookupError).
    InvalidOperation: Operation not allowed in the current state.
    NoParticipants: Commit attempted with nobody selected.
    SplitMismatch: Commit attempted while the split does not add up.
"""

from decimal import Decimal


class SplitError(Exception):
    """Base class for split engine errors."""


class InvalidInput(SplitError, ValueError):
    """Negative or non-finite amounts, empty member lists, bad field values."""


class NotFound(SplitError, LookupError):
    """An operation referenced an id that does not exist."""


class InvalidOperation(SplitError):
    """A field was set under a strategy that does not use it, or the split is already committed."""


class NoParticipants(SplitError):
    """Commit attempted with zero selected participants."""

    def __init__(self, message: str = "At least one participant must be selected"):
        super().__init__(message)


class SplitMismatch(SplitError):
    """
    Commit attempted while the computed amounts do not add up to the total.

    Attributes:
        sum_amount (Decimal): Sum of the selected participants' computed amounts.
        total_amount (Decimal): The expense total.
    """

    def __init__(self, sum_amount: Decimal, total_amount: Decimal, message: str | None = None):
        self.sum_amount = sum_amount
        self.total_amount = total_amount
        if message is None:
            message = f"Split amounts add up to {sum_amount}, expected {total_amount}"
        super().__init__(message)

    @property
    def difference(self) -> Decimal:
        """Amount still to assign (negative when over-assigned)."""
        return self.total_amount - self.sum_amount
