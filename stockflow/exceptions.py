"""
Exceptions for Stockflow.

Every error is a MovementError with a structured code for programmatic
handling. Subclasses narrow the code so callers can catch by type.
"""

from typing import Any


class MovementError(Exception):
    """
    Structured exception for stock and movement operations.

    Usage:
        try:
            movements.finalize_delivery(doc.pk)
        except InsufficientStockError as e:
            print(f"Only {e.available} available in warehouse {e.data['warehouse']}")

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data (offending ids, line numbers, quantities)
    """

    default_code = 'MOVEMENT_ERROR'

    _default_messages = {
        'MOVEMENT_ERROR': 'Stock movement failed',
        'VALIDATION': 'Invalid movement data',
        'INVALID_QUANTITY': 'Invalid quantity',
        'NOT_FOUND': 'Object not found',
        'INSUFFICIENT_STOCK': 'Not enough stock available',
        'ALREADY_FINALIZED': 'Document is already finalized',
        'BUSY': 'Stock is busy, try again',
    }

    def __init__(self, message: str | None = None, *, code: str | None = None, **data: Any):
        self.code = code or self.default_code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(self.message)

    @property
    def available(self) -> int:
        """Shortcut for data['available']."""
        return self.data.get('available', 0)

    @property
    def requested(self) -> int:
        """Shortcut for data['requested']."""
        return self.data.get('requested', 0)

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: v if isinstance(v, (int, str, bool, type(None), list)) else str(v)
                for k, v in self.data.items()
            },
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code!r}, {self.data!r})"


class ValidationError(MovementError):
    """Malformed input, rejected before anything is persisted."""

    default_code = 'VALIDATION'


class InvalidQuantityError(ValidationError):
    """Quantity is not an integer in the allowed range."""

    default_code = 'INVALID_QUANTITY'


class NotFoundError(MovementError):
    """Unknown document, product or warehouse id."""

    default_code = 'NOT_FOUND'


class InsufficientStockError(MovementError):
    """Requested quantity exceeds what the warehouse holds."""

    default_code = 'INSUFFICIENT_STOCK'


class AlreadyFinalizedError(MovementError):
    """Finalize called on a document that is no longer a draft."""

    default_code = 'ALREADY_FINALIZED'


class BusyError(MovementError):
    """Stock locks could not be acquired in time. Nothing was changed."""

    default_code = 'BUSY'
