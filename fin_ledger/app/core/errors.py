class LedgerError(Exception):
    """Base class for every error raised by the ledger services."""


class LedgerValidationError(LedgerError):
    """Raised when a request is malformed (bad type, non-positive amount, ...)."""


class InvalidTransactionStructureError(LedgerValidationError):
    """Raised when a transaction type is paired with the wrong endpoints."""


class InvalidStatusTransitionError(LedgerValidationError):
    """Raised when a transaction status change is not allowed."""


class InvalidCardError(LedgerValidationError):
    """Raised when card details fail number, CVV or expiry validation."""


class NotFoundError(LedgerError):
    """Raised when a referenced entity does not exist."""


class AccountNotFoundError(NotFoundError):
    """Raised when an account id is missing from the store."""


class CardNotFoundError(NotFoundError):
    """Raised when a card id is missing from the store."""


class TransactionNotFoundError(NotFoundError):
    """Raised when a transaction id is unknown to the requesting user."""


class ForbiddenError(LedgerError):
    """Raised when an account or card belongs to another user."""


class InsufficientFundsError(LedgerError):
    """Raised when a debit would drop a balance below zero."""


class DuplicateIdempotencyKeyError(LedgerError):
    """Raised when the same idempotency key is reused with different input."""


class ConflictError(LedgerError):
    """Raised when an operation clashes with existing state."""


class UnexpectedError(LedgerError):
    """Raised when the backing store fails while a transaction is processed."""
