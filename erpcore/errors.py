from __future__ import annotations

from decimal import Decimal


class CoreError(Exception):
    """Base class for errors raised by the accounting and stock core."""


class NotFoundError(CoreError):
    """Raised when a sequence, account, product or document does not exist."""

    def __init__(self, resource: str, key: object) -> None:
        self.resource = resource
        self.key = key
        super().__init__(f"{resource} '{key}' not found")


class InvalidAmountError(CoreError):
    """Raised when an amount or quantity is not strictly positive."""


class UnbalancedJournalError(CoreError):
    """Raised before persistence when journal debits and credits differ."""

    def __init__(self, total_debit: Decimal, total_credit: Decimal) -> None:
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(f"Journal entry not balanced. Debits: {total_debit}, Credits: {total_credit}")


class InsufficientStockError(CoreError):
    """Raised when FIFO consumption would leave a shortage and the caller blocks on it."""

    def __init__(self, product_id: object, requested: Decimal, available: Decimal) -> None:
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.shortage = requested - available
        super().__init__(
            f"Insufficient stock for product '{product_id}'. Requested: {requested}, available: {available}"
        )


class DuplicateDocumentNumberError(CoreError):
    """Raised when a generated document number keeps colliding after resync."""

    def __init__(self, sequence_name: str, attempts: int) -> None:
        self.sequence_name = sequence_name
        self.attempts = attempts
        super().__init__(
            f"Failed to generate a unique '{sequence_name}' number after {attempts} attempts"
        )


class ConflictError(CoreError):
    """Raised when an operation conflicts with the current state of a document."""


class BusinessRuleError(CoreError):
    """Raised when an orchestrator rule (credit limit, return quantity, ...) rejects the request."""
