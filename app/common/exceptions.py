"""
Typed failures raised by the ledger core.
All of them are ValueErrors carrying a human-readable message, so callers that
only care about "the request was rejected" can keep catching ValueError.
"""


class LedgerError(ValueError):
    """Base class for every failure the transaction and production engines raise."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(LedgerError):
    """A referenced document, recipe, register or warehouse does not exist."""


class CurrencyMismatch(LedgerError):
    """A cash entry currency disagrees with its register or with the document."""


class InvalidState(LedgerError):
    """The operation is not allowed in the document's current lifecycle state."""


class AlreadyConfirmed(InvalidState):
    """Confirm was called on a document that is already confirmed."""


class InsufficientStock(LedgerError):
    """A stock balance cannot cover the quantity an ingredient needs."""

    def __init__(self, product_id: int, product_name: str, required, available):
        self.product_id = product_id
        self.product_name = product_name
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient stock for '{product_name}': need {required}, have {available}"
        )
