"""
Error types raised by the store, the ledger and the collaborators.
"""
from typing import Dict, List


class StoreError(Exception):
    """Base error for document store failures."""
    pass


class DocumentNotFoundError(StoreError):
    """Raised when an update or lookup targets a document that doesn't exist."""
    pass


class LedgerError(Exception):
    """Raised when a ledger operation is called with an invalid target."""
    pass


class ValidationError(LedgerError):
    """Raised when form input is rejected; carries one message per field."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class PriceLookupError(LedgerError):
    """Raised when the prices needed to stamp an entry could not be fetched."""

    def __init__(self, message: str, details: List[str] = None):
        self.details = list(details or [])
        if self.details:
            message = f"{message}: {' '.join(self.details)}"
        super().__init__(message)


class AdvisorError(Exception):
    """Raised when the yield analysis can't be produced."""
    pass
