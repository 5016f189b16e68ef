"""
Error taxonomy for the ledger.

Every computation either returns a complete, internally consistent
result or raises one of these. Nothing returns partial results.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ExpenseValidationError(LedgerError):
    """
    Caller input was rejected before reaching the engine.

    Carries the ValidationResult so the boundary can report every issue.
    """

    def __init__(self, result, message: str = "Expense failed validation"):
        super().__init__(message)
        self.result = result


class ConfigurationError(LedgerError):
    """The roster (or another startup value) is unusable."""
    pass


class DataIntegrityError(LedgerError):
    """
    Stored data contradicts the configuration.

    Raised, for example, when an expense names a payer who is not on
    the roster. The offending records are listed, never dropped.
    """

    def __init__(
        self,
        message: str,
        offending: Optional[list[dict]] = None,
    ):
        super().__init__(message)
        self.offending = offending or []
