# app/services/errors.py
#
# Ledger Errors
# Exception types raised by the ledger engine. Missing rates and degraded
# rebases are not errors: they are logged and reported through return values.


class LedgerError(Exception):
    """Base class for every error raised by the ledger engine."""


class InvalidTransactionError(LedgerError, ValueError):
    """A transaction field is missing or out of range."""


class TransactionNotFoundError(LedgerError, KeyError):
    """No transaction with the given id exists in the ledger."""

    def __init__(self, tx_id: str):
        super().__init__(tx_id)
        self.tx_id = tx_id

    def __str__(self) -> str:
        return f"Transaction not found: {self.tx_id}"


class InvalidRateError(LedgerError, ValueError):
    """A manual rate edit would break the currency table."""


class LedgerUnavailableError(LedgerError):
    """An operation was asked to run without any ledger state."""


class RateSourceUnavailableError(LedgerError):
    """A rate provider could not deliver a usable rate table."""


class InvalidImportRecordError(LedgerError, ValueError):
    """One imported record failed shape validation."""


class InvalidImportFileError(LedgerError, ValueError):
    """An imported file cannot be read as a whole (unknown layout, bad JSON)."""
