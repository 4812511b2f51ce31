"""Ledger error taxonomy.

Every error carries the HTTP status the API answers with, so routes can let
them propagate to the single handler registered in ``reserve_ledger.main``.
"""


class LedgerError(Exception):
    status_code = 400
    default_message = "ledger error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ReserveNotFound(LedgerError):
    status_code = 404
    default_message = "no reserve available"


class VaultAlreadyBound(LedgerError):
    status_code = 409
    default_message = "vault already bound to a reserve"


class InvalidCalculator(LedgerError):
    default_message = "invalid calculator address"


class InvalidVault(LedgerError):
    default_message = "invalid vault address"


class InvalidWeight(LedgerError):
    default_message = "invalid vault weight"


class IndexOutOfRange(LedgerError):
    default_message = "vault index out of range"


class CalculationFailure(LedgerError):
    status_code = 502
    default_message = "reserve valuation failed"


class Unauthorized(LedgerError):
    status_code = 403
    default_message = "caller is not the owner"
