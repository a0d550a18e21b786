# app/core/errors.py
"""
Domain errors of the ledger.

Every error is recoverable and rendered verbatim to the caller by the
exception handlers registered in app.main. StorageUnavailable is the only
infrastructure error.
"""


class LedgerError(Exception):
    code = "LEDGER_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    code = "VALIDATION_ERROR"
    status_code = 422


class NotFound(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class Conflict(LedgerError):
    code = "CONFLICT"
    status_code = 409


class InsufficientStock(LedgerError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, base_code: str, equipment_code: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock of {equipment_code} at {base_code}: "
            f"{available} on hand, {requested} required"
        )
        self.base_code = base_code
        self.equipment_code = equipment_code
        self.available = available
        self.requested = requested


class Forbidden(LedgerError):
    code = "FORBIDDEN"
    status_code = 403


class StorageUnavailable(LedgerError):
    code = "STORAGE_UNAVAILABLE"
    status_code = 503
