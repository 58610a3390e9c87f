"""
Typed error taxonomy shared by the tenant registry and the shift ledger.

Services raise only these; raw driver/SQLAlchemy errors are translated by
the persistence adapter in ``core.database`` before they reach a caller.
"""
from typing import Optional


class LedgerError(Exception):
    kind = "error"
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class Unauthenticated(LedgerError):
    kind = "unauthenticated"
    status_code = 401


class Forbidden(LedgerError):
    kind = "forbidden"
    status_code = 403


class LimitExceeded(LedgerError):
    kind = "limit_exceeded"
    status_code = 402

    def __init__(self, plan_name: str, limit: int):
        super().__init__(
            f"Business limit reached. Your {plan_name} plan allows {limit} "
            f"business{'es' if limit != 1 else ''}. Upgrade your plan to create more."
        )
        self.plan_name = plan_name
        self.limit = limit


class DuplicateName(LedgerError):
    kind = "duplicate_name"
    status_code = 409

    def __init__(self, name: str):
        super().__init__(f"A business named '{name}' already exists for your account. Choose a different name.")
        self.name = name


class NotFound(LedgerError):
    kind = "not_found"
    status_code = 404


class InvalidState(LedgerError):
    kind = "invalid_state"
    status_code = 409


class InvalidInput(LedgerError):
    kind = "invalid_input"
    status_code = 422


class PersistenceError(LedgerError):
    kind = "persistence_error"
    status_code = 503
    retryable = True

    def __init__(self, message: str = "The data store is unavailable, try again.", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
