"""
Ledger error types.

Every failure a ledger operation can report is one of these classes. Each
carries a field-keyed error map so the HTTP layer can render it without
inspecting the message text.
"""
from typing import Dict, List, Optional


GENERAL_FIELD = "general"


class LedgerError(Exception):
    """Base class for all ledger errors"""

    code = "LEDGER_ERROR"
    status_code = 500

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors or {GENERAL_FIELD: [message]}

    def to_dict(self) -> Dict[str, List[str]]:
        return {key: list(messages) for key, messages in self.field_errors.items()}


class ValidationError(LedgerError, ValueError):
    """Input failed a business rule; carries per-field messages"""

    code = "VALIDATION_ERROR"
    status_code = 400

    @classmethod
    def field(cls, name: str, message: str) -> "ValidationError":
        return cls(message, {name: [message]})

    @classmethod
    def fields(cls, field_errors: Dict[str, List[str]]) -> "ValidationError":
        first = next(iter(field_errors.values()), ["Validation failed"])
        return cls(first[0] if first else "Validation failed", field_errors)


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource_type: str, resource_id=None):
        if resource_id is None:
            message = f"{resource_type} not found"
        else:
            message = f"{resource_type} with id {resource_id} not found"
        super().__init__(message)
        self.resource_type = resource_type
        self.resource_id = resource_id


class AuthorizationError(LedgerError):
    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str = "You do not have access to this resource"):
        super().__init__(message)


class ConflictError(LedgerError):
    """The operation clashes with the current state (duplicate, already decided, ...)"""

    code = "CONFLICT"
    status_code = 409


class ExternalServiceError(LedgerError):
    """An upstream dependency (the exchange rate provider) failed"""

    code = "EXTERNAL_SERVICE_ERROR"
    status_code = 502

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service


class ConcurrencyError(LedgerError):
    """A row changed underneath us between read and write"""

    code = "CONCURRENCY_ERROR"
    status_code = 409
