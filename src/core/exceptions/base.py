from typing import Any


class AppException(Exception):
    """Base application exception."""

    code = "app_error"

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found (or owned by another network)."""

    code = "not_found"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id={identifier} not found"
        super().__init__(message=message, status_code=404)


class ValidationError(AppException):
    """Validation error."""

    code = "validation_failed"

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, status_code=422, details=details)


class InvalidTransitionError(AppException):
    """Requested status change is not allowed from the current status."""

    code = "invalid_transition"

    def __init__(self, entity: str, current_status: str, requested_status: str):
        message = f"Invalid {entity} transition from {current_status} to {requested_status}"
        super().__init__(
            message=message,
            status_code=409,
            details={"current_status": current_status, "requested_status": requested_status},
        )
        self.current_status = current_status
        self.requested_status = requested_status


class ConflictError(AppException):
    """Operation conflicts with the current state (double invoicing, lost race, ...)."""

    code = "conflict"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=409, details=details)


class ImmutableRecordError(AppException):
    """Attempt to change a completed or locked wash event."""

    code = "immutable_record"

    def __init__(self, entity: str, entity_id: Any, status: str, fields: list[str]):
        message = f"{entity} {entity_id} is {status} and cannot be modified"
        super().__init__(
            message=message,
            status_code=409,
            details={"status": status, "fields": sorted(fields)},
        )


class ProviderError(AppException):
    """External invoice provider rejected or failed the request."""

    code = "provider_failure"

    def __init__(self, provider: str, error: str | None):
        self.provider = provider
        self.error = error or "Unknown provider error"
        super().__init__(
            message=f"Invoice provider '{provider}' failed: {self.error}",
            status_code=502,
            details={"provider": provider, "error": self.error},
        )
