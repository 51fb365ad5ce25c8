from src.core.exceptions.base import (
    AppException,
    NotFoundError,
    ValidationError,
    InvalidTransitionError,
    ConflictError,
    ImmutableRecordError,
    ProviderError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "InvalidTransitionError",
    "ConflictError",
    "ImmutableRecordError",
    "ProviderError",
]
