from __future__ import annotations


class BindingError(Exception):
    """Base error for bucketbind.

    ``operation`` names the operation that failed, when there is one.
    """

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation

    def __str__(self) -> str:
        message = super().__str__()
        if self.operation:
            return f"{self.operation}: {message}"
        return message


class ValidationError(BindingError):
    """Raised when a request or a required field is missing or malformed."""


class UnsupportedOperationError(ValidationError):
    pass


class ConfigurationError(ValidationError):
    """Raised when a binding property is missing or malformed."""


class InitializationError(BindingError):
    """Raised when the bucket check fails or the binding is used before init."""


class ProvisioningError(BindingError):
    """Raised when the bucket cannot be created."""


class UploadError(BindingError):
    pass


class RemovalError(BindingError):
    pass


class NotFoundOrReadError(BindingError):
    pass


class SerializationError(BindingError):
    pass


class PresignError(BindingError):
    pass


class ReadError(BindingError):
    """Raised when a chunk of an object cannot be read in full."""
