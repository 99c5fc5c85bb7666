class FitlogError(Exception):
    """Base class for errors surfaced to the user."""


class ConfigurationError(FitlogError):
    """Required credentials or settings are missing."""


class BackendError(FitlogError):
    """A backend call failed; in-memory state is left untouched."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class ValidationError(FitlogError, ValueError):
    """User input was rejected before anything was saved."""
