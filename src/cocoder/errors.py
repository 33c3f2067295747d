"""Application-level exception types for cocoder."""

from __future__ import annotations


class CocoderError(Exception):
    """Base exception for cocoder."""


class ConfigurationError(CocoderError):
    """Base exception for configuration and startup validation errors."""


class WorkspaceNotFoundError(ConfigurationError):
    """Raised when a workspace directory is missing or not absolute."""


class ModelNotConfiguredError(ConfigurationError):
    """Raised when model configuration is missing."""


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when an API key is required but missing."""


class BudgetExceededError(CocoderError):
    """Raised when a session exceeds one of its prompt or token budgets."""

    def __init__(self, message: str, *, budget: str, current: int, limit: int) -> None:
        super().__init__(message)
        self.budget = budget
        self.current = current
        self.limit = limit


class ProtocolError(CocoderError):
    """Raised when model output does not follow the response protocol."""

    def __init__(self, message: str, *, position: int | None = None) -> None:
        super().__init__(message)
        self.position = position


class UnexpectedOutcomeError(CocoderError):
    """Raised when a well-formed response carries an outcome that cannot be handled."""


class EmptyFileContentError(UnexpectedOutcomeError):
    """Raised when the model generates a file without contents."""


class UnsafeOutputPathError(UnexpectedOutcomeError):
    """Raised when a generated filename resolves outside the output directory."""


class ProviderError(CocoderError):
    """Raised when the model provider returns an unusable completion."""
