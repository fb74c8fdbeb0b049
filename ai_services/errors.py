from __future__ import annotations

from dataclasses import dataclass


class AiServicesError(Exception):
    """Base class for errors raised by ai-services."""


class IllegalConfigurationError(AiServicesError):
    """Raised when an AI service or one of its parts is wired incorrectly."""


@dataclass
class ModelProviderError(AiServicesError):
    status_code: int
    message: str

    def __str__(self) -> str:
        return f"{self.status_code}: {self.message}"


class ToolInvocationLimitError(AiServicesError):
    """Raised when the model keeps requesting tools past the configured limit."""


class TokenStreamError(AiServicesError):
    """Raised when a token stream is consumed incorrectly."""
