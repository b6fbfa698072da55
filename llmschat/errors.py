from __future__ import annotations


class ChatError(Exception):
    """Base class for errors surfaced to the user as a system message."""


class ConfigurationError(ChatError):
    """Raised when no provider, model, or credential has been configured."""


class UnsupportedProviderError(ChatError):
    """Raised when the stored provider name has no registered client."""

    def __init__(self, provider_name: str) -> None:
        super().__init__(f"unsupported provider: {provider_name}")
        self.provider_name = provider_name


class ProviderConstructionError(ChatError):
    """Raised when the provider SDK rejects the client configuration."""


class ProviderError(ChatError):
    """Raised when the provider API call fails."""


class HistoryError(ChatError):
    """Raised when conversation history cannot be written or read."""
