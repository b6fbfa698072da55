"""Provider clients behind one blocking/streaming contract.

Importing this package registers the built-in providers (OpenAI, Anthropic,
Deepseek); additional vendors register themselves with ``register_provider``.
"""

from .base import ChatClient, ClientOptions
from .registry import (
    build_client_from_settings,
    create_client,
    is_supported,
    register_provider,
    supported_providers,
    unregister_provider,
)
from . import anthropic_client, openai_client  # noqa: F401  (registers providers)

__all__ = [
    "ChatClient",
    "ClientOptions",
    "build_client_from_settings",
    "create_client",
    "is_supported",
    "register_provider",
    "supported_providers",
    "unregister_provider",
]
