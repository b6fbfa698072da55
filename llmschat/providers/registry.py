from __future__ import annotations

import logging
from typing import Callable

from ..errors import (
    ChatError,
    ConfigurationError,
    ProviderConstructionError,
    UnsupportedProviderError,
)
from ..storage.catalog import CatalogStore
from ..storage.history import SessionHistory
from .base import ChatClient, ClientOptions

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ClientOptions, SessionHistory], ChatClient]

_REGISTRY: dict[str, ClientFactory] = {}


def register_provider(name: str) -> Callable[[ClientFactory], ClientFactory]:
    def decorator(factory: ClientFactory) -> ClientFactory:
        _REGISTRY[name] = factory
        return factory

    return decorator


def unregister_provider(name: str) -> None:
    _REGISTRY.pop(name, None)


def supported_providers() -> list[str]:
    return sorted(_REGISTRY)


def is_supported(name: str) -> bool:
    return name in _REGISTRY


def create_client(options: ClientOptions, history: SessionHistory) -> ChatClient:
    factory = _REGISTRY.get(options.provider_name)
    if factory is None:
        raise UnsupportedProviderError(options.provider_name)
    if not options.api_key or not options.api_key.strip():
        raise ProviderConstructionError(f"missing API key for {options.provider_name}")
    if not options.model_name:
        raise ConfigurationError("no model selected, please configure your settings first")

    try:
        client = factory(options, history)
    except ChatError:
        raise
    except Exception as exc:
        raise ProviderConstructionError(
            f"failed to create {options.provider_name} client: {exc}"
        ) from exc
    logger.info("Created %s client for model %s", options.provider_name, options.model_name)
    return client


def build_client_from_settings(
    catalog: CatalogStore,
    history: SessionHistory,
    model_name: str | None = None,
    **overrides,
) -> ChatClient:
    """Resolve the saved profile into a client for one conversation.

    ``model_name`` replaces the model stored in settings (the window's model
    selector); ``overrides`` are passed through to :class:`ClientOptions`.
    """

    settings = catalog.get_settings()
    if settings is None:
        raise ConfigurationError("no settings found, please configure your settings first")
    if settings.provider_id is None:
        raise ConfigurationError("no provider selected, please configure your settings first")

    provider = catalog.provider_by_id(settings.provider_id)
    if provider is None:
        raise ConfigurationError(f"provider {settings.provider_id} not found")

    if not model_name:
        model = catalog.model_by_id(settings.model_id) if settings.model_id else None
        if model is None:
            raise ConfigurationError("no model selected, please configure your settings first")
        model_name = model.name

    options = ClientOptions(
        provider_name=provider.name,
        api_key=settings.api_key or "",
        model_name=model_name,
        base_url=overrides.pop("base_url", None) or provider.base_url,
        **overrides,
    )
    return create_client(options, history)
