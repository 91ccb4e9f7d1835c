"""
Completion backends for mindlink.
Only the OpenAI provider is enabled in this build.
"""

from __future__ import annotations

import logging

from mindlink.backends.base import BaseBackend, BackendResponse
from mindlink.backends.openai_compat import OpenAIBackend
from mindlink.errors import UnsupportedProvider

logger = logging.getLogger(__name__)

# Provider name → backend class
PROVIDERS: dict[str, type[BaseBackend]] = {
    "openai": OpenAIBackend,
}


def create_backend(settings) -> BaseBackend:
    """Instantiate the backend for settings.provider."""
    cls = PROVIDERS.get(settings.provider)
    if cls is None:
        raise UnsupportedProvider(
            f"Provider '{settings.provider}' is not supported "
            f"(available: {', '.join(sorted(PROVIDERS))})"
        )
    backend = cls(api_key=settings.api_key, url=settings.base_url, timeout=settings.timeout)
    logger.debug("Using backend %r for model %s", backend, settings.model)
    return backend


__all__ = [
    "BaseBackend",
    "BackendResponse",
    "OpenAIBackend",
    "PROVIDERS",
    "create_backend",
]
