"""LLM provider factory."""

import requests

from storyscout.config.settings import LLMConfig
from storyscout.core.exceptions import ConfigurationError

from .base import BaseLLMProvider
from .openrouter import OpenRouterClient


def create_llm_client(config: LLMConfig, session: requests.Session | None = None) -> BaseLLMProvider:
    """Create LLM client based on provider configuration."""
    provider = config.provider.lower()
    if provider == "openrouter":
        return OpenRouterClient.from_config(config, session=session)
    raise ConfigurationError(f"Unknown LLM provider: {config.provider}. Supported providers: 'openrouter'")


__all__ = ["create_llm_client"]
