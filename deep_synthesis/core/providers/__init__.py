"""Completion providers, one per LLM vendor."""

from deep_synthesis.core.providers.anthropic_provider import AnthropicProvider
from deep_synthesis.core.providers.base_provider import BaseProvider
from deep_synthesis.core.providers.gemini_provider import GeminiProvider
from deep_synthesis.core.providers.grok_provider import GrokProvider
from deep_synthesis.core.providers.openai_provider import OpenAIProvider
from deep_synthesis.core.providers.openrouter_provider import OpenRouterProvider

PROVIDER_CLASSES = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "grok": GrokProvider,
    "openrouter": OpenRouterProvider,
    "gemini": GeminiProvider,
}

__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "GeminiProvider",
    "GrokProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "PROVIDER_CLASSES",
]
