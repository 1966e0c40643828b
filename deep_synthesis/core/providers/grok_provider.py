"""Grok (xAI) completion provider."""

from deep_synthesis.core.model_catalog import GROK_MODELS
from deep_synthesis.core.providers.chat_completions import ChatCompletionsProvider
from deep_synthesis.schemas.llm import ProviderConfig

GROK_CONFIG = ProviderConfig(
    name="Grok",
    requires_key=True,
    default_model="grok-2-1212",
    chat_endpoint="https://api.x.ai/v1/chat/completions",
    models=GROK_MODELS,
)


class GrokProvider(ChatCompletionsProvider):
    config = GROK_CONFIG
