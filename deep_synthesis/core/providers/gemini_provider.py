"""Gemini completion provider via Google's OpenAI-compatible endpoint."""

from deep_synthesis.core.model_catalog import GEMINI_MODELS
from deep_synthesis.core.providers.chat_completions import ChatCompletionsProvider
from deep_synthesis.schemas.llm import ProviderConfig

GEMINI_CONFIG = ProviderConfig(
    name="Gemini",
    requires_key=True,
    default_model="gemini-1.5-flash",
    chat_endpoint="https://generativelanguage.googleapis.com/v1beta/openai/chat/completions",
    models=GEMINI_MODELS,
)


class GeminiProvider(ChatCompletionsProvider):
    config = GEMINI_CONFIG
