"""OpenRouter completion provider."""

from typing import Dict, List, Optional

import httpx

from deep_synthesis.core.exceptions import AppError
from deep_synthesis.core.model_catalog import OPENROUTER_MODELS
from deep_synthesis.core.providers.chat_completions import ChatCompletionsProvider
from deep_synthesis.schemas.llm import ModelInfo, ProviderConfig, ProviderSettings

OPENROUTER_CONFIG = ProviderConfig(
    name="OpenRouter",
    requires_key=True,
    default_model="anthropic/claude-3-opus",
    chat_endpoint="https://openrouter.ai/api/v1/chat/completions",
    models=OPENROUTER_MODELS,
)

MODELS_ENDPOINT = "https://openrouter.ai/api/v1/models"


class OpenRouterProvider(ChatCompletionsProvider):
    """Wrapper for the OpenRouter API.

    OpenRouter asks callers to identify themselves through the
    ``HTTP-Referer`` and ``X-Title`` headers.
    """

    config = OPENROUTER_CONFIG

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        timeout: float = 60,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
        referer: str = "http://localhost",
        title: str = "Deep Synthesis",
    ):
        super().__init__(
            settings=settings,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            http_client=http_client,
        )
        self.referer = referer
        self.title = title

    def auth_headers(self, key: str) -> Dict[str, str]:
        headers = super().auth_headers(key)
        headers["HTTP-Referer"] = self.referer
        headers["X-Title"] = self.title
        return headers

    async def list_available_models(self) -> List[ModelInfo]:
        if not self.api_key:
            return []
        try:
            data = await self._get_json(MODELS_ENDPOINT, self.auth_headers(self.api_key))
            return self._filter_catalog(item.get("id") for item in data.get("data") or [])
        except (AppError, ValueError) as e:
            self.logger.warning(
                f"Error fetching OpenRouter models, falling back to catalog: {e}",
                extra={"provider": self.name},
            )
            return self.get_models()
