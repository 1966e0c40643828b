"""OpenAI completion provider."""

from typing import Any, Dict, List

from deep_synthesis.core.exceptions import AppError
from deep_synthesis.core.model_catalog import OPENAI_MODELS
from deep_synthesis.core.providers.chat_completions import ChatCompletionsProvider
from deep_synthesis.schemas.llm import LLMRequest, ModelInfo, ProviderConfig

OPENAI_CONFIG = ProviderConfig(
    name="OpenAI",
    requires_key=True,
    default_model="o3-mini",
    chat_endpoint="https://api.openai.com/v1/chat/completions",
    models=OPENAI_MODELS,
)

MODELS_ENDPOINT = "https://api.openai.com/v1/models"


def is_reasoning_model(model: str) -> bool:
    """o3 reasoning models reject ``temperature`` and accept ``reasoning_effort``."""
    return "o3-" in (model or "")


class OpenAIProvider(ChatCompletionsProvider):
    config = OPENAI_CONFIG
    key_prefix = "sk-"

    def auth_headers(self, key: str) -> Dict[str, str]:
        headers = super().auth_headers(key)
        if self.settings.organization_id:
            headers["OpenAI-Organization"] = self.settings.organization_id
        return headers

    def validation_payload(self) -> Dict[str, Any]:
        return {
            "model": self.config.default_model,
            "messages": [{"role": "user", "content": "test"}],
            "max_completion_tokens": 5,
        }

    def build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        reasoning = is_reasoning_model(request.model)

        if request.max_tokens:
            payload["max_completion_tokens"] = request.max_tokens
        if request.stream:
            payload["stream"] = True
        if request.temperature is not None and not reasoning:
            payload["temperature"] = request.temperature
        if reasoning:
            payload["reasoning_effort"] = request.reasoning_effort or "medium"
        if request.response_format is not None:
            payload["response_format"] = request.response_format.to_payload()

        self.logger.debug(
            f"OpenAI request for model {request.model}",
            extra={"provider": self.name, "reasoning": reasoning},
        )
        return payload

    async def list_available_models(self) -> List[ModelInfo]:
        if not self.api_key:
            return []
        try:
            data = await self._get_json(MODELS_ENDPOINT, self.auth_headers(self.api_key))
            return self._filter_catalog(item.get("id") for item in data.get("data") or [])
        except (AppError, ValueError) as e:
            self.logger.warning(
                f"Error fetching OpenAI models, falling back to catalog: {e}",
                extra={"provider": self.name},
            )
            return self.get_models()
