"""Anthropic completion provider (Messages API)."""

from typing import Any, Dict, List

from deep_synthesis.core.exceptions import AppError, RequestError
from deep_synthesis.core.model_catalog import ANTHROPIC_MODELS
from deep_synthesis.core.providers.base_provider import BaseProvider
from deep_synthesis.schemas.llm import (
    LLMRequest,
    LLMResponse,
    ModelInfo,
    ProviderConfig,
    Usage,
)

ANTHROPIC_CONFIG = ProviderConfig(
    name="Anthropic",
    requires_key=True,
    default_model="claude-3-5-haiku-latest",
    chat_endpoint="https://api.anthropic.com/v1/messages",
    models=ANTHROPIC_MODELS,
)

MODELS_ENDPOINT = "https://api.anthropic.com/v1/models"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(BaseProvider):
    """Anthropic speaks its own dialect: ``x-api-key`` auth, ``content`` blocks.

    Structured output is not requested from this vendor; callers fall back to
    tag-wrapped JSON in the prompt.
    """

    config = ANTHROPIC_CONFIG

    def auth_headers(self, key: str) -> Dict[str, str]:
        return {"x-api-key": key, "anthropic-version": ANTHROPIC_VERSION}

    async def validate_key(self, key: str) -> bool:
        """Format-only check; the first real call confirms the key."""
        if not key or not isinstance(key, str) or len(key.strip()) < 50:
            self.logger.error("Anthropic API key has an invalid format")
            return False
        if not key.startswith("sk-ant-"):
            self.logger.error("Anthropic API key should start with sk-ant-")
            return False
        return True

    def build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "max_tokens": request.max_tokens or 1000,
            "stream": request.stream,
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        return payload

    def parse_response(self, data: Dict[str, Any], request: LLMRequest) -> LLMResponse:
        blocks = data.get("content") or []
        text_blocks = [block.get("text", "") for block in blocks if block.get("type", "text") == "text"]
        if not text_blocks:
            self.logger.error(f"Unexpected Anthropic response format: {str(data)[:500]}")
            raise RequestError("Invalid response format from Anthropic")

        usage = data.get("usage") or {}
        input_tokens = usage.get("input_tokens") or 0
        output_tokens = usage.get("output_tokens") or 0
        return LLMResponse(
            content=text_blocks[0],
            usage=Usage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            model=data.get("model") or request.model or "",
        )

    async def list_available_models(self) -> List[ModelInfo]:
        if not self.api_key:
            return []
        try:
            data = await self._get_json(MODELS_ENDPOINT, self.auth_headers(self.api_key))
            entries = data.get("data") or data.get("models") or []
            return self._filter_catalog(item.get("id") for item in entries)
        except (AppError, ValueError) as e:
            self.logger.warning(
                f"Error fetching Anthropic models, falling back to catalog: {e}",
                extra={"provider": self.name},
            )
            return self.get_models()
