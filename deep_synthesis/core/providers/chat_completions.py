"""Shared behaviour for vendors exposing an OpenAI-style chat completions API."""

from typing import Any, Dict, Optional

from deep_synthesis.core.exceptions import ConfigError, RequestError
from deep_synthesis.core.providers.base_provider import BaseProvider
from deep_synthesis.schemas.llm import LLMRequest, LLMResponse, Usage


class ChatCompletionsProvider(BaseProvider):
    """Provider speaking the ``/chat/completions`` dialect.

    Gemini (OpenAI-compatible endpoint), Grok and OpenRouter use it as is;
    OpenAI overrides the token-limit and temperature handling.
    """

    min_key_length: int = 30
    key_prefix: Optional[str] = None
    default_max_tokens: int = 4000
    default_temperature: float = 0.7

    def key_format_valid(self, key: str) -> bool:
        if not key or not isinstance(key, str) or len(key.strip()) < self.min_key_length:
            return False
        if self.key_prefix and not key.startswith(self.key_prefix):
            return False
        return True

    async def validate_key(self, key: str) -> bool:
        """Check key format, then confirm it against the vendor.

        A format-valid key is provisionally accepted when the vendor cannot be
        reached, since connectivity failures say nothing about the key.
        """
        if not self.key_format_valid(key):
            self.logger.error(f"{self.name} API key has an invalid format")
            return False

        try:
            return await super().validate_key(key)
        except ConfigError:
            self.logger.warning(
                f"Could not reach {self.name} to validate key; accepting format-valid key",
                extra={"provider": self.name},
            )
            return True

    def validation_payload(self) -> Dict[str, Any]:
        payload = super().validation_payload()
        payload["max_tokens"] = 5
        return payload

    def build_payload(self, request: LLMRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "max_tokens": request.max_tokens or self.default_max_tokens,
            "temperature": (
                request.temperature
                if request.temperature is not None
                else self.default_temperature
            ),
            "stream": request.stream,
        }
        if request.response_format is not None:
            payload["response_format"] = request.response_format.to_payload()
        return payload

    def parse_response(self, data: Dict[str, Any], request: LLMRequest) -> LLMResponse:
        choices = data.get("choices") or []
        if not choices:
            self.logger.error(f"Unexpected {self.name} response format: {str(data)[:500]}")
            raise RequestError(f"Invalid response format from {self.name}")

        message = choices[0].get("message") or {}
        usage = data.get("usage") or {}
        return LLMResponse(
            content=message.get("content") or "",
            usage=Usage(
                prompt_tokens=usage.get("prompt_tokens") or 0,
                completion_tokens=usage.get("completion_tokens") or 0,
                total_tokens=usage.get("total_tokens") or 0,
            ),
            model=data.get("model") or request.model or "",
        )
