from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from deep_synthesis.core.exceptions import AppError
from deep_synthesis.core.model_selection import (
    OutputCapabilities,
    SelectedModel,
    build_response_format,
    get_model_output_capabilities,
    get_user_selected_model,
)
from deep_synthesis.core.provider_registry import ProviderRegistry
from deep_synthesis.schemas.llm import LLMRequest, LLMResponse
from deep_synthesis.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService(ABC):
    """Base class for application services.

    Provides a standardized execution flow with validation and error handling.
    """

    def __init__(self):
        self.logger = LOGGER

    async def execute(self, *args, **kwargs) -> Any:
        """Validate input, run the service and normalize failures.

        Raises:
            AppError: If execution fails; domain errors pass through unchanged
        """
        try:
            self.validate(*args, **kwargs)
            return await self.run(*args, **kwargs)

        except AppError:
            raise

        except Exception as e:
            self.logger.error(
                f"Service execution failed: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__},
            )
            raise AppError(f"Service execution failed: {str(e)}", original_error=e)

    def validate(self, *args, **kwargs):
        """Validate service input.

        Raises:
            ValidationError: If input is invalid
        """
        pass

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        pass


class BaseLLMService(BaseService):
    """Service that issues completions through the user's selected model."""

    def __init__(self, registry: ProviderRegistry, provider_name: str = "openai"):
        super().__init__()
        self.registry = registry
        self.provider_name = provider_name

    def resolve_model(self) -> Tuple[SelectedModel, OutputCapabilities]:
        """Return the selected model and its output capabilities.

        Raises:
            ConfigError: If no usable key or model is configured
        """
        selected = get_user_selected_model(self.registry, self.provider_name)
        return selected, get_model_output_capabilities(selected.model)

    async def complete(
        self,
        prompt: str,
        temperature: float,
        max_tokens: int,
        schema_name: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
        selected: Optional[SelectedModel] = None,
    ) -> LLMResponse:
        """Send one completion; ``schema`` is only requested when the model supports it."""
        if selected is None:
            selected, _ = self.resolve_model()
        capabilities = get_model_output_capabilities(selected.model)
        response_format = None
        if schema_name and schema is not None:
            response_format = build_response_format(capabilities, schema_name, schema)

        self.logger.info(
            f"Requesting completion from {self.provider_name}",
            extra={
                "service": self.__class__.__name__,
                "model": selected.model.id,
                "response_format": response_format.type if response_format else None,
            },
        )
        request = LLMRequest(
            prompt=prompt,
            model=selected.model.id,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format=response_format,
        )
        return await selected.provider.chat(request)
