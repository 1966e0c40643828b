"""Resolve the user's selected model and what output formats it supports."""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from deep_synthesis.core.exceptions import ConfigError
from deep_synthesis.core.provider_registry import ProviderRegistry
from deep_synthesis.core.providers import BaseProvider
from deep_synthesis.schemas.llm import ModelInfo, ProviderSettings, ResponseFormat
from deep_synthesis.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class SelectedModel:
    provider: BaseProvider
    settings: ProviderSettings
    model: ModelInfo


@dataclass(frozen=True)
class OutputCapabilities:
    supports_structured_output: bool
    supports_json_mode: bool

    @property
    def supports_either(self) -> bool:
        return self.supports_structured_output or self.supports_json_mode


def _normalize(value: str) -> str:
    return value.lower().replace("-", " ")


def _squash(value: str) -> str:
    return re.sub(r"\s+", "", value)


def find_model(models: List[ModelInfo], selected: str) -> Optional[ModelInfo]:
    """Match ``selected`` against a catalog.

    Tries, in order: id (case-insensitive), display name, display name with
    hyphens read as spaces (also whitespace-insensitive), then the first
    partial containment match.
    """
    wanted = selected.lower()
    for model in models:
        if model.id.lower() == wanted:
            return model

    for model in models:
        if model.name.lower() == wanted:
            return model

    normalized = _normalize(selected)
    for model in models:
        name = _normalize(model.name)
        if name == normalized or _squash(name) == _squash(normalized):
            return model

    for model in models:
        name = _normalize(model.name)
        if normalized in name or name in normalized:
            return model

    return None


def get_user_selected_model(registry: ProviderRegistry, provider_name: str) -> SelectedModel:
    """Return the provider, its settings and the model the user picked.

    Raises:
        ConfigError: If the key or model is not configured, or the model is unknown
    """
    provider = registry.get_provider(provider_name)
    settings = registry.get_provider_settings(provider_name)

    if not settings.api_key:
        raise ConfigError(
            f"{provider_name} API key is not configured. Please add your API key in settings."
        )
    if not settings.selected_model:
        raise ConfigError("No AI model selected. Please select a model in settings.")

    model = find_model(provider.get_models(), settings.selected_model)
    if model is None:
        raise ConfigError(
            f'Selected model "{settings.selected_model}" not found in available models. '
            "Please check your settings."
        )

    LOGGER.debug(
        f"Resolved selected model {model.id}",
        extra={"provider": provider_name, "selected": settings.selected_model},
    )
    return SelectedModel(provider=provider, settings=settings, model=model)


def get_model_output_capabilities(model: ModelInfo) -> OutputCapabilities:
    return OutputCapabilities(
        supports_structured_output=bool(model.capabilities.structured_output),
        supports_json_mode=bool(model.capabilities.json_mode),
    )


def build_response_format(
    capabilities: OutputCapabilities, schema_name: str, schema: Dict[str, Any]
) -> Optional[ResponseFormat]:
    """Pick the strongest output format the model supports, or None."""
    if capabilities.supports_structured_output:
        return ResponseFormat(
            type="json_schema",
            json_schema={"name": schema_name, "strict": True, "schema": schema},
        )
    if capabilities.supports_json_mode:
        return ResponseFormat(type="json_object")
    return None
