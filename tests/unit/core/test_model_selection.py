"""Tests for selected-model resolution and output format negotiation."""

import pytest

from deep_synthesis.core.exceptions import ConfigError
from deep_synthesis.core.model_catalog import ANTHROPIC_MODELS, OPENAI_MODELS
from deep_synthesis.core.model_selection import (
    build_response_format,
    find_model,
    get_model_output_capabilities,
    get_user_selected_model,
)
from deep_synthesis.core.provider_registry import ProviderRegistry
from deep_synthesis.schemas.llm import ProviderSettings

KEY = "sk-" + "m" * 40


def _registry(**openai_settings) -> ProviderRegistry:
    return ProviderRegistry(settings={"openai": ProviderSettings(**openai_settings)})


class TestFindModel:

    def test_matches_id_case_insensitively(self):
        assert find_model(OPENAI_MODELS, "GPT-4O-MINI").id == "gpt-4o-mini"

    def test_matches_display_name(self):
        assert find_model(OPENAI_MODELS, "GPT-4o Mini").id == "gpt-4o-mini"

    def test_treats_hyphens_as_spaces(self):
        assert find_model(OPENAI_MODELS, "GPT 4o Mini").id == "gpt-4o-mini"

    def test_partial_match(self):
        assert find_model(ANTHROPIC_MODELS, "3.7 sonnet").id == "claude-3-7-sonnet-latest"

    def test_unknown_model(self):
        assert find_model(OPENAI_MODELS, "totally-unknown-model") is None


class TestGetUserSelectedModel:

    def test_returns_provider_settings_and_model(self):
        selected = get_user_selected_model(_registry(api_key=KEY, selected_model="gpt-4o"), "openai")

        assert selected.model.id == "gpt-4o"
        assert selected.settings.api_key == KEY
        assert selected.provider.name == "OpenAI"

    def test_missing_key(self):
        with pytest.raises(ConfigError) as exc_info:
            get_user_selected_model(_registry(selected_model="gpt-4o"), "openai")

        assert str(exc_info.value) == (
            "openai API key is not configured. Please add your API key in settings."
        )

    def test_missing_model(self):
        with pytest.raises(ConfigError) as exc_info:
            get_user_selected_model(_registry(api_key=KEY), "openai")

        assert str(exc_info.value) == "No AI model selected. Please select a model in settings."

    def test_model_not_in_catalog(self):
        with pytest.raises(ConfigError) as exc_info:
            get_user_selected_model(_registry(api_key=KEY, selected_model="nonexistent-xyz"), "openai")

        assert 'Selected model "nonexistent-xyz" not found' in str(exc_info.value)


class TestResponseFormat:

    def _format(self, models, model_id):
        model = next(m for m in models if m.id == model_id)
        return build_response_format(
            get_model_output_capabilities(model), "paper_relevancy_scores", {"type": "object"}
        )

    def test_structured_output_preferred(self):
        response_format = self._format(OPENAI_MODELS, "gpt-4o")

        assert response_format.type == "json_schema"
        assert response_format.json_schema == {
            "name": "paper_relevancy_scores",
            "strict": True,
            "schema": {"type": "object"},
        }

    def test_json_mode_fallback(self):
        response_format = self._format(OPENAI_MODELS, "gpt-3.5-turbo")

        assert response_format.type == "json_object"
        assert response_format.to_payload() == {"type": "json_object"}

    def test_text_only_models_get_no_format(self):
        assert self._format(ANTHROPIC_MODELS, "claude-3-5-haiku-latest") is None
