"""Test wiring of the application container."""

import pytest

from deep_synthesis.core.config import DatabaseSettings, LLMSettings, ScoringSettings, SearchSettings, Settings
from deep_synthesis.core.provider_registry import ProviderRegistry
from deep_synthesis.dependencies import AppContainer
from deep_synthesis.repositories import ProviderSettingsStore
from deep_synthesis.schemas.llm import ProviderSettings
from deep_synthesis.services import QueryGenerationService

OPENAI_KEY = "sk-" + "c" * 40


@pytest.fixture
def app_settings() -> Settings:
    return Settings(
        db=DatabaseSettings(DATABASE_URL="sqlite+aiosqlite://"),
        llm=LLMSettings(OPENAI_API_KEY=OPENAI_KEY, OPENAI_MODEL="gpt-4o", LLM_PROVIDER="openai"),
        search=SearchSettings(ARXIV_MIN_INTERVAL_SECONDS=0.5, ARXIV_MAX_RETRIES=2, ARXIV_RETRY_DELAY=0.25),
        scoring=ScoringSettings(SCORING_BATCH_FRACTION=0.5),
    )


@pytest.mark.asyncio
async def test_container_builds_shared_objects(app_settings):
    container = AppContainer.from_settings(app_settings)
    try:
        assert container.registry.get_provider_settings("openai").api_key == OPENAI_KEY
        assert container.rate_limiter.min_interval_seconds == 0.5
        assert container.rate_limiter.client is container.arxiv_client
        assert [step.id for step in container.workflow.all_steps()][0] == "query"
    finally:
        await container.shutdown()


@pytest.mark.asyncio
async def test_startup_creates_tables_and_services_share_a_session(app_settings):
    container = AppContainer.from_settings(app_settings)
    await container.startup()
    try:
        assert container.database.is_connected
        assert await container.database.health_check()

        async with container.services() as services:
            brief = await services.briefs.create_brief(query="How do LLM agents plan?")
            assert isinstance(services.query_generation, QueryGenerationService)
            assert services.query_generation.registry is container.registry
            assert services.relevancy_scoring.scoring_settings.batch_fraction == 0.5
            assert services.paper_search.rate_limiter is container.rate_limiter
            assert services.paper_search.max_retries == 2
            assert services.paper_search.retry_delay == 0.25
            assert services.query_refinement.brief_repository is services.briefs
            assert services.briefs.session is services.session

        async with container.services() as services:
            stored = await services.briefs.get_by_id(brief.id)
            assert stored.query == "How do LLM agents plan?"
    finally:
        await container.shutdown()


@pytest.mark.asyncio
async def test_provider_settings_survive_restart_of_the_registry(app_settings):
    container = AppContainer.from_settings(app_settings)
    await container.startup()
    try:
        await container.registry.update_provider_settings(
            "openai", ProviderSettings(api_key=OPENAI_KEY, selected_model="o3-mini")
        )

        reloaded = ProviderRegistry(settings_store=ProviderSettingsStore(container.session_maker))
        await reloaded.load_from_store()

        assert reloaded.get_provider_settings("openai").selected_model == "o3-mini"
    finally:
        await container.shutdown()
