"""Construction of the long-lived objects and per-session service bundles.

Everything shared (engine, provider registry, arXiv client, rate limiter,
workflow engine) is built once here and handed to the services that need it.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from deep_synthesis.core.config import Settings
from deep_synthesis.core.config import settings as default_settings
from deep_synthesis.core.database import (
    DatabaseClient,
    create_engine,
    create_session_maker,
    session_scope,
)
from deep_synthesis.core.provider_registry import ProviderRegistry
from deep_synthesis.repositories import (
    BriefRepository,
    PaperBriefRepository,
    PaperRepository,
    ProviderSettingsRepository,
    ProviderSettingsStore,
)
from deep_synthesis.schemas.llm import ProviderSettings
from deep_synthesis.services import (
    BriefGenerationService,
    PaperSearchService,
    QueryGenerationService,
    QueryRefinementService,
    RelevancyScoringService,
)
from deep_synthesis.services.search import ArxivClient, SearchRateLimiter
from deep_synthesis.utils.logging import get_logger
from deep_synthesis.workflow import StepWorkflowEngine

LOGGER = get_logger(__name__)


@dataclass
class SessionServices:
    """Repositories and services bound to one database session."""
    session: AsyncSession
    briefs: BriefRepository
    papers: PaperRepository
    associations: PaperBriefRepository
    provider_settings: ProviderSettingsRepository
    query_generation: QueryGenerationService
    relevancy_scoring: RelevancyScoringService
    paper_search: PaperSearchService
    query_refinement: QueryRefinementService
    brief_generation: BriefGenerationService


@dataclass
class AppContainer:
    settings: Settings
    engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]
    database: DatabaseClient
    registry: ProviderRegistry
    arxiv_client: ArxivClient
    rate_limiter: SearchRateLimiter
    workflow: StepWorkflowEngine

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "AppContainer":
        """Build the container.

        Args:
            settings: Application settings; the module-level settings by default
            http_client: Optional httpx client shared by providers and the arXiv client
        """
        settings = settings or default_settings
        engine = create_engine(settings.db)
        session_maker = create_session_maker(engine)

        credentials = {
            name: ProviderSettings(**values) for name, values in settings.llm.credentials().items()
        }
        registry = ProviderRegistry(
            settings=credentials,
            timeout=settings.llm.timeout,
            max_retries=settings.llm.max_retries,
            retry_delay=settings.llm.retry_delay,
            http_client=http_client,
            provider_options={
                "openrouter": {
                    "referer": settings.llm.openrouter_referer,
                    "title": settings.llm.openrouter_title,
                }
            },
            settings_store=ProviderSettingsStore(session_maker),
        )

        arxiv_client = ArxivClient(
            base_url=settings.search.arxiv_base_url,
            timeout=settings.search.timeout,
            default_max_results=settings.search.default_max_results,
            http_client=http_client,
        )
        rate_limiter = SearchRateLimiter(
            arxiv_client, min_interval_seconds=settings.search.min_interval_seconds
        )

        LOGGER.info(
            f"{settings.app_name} container initialized",
            extra={"environment": settings.environment, "provider": settings.llm.default_provider},
        )
        return cls(
            settings=settings,
            engine=engine,
            session_maker=session_maker,
            database=DatabaseClient(engine),
            registry=registry,
            arxiv_client=arxiv_client,
            rate_limiter=rate_limiter,
            workflow=StepWorkflowEngine(),
        )

    async def startup(self, create_tables: bool = True) -> None:
        """Check the database, optionally create tables and load stored provider settings."""
        await self.database.connect()
        if create_tables:
            await self.database.create_tables()
        await self.registry.load_from_store()

    async def shutdown(self) -> None:
        await self.database.disconnect()

    def build_services(self, session: AsyncSession) -> SessionServices:
        provider = self.settings.llm.default_provider
        scoring = self.settings.scoring

        briefs = BriefRepository(session)
        papers = PaperRepository(session)
        associations = PaperBriefRepository(session)
        return SessionServices(
            session=session,
            briefs=briefs,
            papers=papers,
            associations=associations,
            provider_settings=ProviderSettingsRepository(session),
            query_generation=QueryGenerationService(
                self.registry, briefs, provider_name=provider, scoring_settings=scoring
            ),
            relevancy_scoring=RelevancyScoringService(
                self.registry, associations, provider_name=provider, scoring_settings=scoring
            ),
            query_refinement=QueryRefinementService(
                self.registry, briefs, provider_name=provider, scoring_settings=scoring
            ),
            paper_search=PaperSearchService(
                self.rate_limiter,
                papers,
                associations,
                brief_repository=briefs,
                max_retries=self.settings.search.max_retries,
                retry_delay=self.settings.search.retry_delay,
            ),
            brief_generation=BriefGenerationService(
                self.registry, briefs, papers, provider_name=provider, scoring_settings=scoring
            ),
        )

    @asynccontextmanager
    async def services(self) -> AsyncGenerator[SessionServices, None]:
        """Yield a session-bound service bundle; the session is closed afterwards."""
        async with session_scope(self.session_maker) as session:
            yield self.build_services(session)
