"""Persistence for per-provider LLM settings."""

from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deep_synthesis.database.models import ProviderSettingsRecord
from deep_synthesis.repositories.base_repository import BaseRepository
from deep_synthesis.schemas.llm import ProviderSettings
from deep_synthesis.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _to_schema(record: ProviderSettingsRecord) -> ProviderSettings:
    return ProviderSettings(
        api_key=record.api_key,
        selected_model=record.selected_model,
        custom_endpoint=record.custom_endpoint,
        organization_id=record.organization_id,
        enabled_models=dict(record.enabled_models or {}),
    )


class ProviderSettingsRepository(BaseRepository[ProviderSettingsRecord]):
    """Settings rows are created on first save and never implicitly deleted."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ProviderSettingsRecord)

    async def get_by_provider(self, provider: str) -> Optional[ProviderSettingsRecord]:
        try:
            stmt = select(ProviderSettingsRecord).where(
                ProviderSettingsRecord.provider == provider.lower()
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving settings for provider {provider}: {str(e)}", exc_info=True
            )
            raise

    async def save(self, provider: str, settings: ProviderSettings) -> ProviderSettingsRecord:
        values = settings.model_dump()
        existing = await self.get_by_provider(provider)
        if existing is not None:
            return await self.update(existing.id, **values)
        return await self.create(provider=provider.lower(), **values)

    async def get_all_settings(self) -> Dict[str, ProviderSettings]:
        records = await self.get_all()
        return {record.provider: _to_schema(record) for record in records}


class ProviderSettingsStore:
    """Session-per-call adapter so a long-lived registry can write through."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def load_all(self) -> Dict[str, ProviderSettings]:
        async with self.session_maker() as session:
            return await ProviderSettingsRepository(session).get_all_settings()

    async def save(self, provider: str, settings: ProviderSettings) -> None:
        async with self.session_maker() as session:
            await ProviderSettingsRepository(session).save(provider, settings)
        LOGGER.info(f"Persisted settings for provider {provider}")
