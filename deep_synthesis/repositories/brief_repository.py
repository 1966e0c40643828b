"""Repository for Brief records."""

from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from deep_synthesis.database.models import Brief
from deep_synthesis.repositories.base_repository import BaseRepository
from deep_synthesis.schemas.brief import (
    ChatMessage,
    DateConstraint,
    Reference,
    SearchQuery,
    to_persisted,
)


class BriefRepository(BaseRepository[Brief]):
    """Briefs are only ever changed through partial field updates, each of
    which refreshes ``updated_at``."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Brief)

    async def create_brief(self, query: str = "", title: str = "") -> Brief:
        return await self.create(query=query, title=title)

    async def get_recent(self, limit: int = 20) -> List[Brief]:
        try:
            stmt = select(Brief).order_by(Brief.updated_at.desc()).limit(limit)
            result = await self.session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing recent briefs: {str(e)}", exc_info=True)
            raise

    async def update_fields(self, brief_id: UUID, **fields: Any) -> Optional[Brief]:
        """Merge ``fields`` into the brief; returns None when it does not exist."""
        return await self.update(brief_id, **fields)

    async def set_search_queries(
        self, brief_id: UUID, queries: Sequence[SearchQuery]
    ) -> Optional[Brief]:
        """Store search terms; session-only status fields are dropped."""
        payload = [to_persisted(query).model_dump(mode="json") for query in queries]
        return await self.update(brief_id, search_queries=payload)

    async def set_date_constraint(
        self, brief_id: UUID, constraint: Optional[DateConstraint]
    ) -> Optional[Brief]:
        """Store a constraint; ``None`` or a ``none``-typed one clears it."""
        value = None if constraint is None or constraint.is_none else constraint.to_wire()
        return await self.update(brief_id, date_constraint=value)

    async def set_references(
        self, brief_id: UUID, references: Sequence[Reference]
    ) -> Optional[Brief]:
        payload = [ref.model_dump(by_alias=True, mode="json") for ref in references]
        return await self.update(brief_id, references=payload)

    async def append_chat_message(
        self, brief_id: UUID, message: ChatMessage
    ) -> Optional[Brief]:
        brief = await self.get_by_id(brief_id)
        if brief is None:
            return None
        messages = list(brief.chat_messages or [])
        messages.append(message.model_dump(mode="json"))
        return await self.update(brief_id, chat_messages=messages)

    async def mark_opened(self, brief_id: UUID) -> Optional[Brief]:
        return await self.update(brief_id, last_opened_at=datetime.now(timezone.utc))

    async def mark_completed(self, brief_id: UUID) -> Optional[Brief]:
        return await self.update(brief_id, completed_at=datetime.now(timezone.utc))
