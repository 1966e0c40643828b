"""Repository for paper/brief associations."""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from deep_synthesis.core.exceptions import DatabaseError
from deep_synthesis.database.models import PaperBriefAssociation
from deep_synthesis.repositories.base_repository import BaseRepository
from deep_synthesis.schemas.brief import RelevancyData


class PaperBriefRepository(BaseRepository[PaperBriefAssociation]):
    """At most one association exists per (brief_id, paper_id); writes upsert."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, PaperBriefAssociation)

    async def get_association(
        self, brief_id: UUID, paper_id: UUID
    ) -> Optional[PaperBriefAssociation]:
        try:
            stmt = select(PaperBriefAssociation).where(
                PaperBriefAssociation.brief_id == brief_id,
                PaperBriefAssociation.paper_id == paper_id,
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving association {brief_id}/{paper_id}: {str(e)}", exc_info=True
            )
            raise

    async def get_by_brief(
        self, brief_id: UUID, selected_only: bool = False
    ) -> List[PaperBriefAssociation]:
        """Associations for a brief with their papers loaded, best score first."""
        try:
            stmt = (
                select(PaperBriefAssociation)
                .options(selectinload(PaperBriefAssociation.paper))
                .where(PaperBriefAssociation.brief_id == brief_id)
                .execution_options(populate_existing=True)
            )
            if selected_only:
                stmt = stmt.where(PaperBriefAssociation.is_selected.is_(True))
            stmt = stmt.order_by(
                PaperBriefAssociation.relevancy_score.desc().nulls_last(),
                PaperBriefAssociation.created_at,
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving associations for brief {brief_id}: {str(e)}", exc_info=True
            )
            raise

    async def save_relevancy_score(
        self,
        brief_id: UUID,
        paper_id: UUID,
        data: RelevancyData,
        justification: Optional[str] = None,
    ) -> PaperBriefAssociation:
        """Upsert the relevancy verdict for (brief, paper) in one transaction.

        ``overall_score`` is mirrored into ``relevancy_score`` for sorting.
        """
        values = {
            "relevancy_data": data.model_dump(by_alias=True, mode="json"),
            "relevancy_score": data.overall_score,
        }
        if justification is not None:
            values["relevancy_justification"] = justification
        elif data.reasons:
            values["relevancy_justification"] = data.reasons[0].reason

        return await self._upsert(
            brief_id,
            paper_id,
            update=values,
            create={"search_query": [], "is_selected": False, **values},
        )

    async def add_search_hit(
        self, brief_id: UUID, paper_id: UUID, term: str
    ) -> PaperBriefAssociation:
        """Record that ``term`` surfaced the paper for the brief."""
        existing = await self.get_association(brief_id, paper_id)
        if existing is not None and term in (existing.search_query or []):
            return existing
        return await self._upsert(
            brief_id,
            paper_id,
            update={},
            create={"search_query": [term], "is_selected": False},
            append_term=term,
        )

    async def set_selected(
        self, brief_id: UUID, paper_id: UUID, selected: bool
    ) -> Optional[PaperBriefAssociation]:
        existing = await self.get_association(brief_id, paper_id)
        if existing is None:
            return None
        return await self.update(existing.id, is_selected=selected)

    async def get_unscored(self, brief_id: UUID) -> List[PaperBriefAssociation]:
        return [assoc for assoc in await self.get_by_brief(brief_id) if not assoc.is_scored]

    async def _upsert(
        self,
        brief_id: UUID,
        paper_id: UUID,
        update: dict,
        create: Optional[dict] = None,
        append_term: Optional[str] = None,
    ) -> PaperBriefAssociation:
        for attempt in range(2):
            try:
                existing = await self.get_association(brief_id, paper_id)
                if existing is not None:
                    values = dict(update)
                    if append_term and append_term not in (existing.search_query or []):
                        values["search_query"] = list(existing.search_query or []) + [append_term]
                    self._apply(existing, values)
                    instance = existing
                else:
                    now = datetime.now(timezone.utc)
                    instance = PaperBriefAssociation(
                        brief_id=brief_id,
                        paper_id=paper_id,
                        created_at=now,
                        updated_at=now,
                        **(create if create is not None else update),
                    )
                    self.session.add(instance)

                await self.session.flush()
                await self.session.commit()
                return instance

            except IntegrityError:
                # Another writer created the row between our read and insert.
                await self.session.rollback()
                if attempt == 1:
                    raise
                self.logger.info(
                    f"Association {brief_id}/{paper_id} created concurrently, retrying as update"
                )
            except SQLAlchemyError as e:
                await self.session.rollback()
                self.logger.error(
                    f"Error upserting association {brief_id}/{paper_id}: {str(e)}", exc_info=True
                )
                raise

        raise DatabaseError(f"Failed to upsert association {brief_id}/{paper_id}")
