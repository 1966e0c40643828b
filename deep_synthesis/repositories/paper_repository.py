"""Repository for Paper records, unique per arXiv id."""

from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from deep_synthesis.database.models import Paper
from deep_synthesis.repositories.base_repository import BaseRepository
from deep_synthesis.schemas.paper import PaperRecord


def _record_fields(record: PaperRecord) -> Dict[str, Any]:
    data = record.model_dump(mode="json")
    return {
        "arxiv_id": record.arxiv_id,
        "title": record.title,
        "abstract": record.abstract,
        "authors": list(record.authors),
        "affiliations": list(record.affiliations),
        "year": record.year,
        "submitted_date": record.submitted_date,
        "last_updated_date": record.last_updated_date,
        "pdf_url": record.pdf_url,
        "abstract_url": record.abstract_url,
        "doi": record.doi,
        "primary_category": data["primary_category"],
        "categories": data["categories"],
        "links": data["links"],
        "comments": record.comments,
        "journal_ref": record.journal_ref,
        "source": record.source,
        "bibtex": record.bibtex,
    }


class PaperRepository(BaseRepository[Paper]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, Paper)

    async def get_by_arxiv_id(self, arxiv_id: str) -> Optional[Paper]:
        try:
            result = await self.session.execute(select(Paper).where(Paper.arxiv_id == arxiv_id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving Paper by arXiv id {arxiv_id}: {str(e)}", exc_info=True
            )
            raise

    async def get_by_ids(self, ids: Iterable[UUID]) -> List[Paper]:
        id_list = list(ids)
        if not id_list:
            return []
        try:
            result = await self.session.execute(select(Paper).where(Paper.id.in_(id_list)))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error retrieving Papers by ids: {str(e)}", exc_info=True)
            raise

    async def upsert(self, record: PaperRecord) -> Paper:
        """Insert a paper or enrich the existing row with the same arXiv id."""
        fields = _record_fields(record)
        existing = await self.get_by_arxiv_id(record.arxiv_id)
        if existing is not None:
            return await self.update(existing.id, **fields)

        try:
            return await self.create(**fields)
        except IntegrityError:
            # Lost an insert race on the unique arxiv_id; enrich the winner instead.
            self.logger.info(f"Paper {record.arxiv_id} inserted concurrently, updating instead")
            existing = await self.get_by_arxiv_id(record.arxiv_id)
            if existing is None:
                raise
            return await self.update(existing.id, **fields)
