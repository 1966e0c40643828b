"""Turn a research question into arXiv search terms and a date constraint."""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from deep_synthesis.core.config import ScoringSettings
from deep_synthesis.core.exceptions import ValidationError
from deep_synthesis.core.provider_registry import ProviderRegistry
from deep_synthesis.prompts.system_prompts import (
    QUERY_GENERATION_PROMPT,
    QUERY_GENERATION_SCHEMA,
    QUERY_JSON_OUTPUT_FORMAT,
    QUERY_TEXT_OUTPUT_FORMAT,
)
from deep_synthesis.repositories.brief_repository import BriefRepository
from deep_synthesis.schemas.brief import (
    DateConstraint,
    SearchQuery,
    SearchQueryWithStatus,
    to_persisted,
    with_status,
)
from deep_synthesis.services.base_service import BaseLLMService
from deep_synthesis.utils.json_parser import attempts_for, parse_or_raise

SCHEMA_NAME = "arxiv_search_queries"


@dataclass
class QueryGenerationResult:
    queries: List[str]
    date_constraint: Optional[DateConstraint] = None


def validate_queries_payload(value: Any) -> Optional[str]:
    if not isinstance(value, dict):
        return "response is not a JSON object"
    queries = value.get("queries")
    if not isinstance(queries, list):
        return "queries is not an array"
    if not all(isinstance(q, str) for q in queries):
        return "all queries must be strings"
    if not any(q.strip() for q in queries):
        return "no valid queries were generated"
    return None


def merge_terms(
    existing: Sequence[SearchQuery], generated: Sequence[str]
) -> List[SearchQueryWithStatus]:
    """Keep the user's active terms and append new suggestions as inactive."""
    active = [with_status(term) for term in existing if term.is_active]
    seen = {term.term for term in active}

    merged = list(active)
    for raw in generated:
        term = raw.strip()
        if not term or term in seen:
            continue
        seen.add(term)
        merged.append(SearchQueryWithStatus(term=term, is_active=False))
    return merged


class QueryGenerationService(BaseLLMService):
    """Generate 2-4 index-specific search queries for a brief.

    Parsing failures are raised as ``ParseError``; callers that want a
    best-effort result can fall back to ``fallback_query``.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        brief_repository: Optional[BriefRepository] = None,
        provider_name: str = "openai",
        scoring_settings: Optional[ScoringSettings] = None,
        num_queries: int = 3,
    ):
        super().__init__(registry, provider_name)
        self.brief_repository = brief_repository
        self.scoring_settings = scoring_settings or ScoringSettings()
        self.num_queries = num_queries

    def validate(self, query: str) -> None:
        if not query or not query.strip():
            raise ValidationError("A research query is required to generate search queries")

    async def generate(self, query: str) -> QueryGenerationResult:
        return await self.execute(query)

    async def run(self, query: str) -> QueryGenerationResult:
        selected, capabilities = self.resolve_model()
        prompt = QUERY_GENERATION_PROMPT.format(
            num_queries=self.num_queries,
            output_format=(
                QUERY_JSON_OUTPUT_FORMAT if capabilities.supports_either else QUERY_TEXT_OUTPUT_FORMAT
            ),
            query=query.strip(),
        )

        response = await self.complete(
            prompt,
            temperature=self.scoring_settings.query_temperature,
            max_tokens=self.scoring_settings.query_max_tokens,
            schema_name=SCHEMA_NAME,
            schema=QUERY_GENERATION_SCHEMA,
            selected=selected,
        )

        payload = parse_or_raise(
            response.content,
            attempts_for(capabilities.supports_either),
            validate_queries_payload,
            what="search query response",
        )
        result = QueryGenerationResult(
            queries=[q.strip() for q in payload["queries"] if q.strip()],
            date_constraint=self._parse_date_constraint(payload.get("dateConstraint")),
        )
        self.logger.info(
            f"Generated {len(result.queries)} search queries",
            extra={
                "model": response.model,
                "date_constraint": result.date_constraint.type.value if result.date_constraint else None,
            },
        )
        return result

    def _parse_date_constraint(self, raw: Any) -> Optional[DateConstraint]:
        if not isinstance(raw, dict):
            return None
        try:
            return DateConstraint.model_validate(raw)
        except PydanticValidationError as e:
            self.logger.warning(
                "Ignoring malformed date constraint in model output",
                extra={"date_constraint": raw, "error": str(e)},
            )
            return None

    # ------------------------------------------------------------------
    # Brief persistence
    # ------------------------------------------------------------------

    def _require_repository(self) -> BriefRepository:
        if self.brief_repository is None:
            raise ValidationError("QueryGenerationService needs a BriefRepository for this operation")
        return self.brief_repository

    async def _load_terms(self, brief_id: UUID) -> List[SearchQuery]:
        brief = await self._require_repository().get_by_id(brief_id)
        if brief is None:
            raise ValidationError(f"Brief {brief_id} not found")
        return brief.get_search_queries()

    async def _save_terms(
        self, brief_id: UUID, terms: Sequence[SearchQuery]
    ) -> List[SearchQueryWithStatus]:
        await self._require_repository().set_search_queries(brief_id, terms)
        return [with_status(to_persisted(term)) for term in terms]

    async def generate_for_brief(self, brief_id: UUID) -> List[SearchQueryWithStatus]:
        """Generate suggestions for a stored brief and persist the merge."""
        brief = await self._require_repository().get_by_id(brief_id)
        if brief is None:
            raise ValidationError(f"Brief {brief_id} not found")
        result = await self.generate(brief.query)
        return await self.apply_to_brief(brief_id, result)

    async def apply_to_brief(
        self, brief_id: UUID, result: QueryGenerationResult
    ) -> List[SearchQueryWithStatus]:
        """Merge generated terms into the brief and store or clear its date constraint."""
        repository = self._require_repository()
        merged = merge_terms(await self._load_terms(brief_id), result.queries)
        await repository.set_search_queries(brief_id, merged)

        constraint = result.date_constraint
        if constraint is not None and not constraint.is_none:
            await repository.set_date_constraint(brief_id, constraint)
        else:
            await repository.set_date_constraint(brief_id, None)
        return merged

    async def add_term(self, brief_id: UUID, term: str) -> List[SearchQueryWithStatus]:
        """Append a user-written term; it starts active."""
        cleaned = term.strip()
        if not cleaned:
            raise ValidationError("Search term cannot be empty")
        terms = await self._load_terms(brief_id)
        terms.append(SearchQuery(term=cleaned, is_active=True))
        return await self._save_terms(brief_id, terms)

    async def toggle_term(self, brief_id: UUID, term_id: str) -> List[SearchQueryWithStatus]:
        terms = [
            term.model_copy(update={"is_active": not term.is_active}) if term.id == term_id else term
            for term in await self._load_terms(brief_id)
        ]
        return await self._save_terms(brief_id, terms)

    async def remove_term(self, brief_id: UUID, term_id: str) -> List[SearchQueryWithStatus]:
        terms = [term for term in await self._load_terms(brief_id) if term.id != term_id]
        return await self._save_terms(brief_id, terms)

    @staticmethod
    def to_persisted(view: SearchQueryWithStatus) -> SearchQuery:
        return to_persisted(view)
