"""Batch relevancy scoring of candidate papers against a brief's query."""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from deep_synthesis.core.config import ScoringSettings
from deep_synthesis.core.exceptions import ValidationError
from deep_synthesis.core.provider_registry import ProviderRegistry
from deep_synthesis.database.models import Brief, Paper, PaperBriefAssociation
from deep_synthesis.prompts.system_prompts import (
    PAPER_BLOCK,
    RELEVANCY_JSON_OUTPUT_FORMAT,
    RELEVANCY_SCORING_PROMPT,
    RELEVANCY_SCORING_SCHEMA,
    RELEVANCY_TEXT_OUTPUT_FORMAT,
)
from deep_synthesis.repositories.paper_brief_repository import PaperBriefRepository
from deep_synthesis.schemas.brief import RelevancyData
from deep_synthesis.services.base_service import BaseLLMService
from deep_synthesis.utils.json_parser import attempts_for, parse_or_raise

SCHEMA_NAME = "paper_relevancy_scores"
MISSING_SCORE_REASON = "No score returned for this paper"
SCORE_BUCKETS = (("80-100", 80), ("60-79", 60), ("40-59", 40), ("20-39", 20), ("0-19", 0))

ProgressCallback = Callable[[int], None]


@dataclass
class ScoringOutcome:
    scores: Dict[UUID, RelevancyData] = field(default_factory=dict)
    remaining: int = 0
    error: Optional[str] = None


def select_batch(unscored: Sequence[Paper], fraction: float) -> List[Paper]:
    """Leading ``fraction`` of the backlog, at least one paper."""
    if not unscored:
        return []
    size = max(1, math.ceil(len(unscored) * fraction))
    return list(unscored[:size])


def _finite(value: Any) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Non-finite number: {value!r}")
    return number


def _clamp(value: Any) -> int:
    return max(0, min(100, int(round(_finite(value)))))


def to_relevancy_data(raw: Any) -> Optional[RelevancyData]:
    """Coerce one model-provided score object; None when it is unusable."""
    if not isinstance(raw, dict):
        return None
    try:
        reasons = [
            {"reason": str(r.get("reason", "")), "impact_on_score": _finite(r.get("impactOnScore", 0) or 0)}
            for r in raw.get("reasons") or []
            if isinstance(r, dict)
        ]
        return RelevancyData(
            overall_score=_clamp(raw["overallScore"]),
            reasons=reasons,
            keywords_matched=[str(k) for k in raw.get("keywordsMatched") or []],
            confidence_level=_clamp(raw.get("confidenceLevel", 0)),
        )
    except (KeyError, TypeError, ValueError, PydanticValidationError):
        return None


def extract_scores(payload: Any) -> Dict[str, Any]:
    """Index raw score objects by arXiv id.

    Accepts ``{"papers": [{"arxivId": ...}, ...]}`` as well as a plain object
    keyed by arXiv id.
    """
    if not isinstance(payload, dict):
        return {}
    papers = payload.get("papers")
    if isinstance(papers, list):
        return {
            str(item["arxivId"]): item
            for item in papers
            if isinstance(item, dict) and item.get("arxivId")
        }
    return {key: value for key, value in payload.items() if isinstance(value, dict)}


def _validate_scores_payload(value: Any) -> Optional[str]:
    if not isinstance(value, dict):
        return "response is not a JSON object"
    return None


def calculate_paper_counts(associations: Iterable[PaperBriefAssociation]) -> Dict[str, int]:
    counts = {"unscored": 0, **{label: 0 for label, _ in SCORE_BUCKETS}}
    for association in associations:
        if association.relevancy_score is None:
            counts["unscored"] += 1
            continue
        for label, floor in SCORE_BUCKETS:
            if association.relevancy_score >= floor:
                counts[label] += 1
                break
    return counts


class RelevancyScoringService(BaseLLMService):
    """Score the unscored backlog of a brief, one batch per call.

    Every paper in the batch ends up with a persisted score: papers the model
    skipped, or a batch whose completion failed outright, get the low
    confidence default.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        paper_brief_repository: PaperBriefRepository,
        provider_name: str = "openai",
        scoring_settings: Optional[ScoringSettings] = None,
    ):
        super().__init__(registry, provider_name)
        self.paper_brief_repository = paper_brief_repository
        self.scoring_settings = scoring_settings or ScoringSettings()

    def validate(self, brief: Brief, papers: Sequence[Paper], on_progress=None) -> None:
        if brief is None:
            raise ValidationError("Brief is required to calculate relevancy scores")

    async def score_papers(
        self,
        brief: Brief,
        papers: Sequence[Paper],
        on_progress: Optional[ProgressCallback] = None,
    ) -> ScoringOutcome:
        return await self.execute(brief, papers, on_progress)

    async def run(
        self,
        brief: Brief,
        papers: Sequence[Paper],
        on_progress: Optional[ProgressCallback] = None,
    ) -> ScoringOutcome:
        associations = await self.paper_brief_repository.get_by_brief(brief.id)
        scored_ids = {a.paper_id for a in associations if a.is_scored}
        unscored = [paper for paper in papers if paper.id not in scored_ids]

        if not unscored:
            self.logger.info("All papers already have relevancy scores", extra={"brief_id": str(brief.id)})
            if on_progress:
                on_progress(100)
            return ScoringOutcome()

        batch = select_batch(unscored, self.scoring_settings.batch_fraction)
        self.logger.info(
            f"Scoring batch of {len(batch)} papers out of {len(unscored)} unscored",
            extra={"brief_id": str(brief.id)},
        )

        outcome = ScoringOutcome(remaining=len(unscored) - len(batch))
        fallback_reason = MISSING_SCORE_REASON
        try:
            scores = await self.calculate_scores(brief.query, batch)
        except Exception as e:
            message = str(e)
            self.logger.error(
                f"Relevancy scoring batch failed: {message}",
                exc_info=True,
                extra={"brief_id": str(brief.id), "batch_size": len(batch)},
            )
            scores = {}
            outcome.error = message
            fallback_reason = f"Failed to calculate score: {message}"

        for index, paper in enumerate(batch):
            data = scores.get(paper.arxiv_id)
            if data is None:
                if outcome.error is None:
                    self.logger.warning(f"No score returned for paper {paper.arxiv_id}")
                data = RelevancyData.default(fallback_reason)
            await self.paper_brief_repository.save_relevancy_score(brief.id, paper.id, data)
            outcome.scores[paper.id] = data
            if on_progress:
                on_progress(round((index + 1) / len(batch) * 100))

        return outcome

    async def calculate_scores(self, query: str, papers: Sequence[Paper]) -> Dict[str, RelevancyData]:
        """One completion for all ``papers``; returns usable scores keyed by arXiv id.

        Raises:
            LLMError: If the completion cannot be obtained
            ParseError: If no JSON object can be recovered from the response
        """
        selected, capabilities = self.resolve_model()
        prompt = RELEVANCY_SCORING_PROMPT.format(
            output_format=(
                RELEVANCY_JSON_OUTPUT_FORMAT if capabilities.supports_either else RELEVANCY_TEXT_OUTPUT_FORMAT
            ),
            query=query,
            papers="\n\n".join(self._paper_block(paper) for paper in papers),
        )
        response = await self.complete(
            prompt,
            temperature=self.scoring_settings.scoring_temperature,
            max_tokens=self.scoring_settings.scoring_max_tokens,
            schema_name=SCHEMA_NAME,
            schema=RELEVANCY_SCORING_SCHEMA,
            selected=selected,
        )
        payload = parse_or_raise(
            response.content,
            attempts_for(capabilities.supports_either),
            _validate_scores_payload,
            what="relevancy score response",
        )

        scores: Dict[str, RelevancyData] = {}
        for arxiv_id, raw in extract_scores(payload).items():
            data = to_relevancy_data(raw)
            if data is None:
                self.logger.warning(f"Discarding malformed score for paper {arxiv_id}")
                continue
            scores[arxiv_id] = data
        return scores

    @staticmethod
    def _paper_block(paper: Paper) -> str:
        return PAPER_BLOCK.format(
            arxiv_id=paper.arxiv_id,
            title=paper.title,
            authors=", ".join(paper.authors or []),
            submitted_date=paper.submitted_date or paper.year,
            abstract=paper.abstract,
        )
