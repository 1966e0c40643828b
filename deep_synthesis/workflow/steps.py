"""The brief workflow, declared once in order."""

from typing import Tuple

from deep_synthesis.database.models import Brief
from deep_synthesis.workflow.base_step import Step

REFINEMENT_COMPLETE_MARKER = "__REFINEMENT_COMPLETE__"


def has_query(brief: Brief) -> bool:
    return bool(brief.query and brief.query.strip())


def refinement_done(brief: Brief) -> bool:
    return any(
        REFINEMENT_COMPLETE_MARKER in (message.get("content") or "")
        for message in brief.chat_messages or []
    )


def has_references(brief: Brief) -> bool:
    return bool(brief.references)


def has_review(brief: Brief) -> bool:
    return bool(brief.review and brief.review.strip())


QUERY_STEP = Step(
    id="query",
    title="Research Question",
    description="Define your research question",
    is_complete=has_query,
)

REFINEMENT_STEP = Step(
    id="refinement",
    title="Refine Query",
    description="Improve your research question with AI assistance",
    is_complete=refinement_done,
)

PAPER_SEARCH_STEP = Step(
    id="paper-search",
    title="Paper Search",
    description="Search for relevant papers",
    is_complete=has_references,
    should_render=has_query,
)

BRIEF_GENERATION_STEP = Step(
    id="brief-generation",
    title="Brief Generation",
    description="Generate the research brief",
    is_complete=has_review,
    should_render=has_references,
)

DEFAULT_STEPS: Tuple[Step, ...] = (
    QUERY_STEP,
    REFINEMENT_STEP,
    PAPER_SEARCH_STEP,
    BRIEF_GENERATION_STEP,
)
