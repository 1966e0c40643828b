"""Value types stored on a Brief and on paper/brief associations."""

import re
import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_PARTIAL_DATE = re.compile(r"^(\d{4})(?:-(\d{2}))?(?:-(\d{2}))?$")


class DateConstraintType(str, Enum):
    NONE = "none"
    BEFORE = "before"
    AFTER = "after"
    BETWEEN = "between"


class DateConstraint(BaseModel):
    """Publication date filter; dates are ISO ``YYYY-MM-DD``.

    Serialized with the camelCase wire names (``beforeDate``/``afterDate``).
    """
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    type: DateConstraintType = DateConstraintType.NONE
    before_date: Optional[str] = Field(default=None, alias="beforeDate")
    after_date: Optional[str] = Field(default=None, alias="afterDate")

    @field_validator("before_date", "after_date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Optional[str]:
        """Expand ``YYYY`` and ``YYYY-MM`` to the first day; reject anything else."""
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("Date must be a string")
        text = v.strip()[:10]
        if not text:
            return None
        match = _PARTIAL_DATE.match(text)
        if match is None:
            raise ValueError(f"Invalid date: {v!r}")
        year, month, day = match.groups()
        normalized = f"{year}-{month or '01'}-{day or '01'}"
        date.fromisoformat(normalized)
        return normalized

    @property
    def is_none(self) -> bool:
        return self.type == DateConstraintType.NONE

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class SearchQuery(BaseModel):
    """A search term as persisted on the Brief."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    term: str
    is_active: bool = Field(default=False, alias="isActive")


class SearchQueryStatus(str, Enum):
    WAITING = "waiting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SearchQueryWithStatus(SearchQuery):
    """Session view of a search term; status and error are never persisted."""
    status: SearchQueryStatus = SearchQueryStatus.WAITING
    error: Optional[str] = None


def with_status(
    query: SearchQuery,
    status: SearchQueryStatus = SearchQueryStatus.WAITING,
    error: Optional[str] = None,
) -> SearchQueryWithStatus:
    return SearchQueryWithStatus(
        id=query.id, term=query.term, is_active=query.is_active, status=status, error=error
    )


def to_persisted(query: SearchQuery) -> SearchQuery:
    """Project a (possibly session-decorated) term down to its durable fields."""
    return SearchQuery(id=query.id, term=query.term, is_active=query.is_active)


class Reference(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    paper_id: str = Field(alias="paperId")
    text: str
    pdf_url: str = Field(default="", alias="pdfUrl")


class ChatRole(str, Enum):
    USER = "user"
    AI = "ai"


class ChatMessage(BaseModel):
    role: ChatRole
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RelevancyReason(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reason: str
    impact_on_score: float = Field(default=0, alias="impactOnScore")


class RelevancyData(BaseModel):
    """LLM relevancy verdict for one paper against one brief."""
    model_config = ConfigDict(populate_by_name=True)

    overall_score: int = Field(ge=0, le=100, alias="overallScore")
    reasons: List[RelevancyReason] = Field(default_factory=list)
    keywords_matched: List[str] = Field(default_factory=list, alias="keywordsMatched")
    confidence_level: int = Field(ge=0, le=100, alias="confidenceLevel")

    @classmethod
    def default(cls, reason: str) -> "RelevancyData":
        """Low-confidence placeholder used when no usable score came back."""
        return cls(
            overall_score=1,
            reasons=[RelevancyReason(reason=reason, impact_on_score=0)],
            keywords_matched=[],
            confidence_level=1,
        )
