"""SQLAlchemy models for all database tables."""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from deep_synthesis.core.database import Base
from deep_synthesis.schemas.brief import (
    ChatMessage,
    DateConstraint,
    Reference,
    RelevancyData,
    SearchQuery,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Brief(Base):
    """One research question through to its synthesized review."""

    __tablename__ = "briefs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String, nullable=False, default="")
    query: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # [{id, term, is_active}]
    search_queries: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    date_constraint: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    # [{paperId, text, pdfUrl}]
    references: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    review: Mapped[str] = mapped_column(Text, nullable=False, default="")
    bibtex: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # [{role, content, timestamp}]
    chat_messages: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_opened_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    associations: Mapped[list["PaperBriefAssociation"]] = relationship(
        "PaperBriefAssociation", back_populates="brief", cascade="all, delete-orphan"
    )

    def get_search_queries(self) -> list[SearchQuery]:
        return [SearchQuery.model_validate(item) for item in self.search_queries or []]

    def get_date_constraint(self) -> Optional[DateConstraint]:
        if not self.date_constraint:
            return None
        return DateConstraint.model_validate(self.date_constraint)

    def get_references(self) -> list[Reference]:
        return [Reference.model_validate(item) for item in self.references or []]

    def get_chat_messages(self) -> list[ChatMessage]:
        return [ChatMessage.model_validate(item) for item in self.chat_messages or []]


class Paper(Base):
    """External-index record, unique per arXiv id."""

    __tablename__ = "papers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    arxiv_id: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    abstract: Mapped[str] = mapped_column(Text, nullable=False, default="")
    authors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    affiliations: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    year: Mapped[str] = mapped_column(String, nullable=False, default="")
    submitted_date: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    last_updated_date: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    pdf_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    abstract_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    doi: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    primary_category: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    categories: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    links: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    journal_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String, nullable=False, default="arxiv")
    bibtex: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    associations: Mapped[list["PaperBriefAssociation"]] = relationship(
        "PaperBriefAssociation", back_populates="paper", cascade="all, delete-orphan"
    )


class PaperBriefAssociation(Base):
    """Join between a Brief and a Paper, carrying selection and relevancy."""

    __tablename__ = "paper_brief_associations"
    __table_args__ = (
        UniqueConstraint("brief_id", "paper_id", name="uq_paper_brief_association"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    brief_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("briefs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    paper_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("papers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # search terms that surfaced this paper
    search_query: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_selected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    relevancy_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    relevancy_justification: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    relevancy_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    brief: Mapped["Brief"] = relationship("Brief", back_populates="associations")
    paper: Mapped["Paper"] = relationship("Paper", back_populates="associations")

    @property
    def is_scored(self) -> bool:
        return self.relevancy_score is not None and self.relevancy_data is not None

    def get_relevancy_data(self) -> Optional[RelevancyData]:
        if not self.relevancy_data:
            return None
        return RelevancyData.model_validate(self.relevancy_data)


class ProviderSettingsRecord(Base):
    """Persisted credentials and preferences for one LLM provider."""

    __tablename__ = "provider_settings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    provider: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    api_key: Mapped[str] = mapped_column(String, nullable=False, default="")
    selected_model: Mapped[str] = mapped_column(String, nullable=False, default="")
    custom_endpoint: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    organization_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    enabled_models: Mapped[dict[str, bool]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
