"""Normalized external-index paper records and search parameters."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class PaperLink(BaseModel):
    href: str
    rel: Optional[str] = None
    type: Optional[str] = None
    title: Optional[str] = None


class Category(BaseModel):
    term: str
    scheme: Optional[str] = None


class PaperRecord(BaseModel):
    """A paper as returned by the external index, before persistence."""
    arxiv_id: str
    title: str
    abstract: str = ""
    authors: List[str] = Field(min_length=1)
    affiliations: List[str] = Field(default_factory=list)
    year: str = ""
    submitted_date: Optional[str] = None
    last_updated_date: Optional[str] = None
    links: List[PaperLink] = Field(default_factory=list)
    pdf_url: Optional[str] = None
    abstract_url: Optional[str] = None
    doi: Optional[str] = None
    primary_category: Optional[Category] = None
    categories: List[Category] = Field(default_factory=list)
    comments: Optional[str] = None
    journal_ref: Optional[str] = None
    source: str = "arxiv"
    bibtex: str = ""


SortBy = Literal["relevance", "lastUpdatedDate", "submittedDate"]
SortOrder = Literal["ascending", "descending"]


class SearchParams(BaseModel):
    query: str
    start: Optional[int] = Field(default=None, ge=0)
    max_results: Optional[int] = Field(default=None, gt=0)
    sort_by: Optional[SortBy] = None
    sort_order: Optional[SortOrder] = None


class SearchResponse(BaseModel):
    papers: List[PaperRecord] = Field(default_factory=list)
    total_results: int = 0
    start_index: int = 0
    items_per_page: int = 0
