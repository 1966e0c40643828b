"""Helpers for building arXiv ``search_query`` strings."""

import re
from datetime import date, datetime
from typing import Optional, Union

from deep_synthesis.schemas.brief import DateConstraint, DateConstraintType
from deep_synthesis.schemas.paper import SearchParams

FIELD_PREFIXES = ("ti", "abs", "au", "cat", "jr", "rn", "id", "all")

_SMART_CHARS = str.maketrans({
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
    "—": "-",
    "–": "-",
})
_FIELD_TERM = re.compile(r"\b((?:%s):)([^\"(\s][^\s)]*)" % "|".join(FIELD_PREFIXES))
_OPERATOR = re.compile(r"\s*\b(AND|OR|ANDNOT|NOT)\b\s*")
_PAREN_OR_AND = re.compile(r"(\(|\)|\bAND\b)", re.IGNORECASE)


def sanitize_query(query: str) -> str:
    """Turn ``AND`` into ``OR`` inside parenthesized groups.

    Models like to over-constrain synonym groups (``(a AND b)``), which makes
    arXiv return nothing; top-level ``AND`` between groups is kept.
    """
    depth = 0
    parts = []
    for token in _PAREN_OR_AND.split(query):
        if token == "(":
            depth += 1
        elif token == ")":
            depth = max(0, depth - 1)
        elif token.upper() == "AND" and depth > 0:
            token = "OR"
        parts.append(token)
    return "".join(parts)


def format_arxiv_query(query: str) -> str:
    """Normalize punctuation, quote bare field terms and space out operators."""
    formatted = query.translate(_SMART_CHARS)
    formatted = _FIELD_TERM.sub(r'\1"\2"', formatted)
    formatted = _OPERATOR.sub(lambda m: f" {m.group(1)} ", formatted)
    return " ".join(formatted.split())


def format_date_for_arxiv(value: Union[str, date, datetime]) -> str:
    """Return ``YYYYMMDD`` for an ISO date string or a date."""
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.strftime("%Y%m%d")
    return date.fromisoformat(value.strip()[:10]).strftime("%Y%m%d")


def build_date_filter(constraint: Optional[DateConstraint]) -> str:
    """Translate a date constraint into an arXiv ``submittedDate`` clause.

    Returns an empty string when there is nothing to filter on.
    """
    if constraint is None:
        return ""

    kind = constraint.type
    if kind == DateConstraintType.BEFORE and constraint.before_date:
        return f" AND submittedDate:[* TO {format_date_for_arxiv(constraint.before_date)}]"
    if kind == DateConstraintType.AFTER and constraint.after_date:
        return f" AND submittedDate:[{format_date_for_arxiv(constraint.after_date)} TO *]"
    if kind == DateConstraintType.BETWEEN and constraint.after_date and constraint.before_date:
        after = format_date_for_arxiv(constraint.after_date)
        before = format_date_for_arxiv(constraint.before_date)
        return f" AND submittedDate:[{after} TO {before}]"
    return ""


def apply_date_filter(query: str, constraint: Optional[DateConstraint]) -> str:
    date_filter = build_date_filter(constraint)
    if not date_filter:
        return query
    return f"({query}){date_filter}"


def fallback_query(query: str) -> SearchParams:
    """Search every field for the raw research question."""
    return SearchParams(
        query=sanitize_query(f"all:{query.strip()}"),
        max_results=100,
        sort_by="relevance",
        sort_order="descending",
    )
