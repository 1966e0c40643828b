from deep_synthesis.services.search.arxiv_client import ArxivClient, format_bibtex
from deep_synthesis.services.search.rate_limiter import BatchSearchResult, SearchRateLimiter

__all__ = ["ArxivClient", "BatchSearchResult", "SearchRateLimiter", "format_bibtex"]
