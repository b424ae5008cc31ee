"""Retrieval and topic search over the workshop index."""

from stepwise.retrieval.errors import (
    ContextNotFoundError,
    RetrievalError,
    ScopeNotFoundError,
    SearchInputError,
)
from stepwise.retrieval.ops import ContextResult, RetrievalService, WorkshopList, WorkshopSummary
from stepwise.retrieval.search import TopicMatch, TopicSearch, TopicSearchResult
from stepwise.retrieval.truncation import RetrievalSection, clamp_max_chars, truncate_sections

__all__ = [
    "ContextNotFoundError",
    "ContextResult",
    "RetrievalError",
    "RetrievalSection",
    "RetrievalService",
    "ScopeNotFoundError",
    "SearchInputError",
    "TopicMatch",
    "TopicSearch",
    "TopicSearchResult",
    "WorkshopList",
    "WorkshopSummary",
    "clamp_max_chars",
    "truncate_sections",
]
