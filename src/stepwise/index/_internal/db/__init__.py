"""Relational store access for the workshop index."""

from stepwise.index._internal.db.database import BulkWriter, Database
from stepwise.index._internal.db.queries import IndexQueries, ScopeRow
from stepwise.index._internal.db.runs import IndexRunCounts, IndexRunStore
from stepwise.index._internal.db.writer import IndexWriter

__all__ = [
    "BulkWriter",
    "Database",
    "IndexQueries",
    "IndexRunCounts",
    "IndexRunStore",
    "IndexWriter",
    "ScopeRow",
]
