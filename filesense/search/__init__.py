"""
Semantic search for filesense.

QueryProcessor understands the query, SemanticIndexer holds the files,
the ranker personalizes and SemanticSearch ties them together.
"""

from .index import SemanticIndexer, extract_snippet, extract_title
from .query import DEFAULT_SYNONYMS, ProcessedQuery, QueryProcessor
from .ranker import personal_score, rank_results
from .service import SearchEvent, SemanticSearch, apply_filters, validate_options

__all__ = [
    "QueryProcessor",
    "ProcessedQuery",
    "DEFAULT_SYNONYMS",
    "SemanticIndexer",
    "extract_title",
    "extract_snippet",
    "personal_score",
    "rank_results",
    "SemanticSearch",
    "SearchEvent",
    "apply_filters",
    "validate_options",
]
