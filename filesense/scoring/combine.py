"""
Combination & ranking of ensemble candidates.

Pure functions: no locks, no state. Given the weighted candidates of
every model, produce one ranked list with each path at most once.
"""

from collections import OrderedDict
from typing import Iterable, List, Optional

from ..core.models import Candidate

COMBINED_SOURCE = "combined"


def merge_group(group: List[Candidate], separator: str = "; ") -> Candidate:
    """
    Merge candidates for the same path.

    Confidence is the arithmetic mean. Reasons are joined in the order
    the candidates arrived (registry order), tags are unioned keeping
    first-seen order, and the source becomes "combined".
    """
    first = group[0]
    tags: List[str] = []
    for candidate in group:
        for tag in candidate.tags:
            if tag not in tags:
                tags.append(tag)
    similarities = [c.similarity for c in group if c.similarity is not None]
    merged = first.copy()
    merged.confidence = sum(c.confidence for c in group) / len(group)
    merged.reasoning = "Combined: " + separator.join(c.reasoning for c in group)
    merged.tags = tags
    merged.source = COMBINED_SOURCE
    merged.similarity = max(similarities) if similarities else None
    return merged


def combine_candidates(
    candidates: Iterable[Candidate],
    min_confidence: float = 0.0,
    max_results: Optional[int] = None,
    separator: str = "; ",
) -> List[Candidate]:
    """
    Group by path, fuse, sort, filter, then truncate.

    Args:
        candidates: Weighted candidates in registry order
        min_confidence: Drop anything scoring below this
        max_results: Keep at most this many (None = no cap)
        separator: Joins member reasons of merged candidates

    Returns:
        Ranked candidates, highest confidence first, unique paths.
        Equal confidences keep discovery order.
    """
    groups: "OrderedDict[str, List[Candidate]]" = OrderedDict()
    for candidate in candidates:
        groups.setdefault(candidate.path, []).append(candidate)

    combined = [
        group[0] if len(group) == 1 else merge_group(group, separator)
        for group in groups.values()
    ]
    combined.sort(key=lambda c: c.confidence, reverse=True)

    # Filter before truncating so low scorers never crowd out valid ones
    filtered = [c for c in combined if c.confidence >= min_confidence]
    if max_results is not None:
        filtered = filtered[:max(0, max_results)]
    return filtered
