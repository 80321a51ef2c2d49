"""
Personalization pass.

Blends a candidate's base score with how well it fits the subject's
click history. Averaging (rather than adding) keeps a strong base signal
from being drowned out by personal preference.
"""

from datetime import datetime
from typing import List, Optional

from ..core.models import Candidate, utcnow
from ..profiles.profile import Profile

TYPE_WEIGHT = 0.3
CATEGORY_WEIGHT = 0.2
RECENCY_WEIGHT = 0.1
RECENCY_WINDOW_DAYS = 30.0

PERSONALIZATION_LEVELS = {"low": 0.5, "medium": 1.0, "high": 1.5}


def recency_score(modified: Optional[datetime], now: datetime) -> float:
    """1 for just-modified files, falling to 0 at 30 days. 0 if unknown."""
    if modified is None:
        return 0.0
    days = (now - modified).total_seconds() / 86400.0
    return min(1.0, max(0.0, 1.0 - days / RECENCY_WINDOW_DAYS))


def personal_score(candidate: Candidate, profile: Profile, now: Optional[datetime] = None) -> float:
    """0.3 * type weight + 0.2 * sum of category weights + 0.1 * recency."""
    now = now or utcnow()
    weights = profile.click_weights
    score = 0.0
    if candidate.file_type:
        score += TYPE_WEIGHT * weights.get(candidate.file_type, 0.0)
    categories = candidate.categories or ([candidate.category] if candidate.category else [])
    for category in categories:
        score += CATEGORY_WEIGHT * weights.get(category, 0.0)
    score += RECENCY_WEIGHT * recency_score(candidate.modified, now)
    return score


def rank_results(
    candidates: List[Candidate],
    profile: Optional[Profile],
    now: Optional[datetime] = None,
    level: str = "medium",
) -> List[Candidate]:
    """
    Set relevance on every candidate and order by it.

    With a profile: relevance = (base + personal * level factor) / 2.
    Without one: relevance = base. Ties keep the incoming order.
    """
    now = now or utcnow()
    factor = PERSONALIZATION_LEVELS.get(level, 1.0)
    for candidate in candidates:
        if profile is not None:
            personal = personal_score(candidate, profile, now) * factor
            candidate.relevance = (candidate.confidence + personal) / 2.0
        else:
            candidate.relevance = candidate.confidence
    return sorted(candidates, key=lambda c: c.relevance, reverse=True)
