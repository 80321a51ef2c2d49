"""
Access pattern mining for filesense.

Learns which files are touched back to back, and how strongly, so the
ensemble can predict the next access.
"""

from .types import AccessPattern, pattern_confidence
from .learner import PatternLearner

__all__ = [
    "AccessPattern",
    "pattern_confidence",
    "PatternLearner",
]
