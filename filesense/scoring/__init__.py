"""
Ensemble scoring for filesense.

Independent models propose candidates; the registry weights them and the
combiner fuses them into one ranked list.
"""

from .base import GrowingAccuracyModel, ScoringModel
from .combine import combine_candidates, merge_group
from .external import ExternalModel
from .prediction import (
    ContextModel,
    FrequencyModel,
    PatternModel,
    TemporalModel,
    WorkflowModel,
    default_prediction_models,
)
from .recommendation import (
    CollaborativeModel,
    ContentModel,
    ContextAwareModel,
    GraphModel,
    RecentActivityModel,
    default_recommendation_models,
)
from .registry import ModelRegistry

__all__ = [
    "ScoringModel",
    "GrowingAccuracyModel",
    "ModelRegistry",
    "combine_candidates",
    "merge_group",
    "ExternalModel",
    # Prediction
    "FrequencyModel",
    "PatternModel",
    "TemporalModel",
    "ContextModel",
    "WorkflowModel",
    "default_prediction_models",
    # Recommendation
    "CollaborativeModel",
    "ContentModel",
    "RecentActivityModel",
    "GraphModel",
    "ContextAwareModel",
    "default_recommendation_models",
]
