"""
Configuration for filesense.

Defaults live on the pydantic models; load_config() overlays FILESENSE_*
environment variables on top of them.
"""

import os
from typing import Dict, Literal, Mapping, Optional

from pydantic import BaseModel, Field, field_validator


class HistoryConfig(BaseModel):
    capacity: int = Field(default=10000, ge=1, description="Events kept before batch eviction")
    evict_fraction: float = Field(default=0.1, gt=0.0, le=1.0, description="Share of capacity dropped per eviction")


class PredictionConfig(BaseModel):
    min_confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    max_results: int = Field(default=10, ge=1, le=100)
    learning_enabled: bool = True
    context_aware: bool = True
    model_weights: Dict[str, float] = Field(default_factory=dict, description="Per-model weight overrides")
    prediction_window_seconds: float = Field(default=3600, gt=0)

    @field_validator("model_weights")
    @classmethod
    def validate_weights(cls, v):
        for key, weight in v.items():
            if weight < 0:
                raise ValueError(f"weight for '{key}' must be non-negative")
        return v


class RecommendationConfig(BaseModel):
    max_results: int = Field(default=10, ge=1, le=100)
    min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    context_window_seconds: float = Field(default=3600, gt=0)
    model_weights: Dict[str, float] = Field(default_factory=dict)
    personalization_level: Literal["low", "medium", "high"] = "medium"
    real_time_updates: bool = True

    @field_validator("model_weights")
    @classmethod
    def validate_weights(cls, v):
        for key, weight in v.items():
            if weight < 0:
                raise ValueError(f"weight for '{key}' must be non-negative")
        return v


class SearchConfig(BaseModel):
    vector_dimensions: int = Field(default=384, ge=1)
    max_results: int = Field(default=20, ge=1, le=1000)
    min_similarity: float = Field(default=0.1, ge=-1.0, le=1.0)
    query_expansion: bool = True
    personalized_ranking: bool = True
    embedding_timeout_seconds: float = Field(default=3.0, gt=0)
    vector_backend: Literal["simple", "faiss"] = "simple"


class EngineConfig(BaseModel):
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    prediction: PredictionConfig = Field(default_factory=PredictionConfig)
    recommendation: RecommendationConfig = Field(default_factory=RecommendationConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    retraining_interval_seconds: float = Field(default=3600, gt=0)
    default_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    ai_timeout_seconds: float = Field(default=3.0, gt=0, description="Wait for the AI backend per scoring request")
    io_workers: int = Field(default=8, ge=1, description="Threads for embedding and AI backend calls")
    embedding_provider: Literal["simple", "local", "backend", "none"] = "simple"


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(env: Optional[Mapping[str, str]] = None) -> EngineConfig:
    """
    Build an EngineConfig from FILESENSE_* environment variables.

    Unset variables keep the model defaults. Invalid values raise
    pydantic.ValidationError.
    """
    env = os.environ if env is None else env
    data: Dict[str, Dict] = {"history": {}, "prediction": {}, "recommendation": {}, "search": {}}

    capacity = env.get("FILESENSE_HISTORY_CAPACITY")
    if capacity:
        data["history"]["capacity"] = capacity

    min_confidence = env.get("FILESENSE_MIN_CONFIDENCE")
    if min_confidence:
        data["prediction"]["min_confidence"] = min_confidence

    max_results = env.get("FILESENSE_MAX_RESULTS")
    if max_results:
        data["prediction"]["max_results"] = max_results
        data["recommendation"]["max_results"] = max_results

    learning = env.get("FILESENSE_LEARNING_ENABLED")
    if learning:
        data["prediction"]["learning_enabled"] = _flag(learning)

    timeout = env.get("FILESENSE_EMBEDDING_TIMEOUT")
    if timeout:
        data["search"]["embedding_timeout_seconds"] = timeout

    backend = env.get("FILESENSE_VECTOR_BACKEND")
    if backend:
        data["search"]["vector_backend"] = backend

    interval = env.get("FILESENSE_RETRAIN_INTERVAL")
    if interval:
        data["retraining_interval_seconds"] = interval

    ai_timeout = env.get("FILESENSE_AI_TIMEOUT")
    if ai_timeout:
        data["ai_timeout_seconds"] = ai_timeout

    provider = env.get("FILESENSE_EMBEDDING_PROVIDER")
    if provider:
        data["embedding_provider"] = provider

    return EngineConfig(**data)
