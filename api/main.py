"""
FileSense API

HTTP wrapper for the FileSense engine: record interactions, get
predictions and recommendations, index and search files.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

from filesense import (
    Candidate,
    DeadlineExceeded,
    FileSenseEngine,
    NotFoundError,
    ValidationError,
    load_config,
)

# =============================================================================
# Configuration
# =============================================================================

API_KEY = os.environ.get("FILESENSE_API_KEY")
LOG_LEVEL = os.environ.get("FILESENSE_LOG_LEVEL", "INFO")
ALLOWED_ORIGINS = os.environ.get("ALLOWED_ORIGINS", "*").split(",")
ENABLE_DOCS = os.environ.get("ENABLE_DOCS")
BACKGROUND_RETRAINING = os.environ.get("FILESENSE_BACKGROUND_RETRAINING", "1").lower() in ("1", "true", "yes")

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_engine: Optional[FileSenseEngine] = None


def get_engine() -> FileSenseEngine:
    if _engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return _engine


def validate_api_key(x_api_key: Optional[str] = Header(default=None, alias="X-API-Key")) -> Optional[str]:
    """Require X-API-Key only when FILESENSE_API_KEY is set."""
    if API_KEY and x_api_key != API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return x_api_key


def run_engine_call(fn, *args, **kwargs):
    """Call into the engine and map its errors to HTTP status codes."""
    try:
        return fn(*args, **kwargs)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DeadlineExceeded as e:
        raise HTTPException(status_code=504, detail=str(e))


# =============================================================================
# Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown."""
    global _engine
    _engine = FileSenseEngine(load_config())
    if BACKGROUND_RETRAINING:
        _engine.start()
    yield
    _engine.close()
    _engine = None


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="FileSense API",
    description="Adaptive file recommendation, next-access prediction and semantic file search.",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if ENABLE_DOCS else None,
    redoc_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-API-Key"],
)


# =============================================================================
# Request/Response Models
# =============================================================================

class InteractionRequest(BaseModel):
    subject_id: str = Field(..., description="Who acted", min_length=1, max_length=200)
    path: str = Field(..., description="File acted on", min_length=1, max_length=4096)
    kind: str = Field(default="open", description="open, edit, save, close, search, recommend_accept, recommend_reject")
    timestamp: Optional[str] = Field(default=None, description="ISO 8601; defaults to now")
    duration: float = Field(default=0.0, ge=0.0, description="Seconds spent")
    size: Optional[int] = Field(default=None, ge=0, description="File size in bytes")
    context: Dict[str, Any] = Field(default_factory=dict, description="project, working_directory, category, ...")

    @field_validator("context")
    @classmethod
    def validate_context(cls, v):
        if len(v) > 20:
            raise ValueError("context may contain at most 20 keys")
        return v


class SearchRequest(BaseModel):
    query: str = Field(..., description="Free-text query", min_length=1, max_length=2000)
    subject_id: str = Field(..., min_length=1, max_length=200)
    file_types: Optional[List[str]] = Field(default=None, description="Only these extensions")
    max_size: Optional[int] = Field(default=None, ge=0, description="Maximum file size in bytes")
    timeout: Optional[float] = Field(default=None, gt=0, le=60)


class IndexRequest(BaseModel):
    path: str = Field(..., min_length=1, max_length=4096)
    content: str = Field(..., description="Extracted text or summary", max_length=100000)
    metadata: Dict[str, Any] = Field(default_factory=dict, description="file_type, size, modified, tags, categories")


class ClickRequest(BaseModel):
    subject_id: str = Field(..., min_length=1, max_length=200)
    path: str = Field(..., min_length=1, max_length=4096)


class CandidateResponse(BaseModel):
    path: str
    confidence: float
    source: str
    reasoning: str
    tags: List[str] = []
    file_type: Optional[str] = None
    relevance: Optional[float] = None
    similarity: Optional[float] = None
    title: Optional[str] = None
    snippet: Optional[str] = None


class CandidateListResponse(BaseModel):
    subject_id: str
    count: int
    results: List[CandidateResponse]


def to_response(subject_id: str, candidates: List[Candidate]) -> CandidateListResponse:
    return CandidateListResponse(
        subject_id=subject_id,
        count=len(candidates),
        results=[
            CandidateResponse(
                path=c.path,
                confidence=round(c.confidence, 4),
                source=c.source,
                reasoning=c.reasoning,
                tags=list(c.tags),
                file_type=c.file_type,
                relevance=round(c.relevance, 4) if c.relevance is not None else None,
                similarity=round(c.similarity, 4) if c.similarity is not None else None,
                title=c.title,
                snippet=c.snippet,
            )
            for c in candidates
        ],
    )


# =============================================================================
# Public Endpoints (no auth)
# =============================================================================

@app.get("/")
async def root():
    """API status."""
    return {
        "service": "FileSense API",
        "status": "operational",
        "version": "0.1.0",
        "capabilities": ["next_access_prediction", "recommendations", "semantic_search", "pattern_learning"],
        "endpoints": {
            "interactions": "POST /v1/interactions",
            "recommendations": "GET /v1/recommendations/{subject_id}",
            "predictions": "GET /v1/predictions/{subject_id}",
            "search": "POST /v1/search",
            "index": "POST /v1/index",
            "clicks": "POST /v1/clicks",
            "metrics": "GET /v1/metrics",
        },
        "auth": "X-API-Key header" if API_KEY else "none",
    }


@app.get("/health")
async def health():
    """Health check."""
    return {"status": "healthy"}


# =============================================================================
# Engine Endpoints
# =============================================================================

@app.post("/v1/interactions")
def record_interaction(
    request: InteractionRequest,
    _key: Optional[str] = Depends(validate_api_key),
    engine: FileSenseEngine = Depends(get_engine),
):
    """Record a file interaction (open, edit, save, ...)."""
    event = run_engine_call(engine.record_interaction, request.model_dump())
    return {"recorded": True, "event": event.to_dict()}


@app.get("/v1/recommendations/{subject_id}", response_model=CandidateListResponse)
def get_recommendations(
    subject_id: str,
    timeout: Optional[float] = None,
    _key: Optional[str] = Depends(validate_api_key),
    engine: FileSenseEngine = Depends(get_engine),
):
    """Files worth the subject's attention."""
    results = run_engine_call(engine.get_recommendations, subject_id, timeout=timeout)
    return to_response(subject_id, results)


@app.get("/v1/predictions/{subject_id}", response_model=CandidateListResponse)
def predict_next_access(
    subject_id: str,
    timeout: Optional[float] = None,
    _key: Optional[str] = Depends(validate_api_key),
    engine: FileSenseEngine = Depends(get_engine),
):
    """Files the subject is likely to open next."""
    results = run_engine_call(engine.predict_next_access, subject_id, timeout=timeout)
    return to_response(subject_id, results)


@app.post("/v1/search", response_model=CandidateListResponse)
def search(
    request: SearchRequest,
    _key: Optional[str] = Depends(validate_api_key),
    engine: FileSenseEngine = Depends(get_engine),
):
    """Semantic file search, personalized for the subject."""
    options = {}
    if request.file_types is not None:
        options["file_types"] = request.file_types
    if request.max_size is not None:
        options["max_size"] = request.max_size
    results = run_engine_call(
        engine.search, request.query, request.subject_id, options or None, timeout=request.timeout
    )
    return to_response(request.subject_id, results)


@app.post("/v1/index")
def index_file(
    request: IndexRequest,
    _key: Optional[str] = Depends(validate_api_key),
    engine: FileSenseEngine = Depends(get_engine),
):
    """Add or refresh a file in the search index."""
    indexed = run_engine_call(engine.index_file, request.path, request.content, request.metadata)
    return {
        "path": indexed.path,
        "index_version": indexed.index_version,
        "vectorized": indexed.vector is not None,
        "metadata": indexed.metadata.to_dict(),
    }


@app.post("/v1/clicks")
def record_click(
    request: ClickRequest,
    _key: Optional[str] = Depends(validate_api_key),
    engine: FileSenseEngine = Depends(get_engine),
):
    """Record a click on a search result."""
    if not run_engine_call(engine.record_click, request.subject_id, request.path):
        raise HTTPException(status_code=404, detail=f"File not indexed: {request.path}")
    return {"recorded": True}


@app.get("/v1/metrics")
def get_metrics(
    _key: Optional[str] = Depends(validate_api_key),
    engine: FileSenseEngine = Depends(get_engine),
):
    """Engine metrics."""
    return engine.get_metrics()


# =============================================================================
# Run with: uvicorn api.main:app --reload --port 8000
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
