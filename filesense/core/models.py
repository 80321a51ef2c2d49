"""
Data models for filesense.

Plain dataclasses shared by every component: interaction events,
scored candidates and indexed files.
"""

import numbers
import posixpath
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ValidationError


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            raise ValidationError(f"Invalid timestamp: {value!r}")
    raise ValidationError(f"Invalid timestamp type: {type(value).__name__}")


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def file_type_of(path: str) -> str:
    """Lowercased extension without the dot, or "unknown"."""
    ext = posixpath.splitext(path.replace("\\", "/"))[1]
    return ext[1:].lower() if len(ext) > 1 else "unknown"


def directory_of(path: str) -> str:
    return posixpath.dirname(path.replace("\\", "/"))


class EventKind(Enum):
    """Kinds of user interaction with a file."""
    OPEN = "open"
    EDIT = "edit"
    SAVE = "save"
    CLOSE = "close"
    SEARCH = "search"
    RECOMMEND_ACCEPT = "recommend_accept"
    RECOMMEND_REJECT = "recommend_reject"

    @classmethod
    def parse(cls, value: Any) -> "EventKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            allowed = ", ".join(k.value for k in cls)
            raise ValidationError(f"Unknown event kind {value!r} (expected one of: {allowed})")

    @property
    def is_access(self) -> bool:
        """Events that count as touching the file's content."""
        return self in (EventKind.OPEN, EventKind.EDIT, EventKind.SAVE)


@dataclass(frozen=True)
class InteractionEvent:
    """A single user action on a file. Immutable once recorded."""

    subject_id: str
    path: str
    kind: EventKind = EventKind.OPEN
    timestamp: datetime = field(default_factory=utcnow)
    duration: float = 0.0  # seconds
    size: Optional[int] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> "InteractionEvent":
        """Return a normalized copy, or raise ValidationError."""
        if not isinstance(self.subject_id, str) or not self.subject_id.strip():
            raise ValidationError("subject_id must be a non-empty string")
        if not isinstance(self.path, str) or not self.path.strip():
            raise ValidationError("path must be a non-empty string")
        if not _is_number(self.duration) or self.duration < 0:
            raise ValidationError(f"duration must be a number >= 0, got {self.duration!r}")
        if self.size is not None and (not isinstance(self.size, int) or isinstance(self.size, bool) or self.size < 0):
            raise ValidationError(f"size must be an integer >= 0, got {self.size!r}")
        if not isinstance(self.context, Mapping):
            raise ValidationError("context must be a mapping")
        return replace(
            self,
            kind=EventKind.parse(self.kind),
            timestamp=parse_timestamp(self.timestamp),
            duration=float(self.duration),
            context=dict(self.context),
        )

    @property
    def file_type(self) -> str:
        return file_type_of(self.path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "path": self.path,
            "kind": self.kind.value,
            "timestamp": self.timestamp.isoformat(),
            "duration": self.duration,
            "size": self.size,
            "context": dict(self.context),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InteractionEvent":
        """Build and validate an event from a plain mapping."""
        if not isinstance(data, dict):
            raise ValidationError("event must be a mapping")
        missing = [k for k in ("subject_id", "path") if not data.get(k)]
        if missing:
            raise ValidationError(f"event missing required fields: {', '.join(missing)}")
        event = cls(
            subject_id=data["subject_id"],
            path=data["path"],
            kind=EventKind.parse(data.get("kind", "open")),
            timestamp=parse_timestamp(data["timestamp"]) if data.get("timestamp") is not None else utcnow(),
            duration=data.get("duration") or 0.0,
            size=data.get("size"),
            context=data.get("context") or {},
        )
        return event.validate()


@dataclass
class Candidate:
    """
    A scored suggestion of a target file.

    Common currency between scoring models, the search path and the
    combination engine. `confidence` is the working score; `relevance`
    is filled in by the personalization pass.
    """

    path: str
    confidence: float
    source: str = ""
    reasoning: str = ""
    tags: List[str] = field(default_factory=list)
    file_type: Optional[str] = None
    category: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    size: Optional[int] = None
    modified: Optional[datetime] = None
    similarity: Optional[float] = None
    relevance: Optional[float] = None
    title: Optional[str] = None
    snippet: Optional[str] = None

    def copy(self) -> "Candidate":
        return replace(self, tags=list(self.tags), categories=list(self.categories))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "confidence": self.confidence,
            "source": self.source,
            "reasoning": self.reasoning,
            "tags": list(self.tags),
            "file_type": self.file_type,
            "category": self.category,
            "categories": list(self.categories),
            "size": self.size,
            "modified": self.modified.isoformat() if self.modified else None,
            "similarity": self.similarity,
            "relevance": self.relevance,
            "title": self.title,
            "snippet": self.snippet,
        }


@dataclass
class FileMetadata:
    """Descriptive metadata stored alongside an indexed file."""

    file_type: str = "unknown"
    size: int = 0
    modified: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    importance: float = 0.5
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_type": self.file_type,
            "size": self.size,
            "modified": self.modified.isoformat() if self.modified else None,
            "tags": list(self.tags),
            "categories": list(self.categories),
            "importance": self.importance,
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], path: str = "") -> "FileMetadata":
        data = dict(data or {})
        modified = data.get("modified")
        file_type = str(data.get("file_type") or "").lower().lstrip(".")
        try:
            return cls(
                file_type=file_type or file_type_of(path),
                size=int(data.get("size") or 0),
                modified=parse_timestamp(modified) if modified is not None else None,
                tags=list(data.get("tags") or []),
                categories=list(data.get("categories") or []),
                importance=float(data.get("importance", 0.5)),
                extra=dict(data.get("extra") or {}),
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, ValidationError):
                raise
            raise ValidationError(f"Invalid file metadata for {path}: {e}") from e


@dataclass
class IndexedFile:
    """A file as known to the search index."""

    path: str
    content: str
    metadata: FileMetadata
    vector: Optional[List[float]] = None
    indexed_at: datetime = field(default_factory=utcnow)
    index_version: int = 0
