"""Core data structures shared across modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class CandidateSource(str, Enum):
    LIFE_CONTEXT = "life_context"
    USER_MEMORY = "user_memory"
    BIBLE_READING_SESSION = "bible_reading_session"
    ARTIFACT = "artifact"
    CONVERSATION = "conversation"


class CandidateKind(str, Enum):
    """Variant of a candidate, resolved from its source and artifact type."""

    LIFE = "life"
    MEMORY = "memory"
    READING_SESSION = "reading_session"
    NOTE = "note"
    HIGHLIGHT = "highlight"
    CONVERSATION = "conversation"
    OTHER = "other"


_ARTIFACT_KINDS = {
    "verse_note": CandidateKind.NOTE,
    "note": CandidateKind.NOTE,
    "verse_highlight": CandidateKind.HIGHLIGHT,
    "highlight": CandidateKind.HIGHLIGHT,
    "conversation_session_summary": CandidateKind.CONVERSATION,
    "session_summary": CandidateKind.CONVERSATION,
}

_SOURCE_KINDS = {
    CandidateSource.LIFE_CONTEXT.value: CandidateKind.LIFE,
    CandidateSource.USER_MEMORY.value: CandidateKind.MEMORY,
    CandidateSource.BIBLE_READING_SESSION.value: CandidateKind.READING_SESSION,
    CandidateSource.CONVERSATION.value: CandidateKind.CONVERSATION,
}


@dataclass(frozen=True)
class RawCandidate:
    """Normalized input record handed over by a candidate producer."""

    id: str
    source: str
    preview: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    features: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> CandidateKind:
        if self.source == CandidateSource.ARTIFACT.value:
            artifact_type = self.metadata.get("artifactType")
            if isinstance(artifact_type, str):
                return _ARTIFACT_KINDS.get(artifact_type, CandidateKind.OTHER)
            return CandidateKind.OTHER
        return _SOURCE_KINDS.get(self.source, CandidateKind.OTHER)


@dataclass(frozen=True)
class ParsedReference:
    """Structured scripture reference, e.g. JHN 3:16-18."""

    book_code: str
    chapter: int
    verse_start: Optional[int] = None
    verse_end: Optional[int] = None


@dataclass(frozen=True)
class ReadingSession:
    """Reading-session candidate with its location and timing resolved."""

    candidate: RawCandidate
    book_id: str
    chapter: int
    read_ranges: Tuple[str, ...] = ()
    local_date: Optional[str] = None
    ended_at: Optional[str] = None
    ended_at_ms: Optional[float] = None
    duration_seconds: Optional[int] = None
    status: Optional[str] = None
    recency_score: Optional[float] = None

    @property
    def id(self) -> str:
        return self.candidate.id


def _compact(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    return {key: value for key, value in pairs if value is not None}


@dataclass(frozen=True)
class PlanHints:
    mode: Optional[str] = None
    length: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact([("mode", self.mode), ("length", self.length)])


@dataclass(frozen=True)
class LifeEntry:
    id: str
    preview: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "preview": self.preview}


@dataclass(frozen=True)
class MemoryEntry:
    id: str
    preview: str
    key: Optional[str] = None
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact([("id", self.id), ("preview", self.preview), ("key", self.key), ("score", self.score)])


@dataclass(frozen=True)
class ConversationEntry:
    id: str
    timestamp: Optional[str] = None
    preview: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact([("id", self.id), ("timestamp", self.timestamp), ("preview", self.preview)])


@dataclass(frozen=True)
class Anchor:
    """A reading session, or the representative of a cluster of sessions."""

    id: str
    ref: Optional[str] = None
    duration_seconds: Optional[int] = None
    status: Optional[str] = None
    timestamp: Optional[str] = None
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            [
                ("id", self.id),
                ("ref", self.ref),
                ("durationSeconds", self.duration_seconds),
                ("status", self.status),
                ("timestamp", self.timestamp),
                ("score", self.score),
            ]
        )


@dataclass(frozen=True)
class SupportArtifact:
    """A note or highlight, optionally riding along with an anchor."""

    id: str
    kind: str
    ref: Optional[str] = None
    timestamp: Optional[str] = None
    summary: Optional[str] = None
    tags: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            [
                ("id", self.id),
                ("kind", self.kind),
                ("ref", self.ref),
                ("timestamp", self.timestamp),
                ("summary", self.summary),
                ("tags", list(self.tags) if self.tags else None),
            ]
        )


@dataclass(frozen=True)
class ContextPack:
    """Bounded evidence payload handed to the downstream generator."""

    plan: Optional[PlanHints] = None
    life: Tuple[LifeEntry, ...] = ()
    memory: Tuple[MemoryEntry, ...] = ()
    anchors: Tuple[Anchor, ...] = ()
    artifacts: Tuple[SupportArtifact, ...] = ()
    conversations: Tuple[ConversationEntry, ...] = ()
    allowed_actions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON-ready pack. Empty fields are omitted entirely."""
        out: Dict[str, Any] = {}
        plan = self.plan.to_dict() if self.plan else {}
        if plan:
            out["plan"] = plan
        for key, items in (
            ("life", self.life),
            ("memory", self.memory),
            ("anchors", self.anchors),
            ("artifacts", self.artifacts),
            ("conversations", self.conversations),
        ):
            if items:
                out[key] = [item.to_dict() for item in items]
        if self.allowed_actions:
            out["allowedActions"] = list(self.allowed_actions)
        return out
