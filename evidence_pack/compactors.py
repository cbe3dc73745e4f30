"""Source-specific reducers from raw candidates to compact pack entries."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

from .config import CapsConfig, TruncationConfig
from .ingest import as_number, as_string, candidate_created_at, timestamp_ms
from .references import format_reference, parse_reference
from .schemas import (
    CandidateKind,
    ConversationEntry,
    LifeEntry,
    MemoryEntry,
    RawCandidate,
    SupportArtifact,
)

logger = logging.getLogger(__name__)

ELLIPSIS = "…"

T = TypeVar("T")


def truncate(value: str, max_chars: int) -> str:
    """Cut to ``max_chars`` and append an ellipsis when anything was dropped."""
    if len(value) <= max_chars:
        return value
    return f"{value[:max_chars]}{ELLIPSIS}"


def _newest_first(items: Sequence[Tuple[Optional[str], T]]) -> List[T]:
    """Stable sort by timestamp descending; missing or bad timestamps go last."""

    def key(pair: Tuple[Optional[str], T]) -> float:
        ms = timestamp_ms(pair[0])
        return -ms if ms is not None else float("inf")

    return [item for _, item in sorted(items, key=key)]


def _of_kind(candidates: Iterable[RawCandidate], kind: CandidateKind) -> List[RawCandidate]:
    return [c for c in candidates if c.kind == kind]


def compact_life(
    candidates: Iterable[RawCandidate],
    truncation: Optional[TruncationConfig] = None,
    caps: Optional[CapsConfig] = None,
) -> List[LifeEntry]:
    truncation = truncation or TruncationConfig()
    caps = caps or CapsConfig()
    items = [
        (candidate_created_at(c), LifeEntry(id=c.id, preview=truncate(c.preview, truncation.preview_max_chars)))
        for c in _of_kind(candidates, CandidateKind.LIFE)
        if as_string(c.preview)
    ]
    return _newest_first(items)[: caps.life]


def _memory_key(candidate: RawCandidate) -> Optional[str]:
    value = candidate.metadata.get("value")
    if isinstance(value, dict):
        theme = as_string(value.get("theme"))
        if theme:
            return theme.strip()
    return as_string(candidate.metadata.get("memoryType"))


def compact_memory(
    candidates: Iterable[RawCandidate],
    truncation: Optional[TruncationConfig] = None,
    caps: Optional[CapsConfig] = None,
) -> List[MemoryEntry]:
    truncation = truncation or TruncationConfig()
    caps = caps or CapsConfig()
    items = []
    for c in _of_kind(candidates, CandidateKind.MEMORY):
        if not as_string(c.preview):
            continue
        entry = MemoryEntry(
            id=c.id,
            preview=truncate(c.preview, truncation.preview_max_chars),
            key=_memory_key(c),
            score=as_number(c.metadata.get("strength")),
        )
        items.append((candidate_created_at(c), entry))
    return _newest_first(items)[: caps.memory]


def compact_conversations(
    candidates: Iterable[RawCandidate],
    truncation: Optional[TruncationConfig] = None,
    caps: Optional[CapsConfig] = None,
) -> List[ConversationEntry]:
    truncation = truncation or TruncationConfig()
    caps = caps or CapsConfig()
    items = []
    for c in _of_kind(candidates, CandidateKind.CONVERSATION):
        timestamp = candidate_created_at(c)
        preview = truncate(c.preview, truncation.preview_max_chars) if as_string(c.preview) else None
        if not timestamp and not preview:
            continue
        items.append((timestamp, ConversationEntry(id=c.id, timestamp=timestamp, preview=preview)))
    return _newest_first(items)[: caps.conversations]


def _artifact_ref(candidate: RawCandidate, max_chars: int) -> Optional[str]:
    refs = candidate.metadata.get("scriptureRefs")
    if not isinstance(refs, list) or not refs or not isinstance(refs[0], str):
        return None
    first = refs[0]
    parsed = parse_reference(first)
    if parsed:
        return format_reference(parsed)
    return truncate(first, max_chars) if first.strip() else None


def _artifact_tags(candidate: RawCandidate, max_tags: int) -> Optional[Tuple[str, ...]]:
    raw = candidate.metadata.get("noteTags")
    if not isinstance(raw, list) or not all(isinstance(tag, str) for tag in raw):
        return None
    tags = tuple(tag for tag in raw if tag)[:max_tags]
    return tags or None


def compact_artifacts(
    candidates: Iterable[RawCandidate],
    truncation: Optional[TruncationConfig] = None,
    caps: Optional[CapsConfig] = None,
) -> List[SupportArtifact]:
    """Notes and highlights with a reformatted reference, newest first."""
    truncation = truncation or TruncationConfig()
    caps = caps or CapsConfig()
    items = []
    for c in candidates:
        if c.kind not in (CandidateKind.NOTE, CandidateKind.HIGHLIGHT):
            continue
        timestamp = candidate_created_at(c)
        ref = _artifact_ref(c, truncation.ref_max_chars)
        if not timestamp and not ref:
            continue
        summary = as_string(c.metadata.get("noteSummary"))
        artifact = SupportArtifact(
            id=c.id,
            kind="note" if c.kind == CandidateKind.NOTE else "highlight",
            ref=ref,
            timestamp=timestamp,
            summary=truncate(summary, truncation.preview_max_chars) if summary else None,
            tags=_artifact_tags(c, truncation.max_tags),
        )
        items.append((timestamp, artifact))
    artifacts = _newest_first(items)[: caps.artifacts]
    logger.debug("Compacted %d of %d note/highlight artifacts", len(artifacts), len(items))
    return artifacts
