"""Shared fixtures and candidate builders. All timestamps are fixed."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def ago(**kwargs: float) -> str:
    return iso(NOW - timedelta(**kwargs))


def session(
    candidate_id: str,
    ended_at: Optional[str],
    book: str = "JHN",
    chapter: int = 3,
    duration: Optional[float] = 120,
    read_ranges: Optional[List[str]] = None,
    local_date: Optional[str] = None,
    status: Any = None,
    recency: Optional[float] = None,
) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "startRef": {"bookId": book, "chapter": chapter},
        "endRef": {"bookId": book, "chapter": chapter},
    }
    if ended_at is not None:
        metadata["endedAt"] = ended_at
    if duration is not None:
        metadata["durationSeconds"] = duration
    if read_ranges is not None:
        metadata["readRanges"] = read_ranges
    if local_date is not None:
        metadata["localDate"] = local_date
    if status is not None:
        metadata["completionStatus"] = status
    features: Dict[str, Any] = {}
    if recency is not None:
        features["recencyScore"] = recency
    return {
        "id": candidate_id,
        "source": "bible_reading_session",
        "preview": f"{book} {chapter}",
        "metadata": metadata,
        "features": features,
    }


def note(
    candidate_id: str,
    ref: Optional[str],
    created_at: Optional[str],
    summary: Optional[str] = None,
    tags: Optional[List[str]] = None,
    artifact_type: str = "verse_note",
) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"artifactType": artifact_type}
    if ref is not None:
        metadata["scriptureRefs"] = [ref]
    if summary is not None:
        metadata["noteSummary"] = summary
    if tags is not None:
        metadata["noteTags"] = tags
    features: Dict[str, Any] = {}
    if created_at is not None:
        features["createdAt"] = created_at
    return {"id": candidate_id, "source": "artifact", "metadata": metadata, "features": features}


def highlight(candidate_id: str, ref: Optional[str], created_at: Optional[str]) -> Dict[str, Any]:
    return note(candidate_id, ref, created_at, artifact_type="verse_highlight")


def conversation(candidate_id: str, created_at: Optional[str], preview: Optional[str] = "Talked about rest.") -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": candidate_id,
        "source": "artifact",
        "metadata": {"artifactType": "conversation_session_summary"},
        "features": {"createdAt": created_at} if created_at else {},
    }
    if preview is not None:
        out["preview"] = preview
    return out


@pytest.fixture
def now() -> datetime:
    return NOW
