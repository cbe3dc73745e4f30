"""Time-window clustering of reading sessions into anchor candidates."""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple

from .config import SessionConfig
from .ingest import (
    DATE_PREFIX_RE,
    as_number,
    as_string,
    candidate_recency_score,
    timestamp_ms,
)
from .schemas import Anchor, CandidateKind, RawCandidate, ReadingSession

logger = logging.getLogger(__name__)

UNKNOWN_DATE = "unknown"

SessionKey = Tuple[str, int, str]


def _ref_field(metadata: dict, name: str):
    for ref_key in ("startRef", "endRef"):
        ref = metadata.get(ref_key)
        if isinstance(ref, dict) and ref.get(name) is not None:
            return ref.get(name)
    return metadata.get(name)


def _completion_status(metadata: dict) -> Optional[str]:
    raw = metadata.get("completionStatus")
    if isinstance(raw, str):
        return raw or None
    if isinstance(raw, dict) and raw.get("status") is not None:
        return str(raw["status"])
    return None


def extract_session(candidate: RawCandidate) -> Optional[ReadingSession]:
    """Resolve book, chapter and timing; ``None`` when book or chapter is missing."""
    metadata = candidate.metadata
    book_id = as_string(_ref_field(metadata, "bookId"))
    chapter = as_number(_ref_field(metadata, "chapter"))
    if not book_id or chapter is None:
        return None

    raw_ranges = metadata.get("readRanges")
    read_ranges: Tuple[str, ...] = ()
    if isinstance(raw_ranges, list) and all(isinstance(r, str) for r in raw_ranges):
        read_ranges = tuple(raw_ranges)

    ended_at = as_string(metadata.get("endedAt")) or as_string(candidate.features.get("createdAt"))
    duration = as_number(metadata.get("durationSeconds"))

    return ReadingSession(
        candidate=candidate,
        book_id=book_id,
        chapter=math.floor(chapter),
        read_ranges=read_ranges,
        local_date=as_string(metadata.get("localDate")),
        ended_at=ended_at,
        ended_at_ms=timestamp_ms(ended_at),
        duration_seconds=math.floor(duration) if duration is not None else None,
        status=_completion_status(metadata),
        recency_score=candidate_recency_score(candidate),
    )


def session_key(session: ReadingSession) -> SessionKey:
    local_date = session.local_date
    if not local_date and session.ended_at and DATE_PREFIX_RE.match(session.ended_at):
        local_date = session.ended_at[:10]
    return (session.book_id, session.chapter, local_date or UNKNOWN_DATE)


def session_ref(session: ReadingSession) -> str:
    if session.read_ranges:
        return f"{session.book_id} {', '.join(session.read_ranges)}"
    return f"{session.book_id} {session.chapter}"


def session_to_anchor(session: ReadingSession) -> Anchor:
    return Anchor(
        id=session.id,
        ref=session_ref(session),
        duration_seconds=session.duration_seconds,
        status=session.status,
        timestamp=session.ended_at,
        score=session.recency_score,
    )


def _ms_or_zero(value: Optional[float]) -> float:
    return value if value is not None else 0.0


class SessionClusterer:
    """Collapses bursts of visits to the same passage into a few anchors.

    Sessions are grouped per (book, chapter, local day). Inside a group,
    sessions ending within ``cluster_window_minutes`` of the newest member of
    the current cluster belong to it. Each cluster then contributes its most
    recent and its longest session.
    """

    def __init__(self, config: Optional[SessionConfig] = None):
        self.config = config or SessionConfig()

    def extract_sessions(self, candidates: Iterable[RawCandidate]) -> List[ReadingSession]:
        sessions: List[ReadingSession] = []
        noise = 0
        for candidate in candidates:
            if candidate.kind != CandidateKind.READING_SESSION:
                continue
            session = extract_session(candidate)
            if session is None:
                continue
            if session.duration_seconds is not None and session.duration_seconds < self.config.min_duration_seconds:
                noise += 1
                continue
            sessions.append(session)
        if noise:
            logger.debug("Discarded %d sessions shorter than %ss", noise, self.config.min_duration_seconds)
        return sessions

    def group_sessions(self, sessions: Iterable[ReadingSession]) -> Dict[SessionKey, List[ReadingSession]]:
        groups: Dict[SessionKey, List[ReadingSession]] = {}
        for session in sessions:
            groups.setdefault(session_key(session), []).append(session)
        return groups

    def cluster_group(self, group: List[ReadingSession]) -> List[List[ReadingSession]]:
        window_ms = self.config.cluster_window_minutes * 60 * 1000
        ordered = sorted(group, key=lambda s: -_ms_or_zero(s.ended_at_ms))

        clusters: List[List[ReadingSession]] = []
        for session in ordered:
            if clusters:
                anchor_ms = clusters[-1][0].ended_at_ms
                if (
                    anchor_ms is not None
                    and session.ended_at_ms is not None
                    and abs(anchor_ms - session.ended_at_ms) <= window_ms
                ):
                    clusters[-1].append(session)
                    continue
            clusters.append([session])
        return clusters

    @staticmethod
    def representatives(cluster: List[ReadingSession]) -> List[ReadingSession]:
        """Most recent and longest member, once each when they coincide."""
        most_recent = cluster[0]
        longest = max(cluster, key=lambda s: s.duration_seconds or 0)
        picked: Dict[str, ReadingSession] = {most_recent.id: most_recent}
        picked[longest.id] = longest
        return list(picked.values())

    def cluster_anchors(self, candidates: Iterable[RawCandidate]) -> List[Anchor]:
        """Anchor candidates, newest first, capped to ``max_anchor_candidates``."""
        groups = self.group_sessions(self.extract_sessions(candidates))

        anchors: List[Anchor] = []
        cluster_count = 0
        for group in groups.values():
            for cluster in self.cluster_group(group):
                cluster_count += 1
                anchors.extend(session_to_anchor(s) for s in self.representatives(cluster))

        anchors.sort(key=lambda a: -_ms_or_zero(timestamp_ms(a.timestamp)))
        logger.debug(
            "Built %d anchor candidates from %d clusters in %d groups",
            len(anchors),
            cluster_count,
            len(groups),
        )
        return anchors[: self.config.max_anchor_candidates]
