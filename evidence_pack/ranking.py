"""Anchor scoring and assignment of supporting notes/highlights to anchors."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from .config import RankingConfig
from .ingest import parse_timestamp, timestamp_ms
from .references import parse_reference, references_match
from .schemas import Anchor, ParsedReference, SupportArtifact

logger = logging.getLogger(__name__)

RESUME_MARKERS = ("in_progress", "continue", "resume")


@dataclass
class AnchorWeights:
    """Ranking weights for primary anchor selection."""

    resume: float = 1.4
    long_session: float = 1.1
    default: float = 0.9
    duration_bonus: float = 0.35


@dataclass
class SupportWeights:
    """Ranking weights for attaching artifacts to anchors."""

    anchor_base: float = 1.0
    anchor_duration: float = 0.25
    note: float = 1.2
    highlight: float = 0.9
    note_summary: float = 0.4
    tags: float = 0.1
    verse_overlap: float = 0.15


def recency_from_timestamp(timestamp: Optional[str], now: Optional[datetime] = None) -> float:
    """Bucketed age score: 1.0 under a day down to 0.3 past 90 days; 0 when unknown."""
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    age_days = (now - parsed).total_seconds() / 86400
    if age_days < 1:
        return 1.0
    if age_days < 7:
        return 0.9
    if age_days < 30:
        return 0.7
    if age_days < 90:
        return 0.5
    return 0.3


def anchor_recency(anchor: Anchor, now: Optional[datetime] = None) -> float:
    if anchor.score is not None:
        return anchor.score
    return recency_from_timestamp(anchor.timestamp, now)


def _duration_fraction(duration: Optional[int], cap_seconds: int) -> float:
    if duration is None or cap_seconds <= 0:
        return 0.0
    return min(duration, cap_seconds) / cap_seconds


def _newest_key(timestamp: Optional[str]) -> float:
    ms = timestamp_ms(timestamp)
    return -ms if ms is not None else float("inf")


class AnchorSelector:
    """Scores anchor candidates and keeps the top primary subset."""

    def __init__(
        self,
        config: Optional[RankingConfig] = None,
        weights: Optional[AnchorWeights] = None,
    ):
        self.config = config or RankingConfig()
        self.weights = weights or AnchorWeights()

    def score(self, anchor: Anchor, now: Optional[datetime] = None) -> float:
        status = (anchor.status or "").lower()
        if any(marker in status for marker in RESUME_MARKERS):
            type_weight = self.weights.resume
        elif (anchor.duration_seconds or 0) >= self.config.long_session_seconds:
            type_weight = self.weights.long_session
        else:
            type_weight = self.weights.default
        duration_bonus = (
            _duration_fraction(anchor.duration_seconds, self.config.duration_cap_seconds)
            * self.weights.duration_bonus
        )
        return type_weight + anchor_recency(anchor, now) + duration_bonus

    def rank(self, anchors: Sequence[Anchor], now: Optional[datetime] = None) -> List[Tuple[Anchor, float]]:
        scored = [(anchor, self.score(anchor, now)) for anchor in anchors]
        scored.sort(key=lambda pair: (-pair[1], _newest_key(pair[0].timestamp), pair[0].id))
        return scored

    def select(self, anchors: Sequence[Anchor], now: Optional[datetime] = None) -> List[Anchor]:
        ranked = self.rank(anchors, now)[: self.config.primary_anchor_limit]
        return [anchor for anchor, _ in ranked]


@dataclass(frozen=True)
class Assignment:
    artifact: SupportArtifact
    anchor_id: str
    score: float


class SupportAssigner:
    """Attaches each note/highlight to its best-matching primary anchor.

    An artifact rides along with at most one anchor, each anchor keeps at most
    ``per_anchor_support_limit`` artifacts, and anchors plus artifacts together
    never exceed ``total_evidence_cap``.
    """

    def __init__(
        self,
        config: Optional[RankingConfig] = None,
        weights: Optional[SupportWeights] = None,
    ):
        self.config = config or RankingConfig()
        self.weights = weights or SupportWeights()

    def support_weight(self, artifact: SupportArtifact, now: Optional[datetime] = None) -> float:
        is_note = artifact.kind == "note"
        weight = self.weights.note if is_note else self.weights.highlight
        if is_note and artifact.summary:
            weight += self.weights.note_summary
        if artifact.tags:
            weight += self.weights.tags
        return weight + recency_from_timestamp(artifact.timestamp, now)

    def anchor_base(self, anchor: Anchor, now: Optional[datetime] = None) -> float:
        return (
            self.weights.anchor_base
            + anchor_recency(anchor, now)
            + _duration_fraction(anchor.duration_seconds, self.config.duration_cap_seconds)
            * self.weights.anchor_duration
        )

    def best_match(
        self,
        artifact: SupportArtifact,
        parsed_anchors: Sequence[Tuple[Anchor, ParsedReference]],
        now: Optional[datetime] = None,
    ) -> Optional[Assignment]:
        artifact_ref = parse_reference(artifact.ref)
        if artifact_ref is None:
            return None
        support = self.support_weight(artifact, now)
        best: Optional[Assignment] = None
        for anchor, anchor_ref in parsed_anchors:
            if not references_match(anchor_ref, artifact_ref):
                continue
            overlap = (
                self.weights.verse_overlap
                if anchor_ref.verse_start is not None and artifact_ref.verse_start is not None
                else 0.0
            )
            score = self.anchor_base(anchor, now) + support + overlap
            if best is None or score > best.score or (score == best.score and anchor.id < best.anchor_id):
                best = Assignment(artifact=artifact, anchor_id=anchor.id, score=score)
        return best

    @staticmethod
    def _order(assignment: Assignment) -> Tuple[float, float, str]:
        return (-assignment.score, _newest_key(assignment.artifact.timestamp), assignment.artifact.id)

    def assign(
        self,
        anchors: Sequence[Anchor],
        artifacts: Sequence[SupportArtifact],
        now: Optional[datetime] = None,
    ) -> List[SupportArtifact]:
        """Return the supporting artifacts to ship with ``anchors``, best first."""
        parsed_anchors: List[Tuple[Anchor, ParsedReference]] = []
        for anchor in anchors:
            parsed = parse_reference(anchor.ref)
            if parsed is not None:
                parsed_anchors.append((anchor, parsed))

        by_anchor: Dict[str, List[Assignment]] = {}
        seen = set()
        for artifact in artifacts:
            if artifact.id in seen:
                continue
            seen.add(artifact.id)
            assignment = self.best_match(artifact, parsed_anchors, now)
            if assignment is not None:
                by_anchor.setdefault(assignment.anchor_id, []).append(assignment)

        picked: List[Assignment] = []
        for anchor in anchors:
            candidates = sorted(by_anchor.get(anchor.id, []), key=self._order)
            picked.extend(candidates[: self.config.per_anchor_support_limit])

        cap = min(self.config.support_cap, max(0, self.config.total_evidence_cap - len(anchors)))
        final = sorted(picked, key=self._order)[:cap]
        logger.debug(
            "Assigned %d of %d artifacts to %d anchors (cap %d)",
            len(final),
            len(artifacts),
            len(anchors),
            cap,
        )
        return [assignment.artifact for assignment in final]
