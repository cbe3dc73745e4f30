"""Coercion of raw producer records into the common candidate schema."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from dateutil import parser as dt_parser

from .schemas import RawCandidate

logger = logging.getLogger(__name__)

DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")

_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)

_MERGED_SCORES = ("semanticScore", "recencyScore", "temporalScore", "scopeScore")


def as_string(value: object) -> Optional[str]:
    """Return ``value`` when it is a non-blank string, else ``None``."""
    if isinstance(value, str) and value.strip():
        return value
    return None


def as_number(value: object) -> Optional[float]:
    """Return ``value`` when it is a finite int/float (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def as_mapping(value: object) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def parse_timestamp(value: object) -> Optional[datetime]:
    """Parse an ISO-ish timestamp; naive values are taken as UTC.

    Free-form strings go through ``dateutil.parser.parse`` twice with two
    different default dates; a string that leaves its year, month or day to
    the default ("10:00", "March 3") is rejected as missing.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = dt_parser.isoparse(value.strip())
    except (ValueError, OverflowError):
        try:
            parsed = dt_parser.parse(value, default=_DEFAULT_A)
            if parsed.replace(tzinfo=None) != dt_parser.parse(value, default=_DEFAULT_B).replace(tzinfo=None):
                return None
        except (ValueError, OverflowError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def timestamp_ms(value: object) -> Optional[float]:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.timestamp() * 1000.0


def candidate_created_at(candidate: RawCandidate) -> Optional[str]:
    """First of features.createdAt, metadata.createdAt, metadata.endedAt."""
    return (
        as_string(candidate.features.get("createdAt"))
        or as_string(candidate.metadata.get("createdAt"))
        or as_string(candidate.metadata.get("endedAt"))
    )


def candidate_recency_score(candidate: RawCandidate) -> Optional[float]:
    return as_number(candidate.features.get("recencyScore"))


def coerce_candidate(raw: object) -> Optional[RawCandidate]:
    """Build a candidate from a mapping, or ``None`` when id/source are unusable."""
    if isinstance(raw, RawCandidate):
        raw = {
            "id": raw.id,
            "source": raw.source,
            "preview": raw.preview,
            "metadata": raw.metadata,
            "features": raw.features,
        }
    if not isinstance(raw, Mapping):
        return None
    candidate_id = as_string(raw.get("id"))
    source = as_string(raw.get("source"))
    if not candidate_id or not source:
        return None
    return RawCandidate(
        id=candidate_id,
        source=source,
        preview=as_string(raw.get("preview")),
        metadata=as_mapping(raw.get("metadata")),
        features=as_mapping(raw.get("features")),
    )


def coerce_candidates(raw: object) -> List[RawCandidate]:
    """Coerce a list of records, silently dropping anything malformed."""
    if isinstance(raw, (str, bytes, Mapping)) or not isinstance(raw, Iterable):
        return []
    out: List[RawCandidate] = []
    dropped = 0
    for item in raw:
        candidate = coerce_candidate(item)
        if candidate is None:
            dropped += 1
            continue
        out.append(candidate)
    if dropped:
        logger.debug("Dropped %d malformed candidates", dropped)
    return out


def _merge_features(current: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    if not current:
        return dict(incoming)
    if not incoming:
        return dict(current)
    merged = {**current, **incoming}
    for key in _MERGED_SCORES:
        new = as_number(incoming.get(key))
        if new is None:
            merged[key] = current.get(key)
            continue
        old = as_number(current.get(key))
        merged[key] = max(new, old if old is not None else 0)
    merged["createdAt"] = incoming.get("createdAt") or current.get("createdAt")
    return {key: value for key, value in merged.items() if value is not None}


def _score_or(candidate: RawCandidate, key: str) -> float:
    value = as_number(candidate.features.get(key))
    return value if value is not None else -1


def dedupe_candidates(candidates: Iterable[RawCandidate]) -> List[RawCandidate]:
    """Collapse duplicate ``(source, id)`` pairs, preferring higher semantic then recency scores.

    Ids are only unique within a source, so equal ids from different sources
    are both kept. Features of the two records are merged either way;
    first-seen order is kept.
    """
    by_id: Dict[Tuple[str, str], RawCandidate] = {}
    for candidate in candidates:
        key = (candidate.source, candidate.id)
        existing = by_id.get(key)
        if existing is None:
            by_id[key] = candidate
            continue
        incoming_sem = _score_or(candidate, "semanticScore")
        existing_sem = _score_or(existing, "semanticScore")
        replace = incoming_sem > existing_sem or (
            incoming_sem == existing_sem
            and _score_or(candidate, "recencyScore") > _score_or(existing, "recencyScore")
        )
        winner = candidate if replace else existing
        by_id[key] = RawCandidate(
            id=winner.id,
            source=winner.source,
            preview=winner.preview,
            metadata=winner.metadata,
            features=_merge_features(existing.features, candidate.features),
        )
    return list(by_id.values())


def count_by_source(candidates: Iterable[RawCandidate]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for candidate in candidates:
        counts[candidate.source] = counts.get(candidate.source, 0) + 1
    return counts
