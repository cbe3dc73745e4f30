from datetime import datetime, timezone

import pytest

from evidence_pack.ingest import (
    as_number,
    candidate_created_at,
    coerce_candidate,
    coerce_candidates,
    count_by_source,
    dedupe_candidates,
    parse_timestamp,
)
from evidence_pack.schemas import CandidateKind, RawCandidate


def test_coerce_drops_records_without_id_or_source():
    raw = [
        {"id": "a", "source": "life_context", "preview": "Busy season at work"},
        {"id": "", "source": "life_context"},
        {"id": "b", "source": "   "},
        {"source": "user_memory"},
        {"id": 7, "source": "user_memory"},
        "not a record",
        None,
    ]
    out = coerce_candidates(raw)
    assert [c.id for c in out] == ["a"]


def test_coerce_normalizes_optional_fields():
    candidate = coerce_candidate({"id": "x", "source": "artifact", "preview": "  ", "metadata": [1], "features": None})
    assert candidate.preview is None
    assert candidate.metadata == {}
    assert candidate.features == {}


def test_coerce_candidates_rejects_non_lists():
    assert coerce_candidates(None) == []
    assert coerce_candidates("abc") == []
    assert coerce_candidates({"id": "a", "source": "artifact"}) == []


def test_coerce_passes_candidates_through():
    candidate = RawCandidate(id="a", source="life_context", preview="p")
    assert coerce_candidates([candidate]) == [candidate]


@pytest.mark.parametrize(
    "source, artifact_type, kind",
    [
        ("life_context", None, CandidateKind.LIFE),
        ("user_memory", None, CandidateKind.MEMORY),
        ("bible_reading_session", None, CandidateKind.READING_SESSION),
        ("conversation", None, CandidateKind.CONVERSATION),
        ("artifact", "conversation_session_summary", CandidateKind.CONVERSATION),
        ("artifact", "verse_note", CandidateKind.NOTE),
        ("artifact", "highlight", CandidateKind.HIGHLIGHT),
        ("artifact", "photo", CandidateKind.OTHER),
        ("artifact", None, CandidateKind.OTHER),
        ("prayer", None, CandidateKind.OTHER),
    ],
)
def test_candidate_kind(source, artifact_type, kind):
    metadata = {"artifactType": artifact_type} if artifact_type else {}
    assert RawCandidate(id="c", source=source, metadata=metadata).kind == kind


def test_created_at_precedence():
    candidate = RawCandidate(
        id="c",
        source="artifact",
        metadata={"createdAt": "2026-01-02T00:00:00Z", "endedAt": "2026-01-03T00:00:00Z"},
        features={"createdAt": "2026-01-01T00:00:00Z"},
    )
    assert candidate_created_at(candidate) == "2026-01-01T00:00:00Z"
    fallback = RawCandidate(id="c", source="artifact", metadata={"endedAt": "2026-01-03T00:00:00Z"})
    assert candidate_created_at(fallback) == "2026-01-03T00:00:00Z"


def test_parse_timestamp():
    assert parse_timestamp("2026-02-27T12:00:00Z").tzinfo is not None
    assert parse_timestamp("2026-02-27T12:00:00").tzinfo == timezone.utc
    assert parse_timestamp("yesterday-ish") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(1700000000) is None


def test_as_number_excludes_bools_and_nan():
    assert as_number(3) == 3
    assert as_number(True) is None
    assert as_number(float("nan")) is None
    assert as_number("3") is None


def test_dedupe_prefers_higher_semantic_then_recency():
    first = RawCandidate(id="a", source="artifact", preview="old", features={"semanticScore": 0.2, "recencyScore": 0.9})
    second = RawCandidate(
        id="a",
        source="artifact",
        preview="new",
        features={"semanticScore": 0.5, "recencyScore": 0.3, "createdAt": "2026-01-01T00:00:00Z"},
    )
    other = RawCandidate(id="b", source="artifact")
    out = dedupe_candidates([first, other, second])
    assert [c.id for c in out] == ["a", "b"]
    merged = out[0]
    assert merged.preview == "new"
    assert merged.features["semanticScore"] == 0.5
    assert merged.features["recencyScore"] == 0.9
    assert merged.features["createdAt"] == "2026-01-01T00:00:00Z"


def test_dedupe_keeps_existing_on_tie():
    first = RawCandidate(id="a", source="artifact", preview="first", features={"recencyScore": 0.5})
    second = RawCandidate(id="a", source="artifact", preview="second", features={"recencyScore": 0.5})
    assert dedupe_candidates([first, second])[0].preview == "first"


def test_count_by_source():
    candidates = coerce_candidates(
        [
            {"id": "a", "source": "artifact"},
            {"id": "b", "source": "artifact"},
            {"id": "c", "source": "life_context"},
        ]
    )
    assert count_by_source(candidates) == {"artifact": 2, "life_context": 1}


def test_coerce_rebuilds_candidates_with_loose_fields():
    candidate = RawCandidate(id="x", source="artifact", preview="  ", metadata=None, features="n/a")
    out = coerce_candidates([candidate])
    assert out == [RawCandidate(id="x", source="artifact")]
    assert out[0].kind == CandidateKind.OTHER


@pytest.mark.parametrize("value", ["10:00", "March 3", "3 PM", "Tuesday"])
def test_parse_timestamp_rejects_partial_dates(value):
    assert parse_timestamp(value) is None


def test_parse_timestamp_accepts_full_free_form_dates():
    assert parse_timestamp("March 3 2026 10:00") == datetime(2026, 3, 3, 10, 0, tzinfo=timezone.utc)
    assert parse_timestamp("Tue, 03 Mar 2026 10:00:00 GMT") == datetime(2026, 3, 3, 10, 0, tzinfo=timezone.utc)


def test_dedupe_keeps_equal_ids_from_different_sources():
    life = RawCandidate(id="1", source="life_context", preview="New job")
    artifact = RawCandidate(id="1", source="artifact", metadata={"artifactType": "verse_note"})
    assert dedupe_candidates([life, artifact]) == [life, artifact]
