from conftest import ago, session

from evidence_pack.clustering import SessionClusterer, extract_session, session_key
from evidence_pack.config import SessionConfig
from evidence_pack.ingest import coerce_candidates


def anchors_for(raw, config=None):
    return SessionClusterer(config).cluster_anchors(coerce_candidates(raw))


def sessions_for(raw):
    return SessionClusterer().extract_sessions(coerce_candidates(raw))


def test_sessions_five_minutes_apart_cluster_together():
    clusterer = SessionClusterer()
    group = sessions_for([session("s1", "2026-02-27T10:05:00Z"), session("s2", "2026-02-27T10:00:00Z")])
    assert len(clusterer.cluster_group(group)) == 1
    assert len(anchors_for([session("s1", "2026-02-27T10:05:00Z"), session("s2", "2026-02-27T10:00:00Z")])) <= 2


def test_sessions_twenty_minutes_apart_do_not_cluster():
    clusterer = SessionClusterer()
    group = sessions_for([session("s1", "2026-02-27T10:20:00Z"), session("s2", "2026-02-27T10:00:00Z")])
    assert len(clusterer.cluster_group(group)) == 2


def test_window_is_measured_from_cluster_head():
    clusterer = SessionClusterer()
    group = sessions_for(
        [
            session("s1", "2026-02-27T10:16:00Z"),
            session("s2", "2026-02-27T10:08:00Z"),
            session("s3", "2026-02-27T10:00:00Z"),
        ]
    )
    clusters = clusterer.cluster_group(group)
    assert [[s.id for s in c] for c in clusters] == [["s1", "s2"], ["s3"]]


def test_window_edge_is_inclusive():
    group = sessions_for([session("s1", "2026-02-27T10:10:00Z"), session("s2", "2026-02-27T10:00:00Z")])
    assert len(SessionClusterer().cluster_group(group)) == 1


def test_short_sessions_are_noise():
    assert anchors_for([session("s1", ago(days=1), duration=8)]) == []
    assert [a.id for a in anchors_for([session("s1", ago(days=1), duration=16)])] == ["s1"]


def test_unknown_duration_is_kept():
    assert [a.id for a in anchors_for([session("s1", ago(days=1), duration=None)])] == ["s1"]


def test_cluster_keeps_most_recent_and_longest():
    raw = [
        session("recent", "2026-02-27T10:09:00Z", duration=30),
        session("longest", "2026-02-27T10:04:00Z", duration=600),
        session("middle", "2026-02-27T10:01:00Z", duration=90),
    ]
    assert [a.id for a in anchors_for(raw)] == ["recent", "longest"]


def test_cluster_collapses_when_most_recent_is_longest():
    raw = [
        session("recent", "2026-02-27T10:09:00Z", duration=600),
        session("older", "2026-02-27T10:04:00Z", duration=60),
    ]
    assert [a.id for a in anchors_for(raw)] == ["recent"]


def test_groups_split_by_chapter_and_day():
    raw = [
        session("a", "2026-02-27T10:00:00Z", chapter=3),
        session("b", "2026-02-27T10:01:00Z", chapter=4),
        session("c", "2026-02-28T10:00:00Z", chapter=3),
    ]
    assert sorted(a.id for a in anchors_for(raw)) == ["a", "b", "c"]


def test_session_key_falls_back_to_end_date_then_unknown():
    with_local = extract_session(coerce_candidates([session("a", "2026-02-27T23:30:00Z", local_date="2026-02-28")])[0])
    from_end = extract_session(coerce_candidates([session("b", "2026-02-27T23:30:00Z")])[0])
    undated = extract_session(coerce_candidates([session("c", None)])[0])
    assert session_key(with_local) == ("JHN", 3, "2026-02-28")
    assert session_key(from_end) == ("JHN", 3, "2026-02-27")
    assert session_key(undated) == ("JHN", 3, "unknown")


def test_anchor_ref_uses_read_ranges_when_present():
    ranged = anchors_for([session("a", ago(days=1), read_ranges=["3:1-10", "3:14"])])
    bare = anchors_for([session("b", ago(days=1))])
    assert ranged[0].ref == "JHN 3:1-10, 3:14"
    assert bare[0].ref == "JHN 3"


def test_anchor_carries_status_duration_and_recency():
    raw = session("a", "2026-02-27T10:00:00Z", duration=312.7, status={"status": "in_progress"}, recency=0.9)
    anchor = anchors_for([raw])[0]
    assert anchor.duration_seconds == 312
    assert anchor.status == "in_progress"
    assert anchor.score == 0.9
    assert anchor.timestamp == "2026-02-27T10:00:00Z"


def test_sessions_without_book_or_chapter_are_skipped():
    raw = session("a", ago(days=1))
    raw["metadata"] = {"endedAt": ago(days=1), "durationSeconds": 60}
    assert anchors_for([raw]) == []


def test_flat_metadata_book_and_chapter():
    raw = {
        "id": "flat",
        "source": "bible_reading_session",
        "metadata": {"bookId": "ROM", "chapter": 8, "endedAt": ago(days=1), "durationSeconds": 60},
    }
    assert anchors_for([raw])[0].ref == "ROM 8"


def test_anchor_candidates_capped_newest_first():
    raw = [session(f"s{i}", ago(hours=i), chapter=i + 1) for i in range(30)]
    anchors = anchors_for(raw)
    assert len(anchors) == 24
    assert anchors[0].id == "s0"
    assert anchors[-1].id == "s23"


def test_custom_window():
    config = SessionConfig(cluster_window_minutes=30)
    raw = [session("s1", "2026-02-27T10:20:00Z", duration=60), session("s2", "2026-02-27T10:00:00Z", duration=30)]
    assert [a.id for a in anchors_for(raw, config)] == ["s1"]
