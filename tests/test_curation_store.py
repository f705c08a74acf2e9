import pytest
from psycopg2.extras import Json

from ecod_pg.db_lib_curation import CurationStore
from ecod_pg.models import AutoSaveRequest, CompletionAction, CurationDecisionRequest
from lib.errors import NotFoundError, SessionStateError

CANDIDATES = [
    {"id": 11, "source_id": "5c3l_A", "pdb_id": "5c3l", "chain_id": "A", "best_confidence": 0.97},
    {"id": 12, "source_id": "5c3l_B", "pdb_id": "5c3l", "chain_id": "B", "best_confidence": 0.91},
]


@pytest.fixture
def store(fake_adapter):
    return CurationStore(fake_adapter, lock_ttl_hours=3)


def test_start_session_locks_candidates(store, fake_adapter):
    fake_adapter.on("HAVING COUNT(DISTINCT de.id) > 0", CANDIDATES)
    fake_adapter.on(
        "INSERT INTO pdb_analysis.curation_session",
        lambda params: [{"id": 42, "curator_name": params["curator_name"], "locked_proteins": params["locked"]}],
    )

    result = store.start_session("alice", batch_size=2)

    assert result["session"]["id"] == 42
    assert result["message"] == "Created session with 2 proteins for curation"
    locks = fake_adapter.sql_matching("INSERT INTO pdb_analysis.protein_locks")
    assert [p["source_id"] for _, p in locks] == ["5c3l_A", "5c3l_B"]
    assert all(p["session_id"] == 42 and p["ttl"] == 3 for _, p in locks)
    assert "ON CONFLICT (source_id) DO NOTHING" in locks[0][0]
    # expired locks are released before candidates are chosen
    assert fake_adapter.calls[0][0].startswith("DELETE FROM pdb_analysis.protein_locks")
    assert fake_adapter.transactions == ["write"]


def test_start_session_without_candidates(store, fake_adapter):
    with pytest.raises(NotFoundError):
        store.start_session("alice")
    assert not fake_adapter.sql_matching("INSERT INTO pdb_analysis.curation_session")


def test_save_decision_unknown_protein(store):
    request = CurationDecisionRequest(session_id=1, protein_source_id="9xyz_A")
    with pytest.raises(NotFoundError):
        store.save_decision(request)


def test_save_decision_upserts_all_fields(store, fake_adapter):
    fake_adapter.on("SELECT id FROM pdb_analysis.protein", [{"id": 11}])
    request = CurationDecisionRequest(
        session_id=1,
        protein_source_id="5c3l_A",
        decisions={"has_domain": True, "confidence_level": 4},
        evidence_used={"primary_evidence_type": "hhsearch", "evidence_evalue": 1e-20},
        review_time_seconds=35,
    )

    assert store.save_decision(request) == {"success": True, "protein_id": 11}

    (sql, params), = fake_adapter.sql_matching("INSERT INTO pdb_analysis.curation_decision")
    assert "ON CONFLICT (session_id, protein_id) DO UPDATE" in sql
    assert params["protein_id"] == 11
    assert params["has_domain"] is True
    assert params["is_fragment"] is False
    assert params["primary_evidence_type"] == "hhsearch"
    assert params["review_time_seconds"] == 35


def test_auto_save_requires_active_session(store):
    with pytest.raises(NotFoundError, match="not active"):
        store.auto_save(5, AutoSaveRequest())


def test_auto_save_stores_json_and_extends_locks(store, fake_adapter):
    fake_adapter.on("AND status = %(status)s", [{"id": 5}])
    fake_adapter.on("RETURNING id, current_protein_index", [{"id": 5, "current_protein_index": 2}])
    payload = AutoSaveRequest(
        current_protein_index=2,
        decisions=[{"completed": True}, {"completed": False}, None],
        notes="halfway",
    )

    result = store.auto_save(5, payload)

    assert result["success"] and result["session"]["current_protein_index"] == 2
    (_, params), = fake_adapter.sql_matching("auto_save_data = %(data)s")
    assert isinstance(params["data"], Json)
    assert params["reviewed"] == 1
    (_, lock_params), = fake_adapter.sql_matching("UPDATE pdb_analysis.protein_locks")
    assert lock_params == {"ttl": 3, "session_id": 5}


def _session_row(**kw):
    row = {"id": 7, "status": "in_progress", "locked_proteins": ["5c3l_B", "5c3l_A"]}
    row.update(kw)
    return row


def test_resume_unknown_session(store):
    with pytest.raises(NotFoundError):
        store.resume_session(7)


@pytest.mark.parametrize(
    "row",
    [_session_row(status="committed"), _session_row(locked_proteins=[])],
)
def test_resume_rejects_closed_or_empty_sessions(store, fake_adapter, row):
    fake_adapter.on("cs.auto_save_data, cs.notes", [row])
    with pytest.raises(SessionStateError):
        store.resume_session(7)


def test_resume_keeps_lock_order(store, fake_adapter):
    fake_adapter.on("cs.auto_save_data, cs.notes", [_session_row(status="paused")])
    fake_adapter.on("ORDER BY array_position", [{"source_id": "5c3l_B"}, {"source_id": "5c3l_A"}])

    result = store.resume_session(7)

    assert result["can_resume"]
    assert [p["source_id"] for p in result["proteins"]] == ["5c3l_B", "5c3l_A"]
    (_, params), = fake_adapter.sql_matching("ORDER BY array_position")
    assert params == {"locked": ["5c3l_B", "5c3l_A"]}
    assert fake_adapter.sql_matching("UPDATE pdb_analysis.protein_locks")


def test_complete_commit(store, fake_adapter):
    fake_adapter.on("SELECT id, curator_name, status", [{"id": 7, "curator_name": "alice", "status": "in_progress"}])
    fake_adapter.on("INSERT INTO pdb_analysis.curation_status", [{}, {}])
    fake_adapter.on("AS total_decisions", [{"total_decisions": 2, "has_domain_count": 1, "avg_confidence": None}])

    result = store.complete_session(7, CompletionAction.COMMIT, "done")

    assert result["session_status"] == "committed"
    assert result["committed_proteins"] == 2
    assert result["message"] == "Successfully committed 2 protein decisions"
    assert result["statistics"]["total_decisions"] == 2
    assert result["statistics"]["avg_confidence"] == 0
    (_, params), = fake_adapter.sql_matching("SET status = %(status)s")
    assert params["final_notes"] == "done"
    assert fake_adapter.sql_matching("DELETE FROM pdb_analysis.protein_locks WHERE session_id")


def test_complete_discard_skips_commit(store, fake_adapter):
    fake_adapter.on("SELECT id, curator_name, status", [{"id": 7, "curator_name": "alice", "status": "in_progress"}])

    result = store.complete_session(7, "discard")

    assert result["session_status"] == "discarded"
    assert result["message"] == "Session discarded successfully"
    assert not fake_adapter.sql_matching("INSERT INTO pdb_analysis.curation_status")


def test_complete_unknown_session(store):
    with pytest.raises(NotFoundError):
        store.complete_session(99, CompletionAction.REVISIT)


def test_cleanup_counts(store, fake_adapter):
    fake_adapter.on("DELETE FROM pdb_analysis.protein_locks", [{}, {}, {}])
    fake_adapter.on("RETURNING id", [{"id": 1}])

    result = store.cleanup(stale_hours=6)

    assert result["deleted_locks"] == 3
    assert result["abandoned_sessions"] == 1
    (_, params), = fake_adapter.sql_matching("SET status = %(abandoned)s")
    assert params["hours"] == 6


def test_stats_completion_percentage(store, fake_adapter):
    fake_adapter.on("AS proteins_curated", [{"proteins_curated": 25}])
    fake_adapter.on("AS total_curable_proteins", [{"total_curable_proteins": 200}])
    fake_adapter.on("AS total_sessions", [{"total_sessions": 3, "avg_confidence_level": None}])

    stats = store.curation_stats()["statistics"]

    assert stats["completion_percentage"] == 12.5
    assert stats["remaining_proteins"] == 175
    assert stats["avg_confidence_level"] == 0
