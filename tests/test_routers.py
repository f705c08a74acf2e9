import json
from unittest import mock

import pytest
from fastapi.testclient import TestClient

from api.main import app
from api.services.structure_fetcher import structure_fetcher
from ecod_pg.db_lib_audit import db_auditor
from ecod_pg.db_lib_curation import curation_store
from ecod_pg.db_lib_reader import db_reader
from ecod_pg.models import Pagination, ProteinListResponse, ProteinStatistics, SortingInfo
from lib.errors import NotFoundError, SessionStateError, StructureNotFoundError

client = TestClient(app)


def _protein_list():
    return ProteinListResponse(
        data=[{"id": 1, "pdb_id": "5c3l", "chain_id": "B", "domain_count": 2}],
        pagination=Pagination.of(1, 50, 1),
        statistics=ProteinStatistics(totalProteins=1, classifiedProteins=1),
        sorting=SortingInfo(current_sort="recent", sort_direction="desc"),
    )


# =============================================================================
# Proteins and domains
# =============================================================================


def test_root_lists_endpoints():
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["endpoints"]["health"] == "/health"


def test_protein_list_json_and_csv():
    with mock.patch.object(db_reader, "list_proteins", return_value=_protein_list()) as listing:
        body = client.get("/api/proteins", params={"sort": "coverage", "page": 2}).json()
        csv_response = client.get("/api/proteins", params={"format": "csv"})

    filters = listing.call_args_list[0][0][0]
    assert filters.page == 2 and filters.sort.value == "coverage"
    assert body["pagination"]["totalPages"] == 1
    assert body["statistics"]["totalProteins"] == 1
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert csv_response.text.splitlines()[0] == "id,pdb_id,chain_id,domain_count"


def test_protein_list_rejects_bad_sort_and_page_size():
    assert client.get("/api/proteins", params={"sort": "p.id"}).status_code == 422
    assert client.get("/api/proteins", params={"size": 1000}).status_code == 422


def test_protein_detail_identifiers():
    assert client.get("/api/proteins/5c3l").status_code == 400
    with mock.patch.object(db_reader, "get_protein", return_value=None):
        assert client.get("/api/proteins/5c3l_Z").status_code == 404
    with mock.patch.object(db_reader, "get_protein", return_value={"id": 7}) as get:
        assert client.get("/api/proteins/7").json() == {"id": 7}
    get.assert_called_once_with(7)


def test_protein_domains_not_found():
    with mock.patch.object(db_reader, "get_protein_domains", return_value=None):
        assert client.get("/api/proteins/5c3l_B/domains").status_code == 404


def test_propagated_errors_map_to_status():
    with mock.patch.object(db_reader, "get_propagated", side_effect=NotFoundError("Representative protein not found")):
        assert client.get("/api/proteins/5c3l_B/propagated").status_code == 404
    assert client.get("/api/proteins/5c3lB/propagated").status_code == 400


def test_summary_splits_group_lists():
    with mock.patch.object(db_reader, "proteins_summary", return_value={"data": []}) as summary:
        client.get("/api/proteins/summary?t_groups=2002.1.1,11.1.1&t_groups=5.1.1")
    filters = summary.call_args[0][0]
    assert filters.t_groups == ["2002.1.1", "11.1.1", "5.1.1"]


def test_protein_file_content(tmp_path):
    path = tmp_path / "5c3l_B.domain_summary.xml"
    path.write_text("<blast_summ_doc/>")
    record = {"file_path": str(path), "file_type": "domain_summary"}
    with mock.patch.object(db_reader, "get_process_file", return_value=record):
        body = client.get("/api/proteins/5c3l_B/files/3").json()
    assert body["content"] == "<blast_summ_doc/>"

    missing = dict(record, file_path=str(tmp_path / "gone.xml"))
    with mock.patch.object(db_reader, "get_process_file", return_value=missing):
        assert client.get("/api/proteins/5c3l_B/files/3").status_code == 404


def test_evidence_analysis_route(tmp_path, domain_summary_xml):
    path = tmp_path / "summary.xml"
    path.write_text(domain_summary_xml)
    files = {"files_by_type": {"domain_summary": [{"file_path": str(path), "file_exists": True}]}}
    partition = {
        "protein": {"sequence_length": 200},
        "domains": [
            {"id": 1, "domain_number": 1, "start_pos": 10, "end_pos": 100, "source": "domain_blast"},
            {"id": 2, "domain_number": 2, "start_pos": 105, "end_pos": 190, "source": "hhsearch"},
        ],
    }
    with mock.patch.object(db_reader, "get_filesystem_evidence", return_value=files), \
            mock.patch.object(db_reader, "get_protein_domains", return_value=partition):
        body = client.get("/api/proteins/5c3l_B/evidence-analysis").json()

    assert body["metrics"]["total_hits"] == 4
    assert len(body["traceability"]) == 2


def test_domain_id_must_be_numeric():
    assert client.get("/api/domains/abc").status_code == 400
    with mock.patch.object(db_reader, "get_domain_evidence", return_value=[]) as evidence:
        assert client.get("/api/domains/12").json() == []
    evidence.assert_called_once_with(12)


@pytest.mark.parametrize(
    "method,path,detail",
    [
        ("get_protein", "/api/proteins/5c3l_B", "Failed to fetch protein: db down"),
        ("get_process_file", "/api/proteins/5c3l_B/files/3", "Failed to fetch file content: db down"),
        ("get_filesystem_evidence", "/api/proteins/5c3l_B/evidence-analysis", "Evidence analysis failed: db down"),
        ("get_domain_evidence", "/api/domains/5", "Failed to fetch domain evidence: db down"),
        ("get_domain_comparisons", "/api/domains/5/comparisons", "Failed to fetch domain comparisons: db down"),
    ],
)
def test_reader_failures_become_json_500(method, path, detail):
    with mock.patch.object(db_reader, method, side_effect=RuntimeError("db down")):
        response = client.get(path)
    assert response.status_code == 500
    assert response.json()["detail"] == detail


def test_filter_options_type_required():
    assert client.get("/api/filter-options").status_code == 400
    assert client.get("/api/filter-options", params={"type": "z_group"}).status_code == 400


# =============================================================================
# Audit, dashboard, metadata
# =============================================================================


def test_batches_wrapped():
    with mock.patch.object(db_auditor, "batch_health_check", return_value=[{"id": 1}]):
        assert client.get("/api/batches/health-check").json() == {"batches": [{"id": 1}]}


def test_hit_level_validation():
    with mock.patch.object(db_auditor, "hit_level_files", return_value=[{"file_id": 1}]):
        body = client.post("/api/audit/hit-level-validation", json={"protein_id": "5c3l_B"}).json()
    assert body["validation_ready"] is True
    assert client.post("/api/audit/hit-level-validation", json={"protein_id": "5c3l"}).status_code == 400


def test_dashboard_answers_zeroes_on_failure():
    with mock.patch.object(db_reader, "dashboard_stats", side_effect=RuntimeError("db down")):
        response = client.get("/api/dashboard/stats")
    assert response.status_code == 200
    body = response.json()
    assert body["total_proteins"] == 0
    assert body["details"] == "db down"


def test_metadata_batch_limits():
    assert client.post("/api/pdb-metadata", json={"pdb_ids": []}).status_code == 422
    assert client.post("/api/pdb-metadata", json={"pdb_ids": ["1abc"] * 101}).status_code == 422


def test_metadata_batch_reports_missing():
    cached = {"pdb_id": "1ABC", "title": "x"}
    with mock.patch.object(db_reader, "get_cached_pdb_metadata", side_effect=[cached, None]):
        body = client.post("/api/pdb-metadata", json={"pdb_ids": ["1abc", "2def"]}).json()
    assert body["metadata"] == [cached, {"pdb_id": "2DEF", "error": "Not found"}]


def test_health_reports_database_down():
    with mock.patch.object(db_reader.adapter, "ping", side_effect=RuntimeError("refused")):
        assert client.get("/health").status_code == 503


# =============================================================================
# Curation
# =============================================================================


def test_start_session_validation_and_not_found():
    assert client.post("/api/curation/session/start", json={"curator_name": ""}).status_code == 422
    with mock.patch.object(curation_store, "start_session", side_effect=NotFoundError("No proteins available")):
        response = client.post("/api/curation/session/start", json={"curator_name": "alice"})
    assert response.status_code == 404


def test_resume_state_error_is_400():
    with mock.patch.object(curation_store, "resume_session", side_effect=SessionStateError("closed")):
        assert client.get("/api/curation/session/3/resume").status_code == 400


@pytest.mark.parametrize("path", ["/api/curation/session/3/complete", "/api/curation/session/3"])
def test_complete_routes(path):
    with mock.patch.object(curation_store, "complete_session", return_value={"success": True}) as complete:
        response = client.post(path, json={"action": "commit", "final_notes": "ok"})
    assert response.json() == {"success": True}
    complete.assert_called_once()
    assert client.post(path, json={"action": "publish"}).status_code == 422


def test_reference_structure_headers(mmcif_text):
    request = {"pdb_id": "1abc", "chain_id": "A", "domain_range": "A:10-11,A:13-14"}
    with mock.patch.object(structure_fetcher, "fetch_mmcif", return_value=mmcif_text):
        response = client.post("/api/curation/reference-structure", json=request)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("chemical/x-pdb")
    assert response.headers["content-disposition"] == 'inline; filename="1abc_A_10-14.pdb"'
    info = json.loads(response.headers["x-domain-info"])
    assert info["total_residues"] == 4


def test_reference_structure_errors(mmcif_text):
    assert client.post("/api/curation/reference-structure", json={"pdb_id": "1abc"}).status_code == 400
    bad_range = {"pdb_id": "1abc", "chain_id": "A", "domain_range": "ten-twenty"}
    assert client.post("/api/curation/reference-structure", json=bad_range).status_code == 400

    with mock.patch.object(db_reader, "get_evidence_reference", return_value=None):
        assert client.post("/api/curation/reference-structure", json={"evidence_id": 9}).status_code == 404

    # only pdb and mmcif can be written from an extracted domain
    sdf = {"pdb_id": "1abc", "chain_id": "A", "domain_range": "10-14", "format": "sdf"}
    with mock.patch.object(structure_fetcher, "fetch_mmcif", return_value=mmcif_text) as fetch:
        assert client.post("/api/curation/reference-structure", json=sdf).status_code == 422
    fetch.assert_not_called()

    request = {"pdb_id": "1abc", "chain_id": "Z", "domain_range": "10-14"}
    with mock.patch.object(structure_fetcher, "fetch_mmcif", return_value=mmcif_text):
        assert client.post("/api/curation/reference-structure", json=request).status_code == 400

    with mock.patch.object(structure_fetcher, "fetch_mmcif", side_effect=StructureNotFoundError("1abc")):
        response = client.post("/api/curation/reference-structure", json=request)
    assert response.status_code == 404
    assert response.json()["detail"] == "Failed to fetch structure 1abc"


# =============================================================================
# Structures
# =============================================================================


def test_structure_download_headers():
    with mock.patch.object(structure_fetcher, "fetch_mmcif", return_value="data_1ABC\n"):
        response = client.get("/api/pdb/1abc")
    assert response.status_code == 200
    assert response.headers["cache-control"] == "public, max-age=86400"
    assert response.headers["x-structure-format"] == "mmcif"


def test_structure_errors():
    assert client.get("/api/pdb/12345").status_code == 400
    error = StructureNotFoundError("9zzz", ["RCSB mmCIF: HTTP 404", "PDBe mmCIF: HTTP 404"])
    with mock.patch.object(structure_fetcher, "fetch_mmcif", side_effect=error):
        response = client.get("/api/pdb/9zzz")
    assert response.status_code == 404
    assert response.json()["details"] == "PDBe mmCIF: HTTP 404"
