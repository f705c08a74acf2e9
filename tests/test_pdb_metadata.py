from unittest import mock

import requests

from api.services.pdb_metadata import fetch_pdb_metadata, parse_citation, parse_entry

ENTRY = {
    "struct": {"title": "Crystal structure of tubulin"},
    "rcsb_accession_info": {
        "deposit_date": "2015-06-01T00:00:00+0000",
        "initial_release_date": "2015-09-02T00:00:00+0000",
    },
    "exptl": [{"method": "X-RAY DIFFRACTION"}],
    "rcsb_entry_info": {"resolution_combined": [2.1]},
    "refine": [{"ls_r_factor_r_work": 0.19}],
    "struct_keywords": {"pdbx_keywords": "STRUCTURAL PROTEIN, CELL CYCLE"},
}


def test_parse_entry():
    meta = parse_entry("5c3l", ENTRY)

    assert meta["pdb_id"] == "5C3L"
    assert meta["method"] == "X-RAY DIFFRACTION"
    assert meta["resolution"] == 2.1
    assert meta["r_factor"] == 0.19
    assert meta["structure_keywords"] == ["STRUCTURAL PROTEIN", "CELL CYCLE"]
    assert meta["organism"] is None


def test_parse_citation_from_list():
    citation = parse_citation(
        [
            {
                "rcsb_pubmed_container_identifiers": {"pubmed_id": 26000000, "doi": "10.1/x"},
                "rcsb_pubmed_citation": {"title": "T", "journal_abbrev": "Nature", "year": 2015},
            }
        ]
    )
    assert citation == {"pmid": "26000000", "doi": "10.1/x", "title": "T", "journal": "Nature", "year": 2015}
    assert parse_citation(None) is None


def test_fetch_failure_returns_bare_id():
    with mock.patch(
        "api.services.pdb_metadata.requests.get", side_effect=requests.ConnectionError("down")
    ):
        assert fetch_pdb_metadata("5c3l") == {"pdb_id": "5C3L"}
