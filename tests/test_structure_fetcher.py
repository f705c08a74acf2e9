from unittest import mock

import pytest
import requests

from api.services.structure_fetcher import StructureFetcher, looks_like_mmcif
from lib.errors import InvalidIdentifierError, StructureNotFoundError

CIF = "data_1ABC\n_entry.id 1ABC\n"


def _response(status=200, text=CIF):
    return mock.Mock(status_code=status, text=text)


@pytest.fixture
def fetcher(tmp_path):
    return StructureFetcher(cache_dir=tmp_path, timeout=1)


def test_looks_like_mmcif():
    assert looks_like_mmcif(CIF)
    assert not looks_like_mmcif("<html>Not found</html>")
    assert not looks_like_mmcif("")


def test_invalid_id_rejected(fetcher):
    with pytest.raises(InvalidIdentifierError):
        fetcher.fetch_mmcif("1ab")


def test_fetch_writes_cache_then_serves_from_it(fetcher):
    with mock.patch("api.services.structure_fetcher.requests.get", return_value=_response()) as get:
        assert fetcher.fetch_mmcif("1ABC") == CIF
        assert fetcher.fetch_mmcif("1abc") == CIF

    assert get.call_count == 1
    assert "files.rcsb.org" in get.call_args[0][0]
    assert fetcher.cache_path("1abc").read_text() == CIF


def test_falls_back_to_pdbe(fetcher):
    responses = [requests.ConnectionError("down"), _response()]
    with mock.patch("api.services.structure_fetcher.requests.get", side_effect=responses) as get:
        assert fetcher.fetch_mmcif("1abc") == CIF

    assert "ebi.ac.uk" in get.call_args[0][0]


def test_not_found_collects_source_errors(fetcher):
    responses = [_response(status=404, text=""), _response(text="<html/>")]
    with mock.patch("api.services.structure_fetcher.requests.get", side_effect=responses):
        with pytest.raises(StructureNotFoundError) as exc:
            fetcher.fetch_mmcif("9xyz")

    assert exc.value.pdb_id == "9xyz"
    assert exc.value.errors == ["RCSB mmCIF: HTTP 404", "PDBe mmCIF: invalid mmCIF data"]
    assert not fetcher.cache_path("9xyz").exists()


def test_invalid_cache_is_discarded(fetcher):
    fetcher.cache_path("1abc").write_text("garbage")
    with mock.patch("api.services.structure_fetcher.requests.get", return_value=_response()):
        assert fetcher.fetch_mmcif("1abc") == CIF


def test_validate_reports_cache_and_remote(fetcher):
    assert fetcher.validate("xx")["error"] == "Invalid PDB ID format"

    fetcher.cache_path("1abc").write_text(CIF)
    assert fetcher.validate("1ABC")["source"] == "local_cache"

    with mock.patch(
        "api.services.structure_fetcher.requests.head", return_value=mock.Mock(ok=True)
    ):
        result = fetcher.validate("2def")
    assert result["exists"] and result["accessible"]
    assert result["source"] == "rcsb_api"
    assert result["local_available"] is False


def test_validate_handles_network_failure(fetcher):
    with mock.patch(
        "api.services.structure_fetcher.requests.head", side_effect=requests.Timeout("slow")
    ):
        result = fetcher.validate("2def")
    assert result["source"] == "validation_failed"
    assert not result["exists"]
