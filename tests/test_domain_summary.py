import pytest

from lib.domain_summary import parse_domain_summary
from lib.errors import DomainSummaryParseError
from lib.types import EvidenceType


def test_parse_counts_and_metadata(domain_summary_xml):
    summary = parse_domain_summary(domain_summary_xml, 200, "5c3l_B")

    assert summary.metadata.pdb_id == "5c3l"
    assert summary.metadata.chain_id == "B"
    # domain BLAST hit without a domain_id is skipped
    assert summary.counts() == {"chain_blast": 1, "domain_blast": 2, "hhsearch": 1, "total": 4}


def test_chain_blast_hit_fields(domain_summary_xml):
    hit = parse_domain_summary(domain_summary_xml, 200).chain_blast_hits[0]

    assert hit.type == EvidenceType.CHAIN_BLAST
    assert hit.hit_id == "1abc_A"
    assert hit.evalue == pytest.approx(1e-50)
    assert (hit.query_start, hit.query_end) == (1, 180)
    assert hit.alignment_length == 180
    assert hit.query_coverage == pytest.approx(0.9)


def test_hhsearch_hit_fields(domain_summary_xml):
    hit = parse_domain_summary(domain_summary_xml, 200).hhsearch_hits[0]

    assert hit.hit_id == "e3defB1"
    assert hit.domain_id == "e3defB1"
    assert hit.probability == pytest.approx(98.5)
    assert hit.score == pytest.approx(120.5)
    assert (hit.hit_start, hit.hit_end) == (2, 87)


def test_metadata_falls_back_to_protein_id():
    summary = parse_domain_summary("<empty/>", 100, "1abc_C")
    assert summary.metadata.pdb_id == "1abc"
    assert summary.metadata.chain_id == "C"
    assert summary.counts()["total"] == 0


def test_malformed_xml_raises():
    with pytest.raises(DomainSummaryParseError):
        parse_domain_summary("<blast_summ_doc>", 100)
