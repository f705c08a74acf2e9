import re

import pytest
from pydantic import ValidationError

from ecod_pg.models import (
    ArchitectureFilters,
    DomainFilters,
    Pagination,
    PipelineSummaryFilters,
    ProteinFilters,
    ProteinSearchRequest,
    ProteinSort,
    SortDirection,
    SummarySort,
)
from ecod_pg.protein_query_builder import (
    ArchitectureQueryBuilder,
    DomainQueryBuilder,
    PipelineSummaryQueryBuilder,
    ProteinQueryBuilder,
    ProteinSearchQueryBuilder,
)

PLACEHOLDER = re.compile(r"%\((\w+)\)s")


def assert_params_bound(query, params):
    """Every placeholder has a value and no stray percent signs remain in the SQL."""
    names = set(PLACEHOLDER.findall(query))
    assert names <= set(params)
    assert "%" not in PLACEHOLDER.sub("", query)


def test_protein_list_filters_and_pagination():
    filters = ProteinFilters(page=3, size=20, pdb_id="5c3l", min_length=50, is_classified=True)
    query, params = ProteinQueryBuilder(filters).build()

    assert_params_bound(query, params)
    assert "p.pdb_id = %(pdb_id)s" in query
    assert "HAVING COUNT(d.id) > 0" in query
    assert params["limit"] == 20
    assert params["offset"] == 40


def test_protein_stats_drop_pagination():
    builder = ProteinQueryBuilder(ProteinFilters(batch_id=7))
    builder.build()
    query, params = builder.build_stats()

    assert_params_bound(query, params)
    assert "limit" not in params and "offset" not in params
    assert "LIMIT" not in query
    assert params["batch_id"] == 7


@pytest.mark.parametrize(
    "sort,expected",
    [
        (ProteinSort.CONFIDENCE, "best_confidence ASC NULLS LAST"),
        (ProteinSort.LENGTH, "p.length ASC"),
        (ProteinSort.ALPHABETIC, "ORDER BY p.pdb_id, p.chain_id"),
    ],
)
def test_protein_sort_is_whitelisted(sort, expected):
    query, _ = ProteinQueryBuilder(ProteinFilters(sort=sort, sort_dir=SortDirection.ASC)).build()
    assert expected in query


def test_invalid_sort_rejected():
    with pytest.raises(ValidationError):
        ProteinFilters(sort="p.id; DROP TABLE protein")
    with pytest.raises(ValidationError):
        ProteinFilters(size=10_000)


def test_search_binds_pattern_as_parameter():
    request = ProteinSearchRequest(search_term="5c3l", search_fields="pdb_id,name", page=2, size=10)
    query, params = ProteinSearchQueryBuilder(request).build()

    assert_params_bound(query, params)
    assert "p.pdb_id ILIKE %(search_pattern)s OR p.name ILIKE %(search_pattern)s" in query
    assert params["search_pattern"] == "%5c3l%"
    assert params["offset"] == 10


def test_search_fields_whitelisted():
    with pytest.raises(ValidationError):
        ProteinSearchRequest(search_term="x", search_fields=["length; --"])


def test_summary_plain_filters_avoid_domain_join():
    filters = PipelineSummaryFilters(pdb_id="5c3", chain_id="b", evidence_types="hhsearch,blast")
    builder = PipelineSummaryQueryBuilder(filters)
    query, params = builder.build()

    assert_params_bound(query, params)
    assert not builder.needs_domain_join
    assert "SELECT DISTINCT" not in query
    assert params["pdb_pattern"] == "%5c3%"
    assert params["chain_id"] == "B"
    assert "(pps.hhsearch_evidence > 0 OR pps.chain_blast_evidence > 0)" in query
    assert builder.where_count == 3


def test_summary_group_filters_use_distinct():
    filters = PipelineSummaryFilters(t_groups="2002.1.1, 11.1.1", sort=SummarySort.PDB_ID)
    builder = PipelineSummaryQueryBuilder(filters)
    query, params = builder.build()
    count_query, count_params = builder.build_count()

    assert params["t_groups"] == ["2002.1.1", "11.1.1"]
    assert query.strip().startswith("SELECT DISTINCT")
    assert "INNER JOIN pdb_analysis.partition_domains pd" in query
    assert "COUNT(DISTINCT pps.processing_id)" in count_query
    assert "limit" not in count_params
    assert_params_bound(count_query, count_params)


def test_domain_list_and_stats_share_filters():
    builder = DomainQueryBuilder(DomainFilters(h_groups=["1.1"], min_confidence=0.5, size=25))
    query, params = builder.build()
    stats_query, stats_params = builder.build_stats()

    assert_params_bound(query, params)
    assert_params_bound(stats_query, stats_params)
    assert "pds.h_group = ANY(%(h_groups)s)" in stats_query
    assert params["limit"] == 25
    assert stats_params == {"h_groups": ["1.1"], "min_confidence": 0.5}


def test_architecture_query_parameters():
    builder = ArchitectureQueryBuilder(ArchitectureFilters(pdb_id="1ab", evidence_types="hhsearch"))
    query, params = builder.build()

    assert_params_bound(query, params)
    assert params == {"pdb_pattern": "%1ab%", "evidence_pattern": "%hhsearch%"}
    assert "LIMIT 50" in query


def test_pagination_pages():
    assert Pagination.of(1, 50, 101).totalPages == 3
    assert Pagination.of(1, 50, 0).totalPages == 0
