import pytest

from lib.domain_summary import parse_domain_summary
from lib.evidence_analysis import analyze_hit, analyze_protein_evidence, trace_domain_evidence, validate_hits, analyze_coverage
from lib.types import ContributionType, EvidenceHit, EvidenceType, HitQuality, PipelineDomain


@pytest.fixture
def domains():
    return [
        PipelineDomain(id=1, domain_number=1, start=10, end=100, source="domain_blast", confidence=0.9, t_group="2002.1.1"),
        PipelineDomain(id=2, domain_number=2, start=105, end=190, source="hhsearch", confidence=0.85),
    ]


@pytest.fixture
def summary(domain_summary_xml):
    return parse_domain_summary(domain_summary_xml, 200, "5c3l_B")


def _hit(**kw):
    base = dict(
        id="h", type=EvidenceType.DOMAIN_BLAST, hit_id="e1", query_range="1-100", hit_range="1-100",
        query_start=1, query_end=100, hit_start=1, hit_end=100, evalue=1e-30,
        query_coverage=0.9, alignment_length=100,
    )
    base.update(kw)
    return EvidenceHit(**base)


def test_short_alignment_is_fragment():
    analysis = analyze_hit(_hit(alignment_length=12, query_coverage=0.06), [])
    assert analysis.quality == HitQuality.FRAGMENT
    assert "Very short alignment (12 residues)" in analysis.issues


def test_high_evalue_downgrades_excellent():
    analysis = analyze_hit(_hit(evalue=0.01), [])
    assert analysis.quality == HitQuality.GOOD
    assert analysis.issues == ["High E-value (1.00e-2)"]


def test_low_probability_downgrades_hhsearch():
    analysis = analyze_hit(_hit(type=EvidenceType.HHSEARCH, probability=50.0), [])
    assert analysis.quality == HitQuality.GOOD
    assert "Low probability (50.0%)" in analysis.issues


def test_metrics_for_fixture(summary, domains):
    result = analyze_protein_evidence(summary, domains)

    assert result["metrics"] == {
        "total_hits": 4,
        "usable_hits": 1,
        "used_hits": 3,
        "unused_usable_hits": 0,
        "fragments": 1,
        "poor_quality": 2,
    }
    assert result["parameters"] == {"coverage_threshold": 0.7, "min_alignment_length": 30}
    assert [h["quality"] for h in result["hit_validations"]] == ["excellent", "poor", "fragment", "poor"]


def test_trace_flags_nearby_unused_hit(summary, domains):
    validations = validate_hits(analyze_coverage(summary.all_hits, domains), domains)
    trace = trace_domain_evidence(domains[0], validations)

    kinds = [c.contribution_type for c in trace.contributions]
    assert kinds == [
        ContributionType.PRIMARY,
        ContributionType.PRIMARY,
        ContributionType.UNUSED,
        ContributionType.CONFLICTING,
    ]
    assert "1 evidence hit(s) near domain but not used" in trace.potential_issues
    assert trace.confidence_breakdown.evidence_count == 2
    assert trace.confidence_breakdown.boundary_confidence == 1.0
    # domain BLAST hit matches the domain's classification source
    assert trace.contributions[1].confidence_contribution == pytest.approx(0.9)


def test_domain_without_primary_evidence(domains):
    trace = trace_domain_evidence(domains[1], [])
    assert "No primary evidence - domain based on weak evidence only" in trace.potential_issues
    assert trace.confidence_breakdown.evidence_count == 0


def test_avg_significance_is_mean_contribution_of_counted_hits(summary, domains):
    validations = validate_hits(analyze_coverage(summary.all_hits, domains), domains)
    trace = trace_domain_evidence(domains[0], validations)

    # chain BLAST primary 0.8, domain BLAST primary with source match 0.9
    assert trace.confidence_breakdown.avg_significance == pytest.approx(0.85)
