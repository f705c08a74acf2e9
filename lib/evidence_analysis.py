# lib/evidence_analysis.py
"""
Hit-level evidence review.

Given the hits from a domain summary and the domains the pipeline assigned,
grade each hit's coverage, decide whether the pipeline plausibly used it, and
trace which hits back each domain's boundaries.
"""

from typing import Dict, List, Any

from lib.ranges import overlap_length
from lib.types import (
    ConfidenceBreakdown,
    ContributionType,
    CoverageAnalysis,
    DomainSummary,
    DomainTrace,
    EvidenceContribution,
    EvidenceHit,
    EvidenceType,
    HitQuality,
    HitValidation,
    PipelineDomain,
)

DEFAULT_COVERAGE_THRESHOLD = 0.7
DEFAULT_MIN_ALIGNMENT_LENGTH = 30

SUPPORT_OVERLAP = 0.5
USED_OVERLAP = 0.3
PRIMARY_OVERLAP = 0.7
BOUNDARY_OVERLAP = 0.1
BOUNDARY_WINDOW = 5
NEARBY_WINDOW = 10
MIN_DOMAIN_LENGTH = 30


def _exponential(value: float) -> str:
    mantissa, exponent = f"{value:.2e}".split("e")
    return f"{mantissa}e{int(exponent):+d}"


def _overlap_ratio(hit: EvidenceHit, domain: PipelineDomain) -> float:
    overlap = overlap_length(hit.query_start, hit.query_end, domain.start, domain.end)
    return overlap / domain.length if domain.length > 0 else 0.0


# ------------------------------------------------------------
# Coverage
# ------------------------------------------------------------


def analyze_hit(
    hit: EvidenceHit,
    domains: List[PipelineDomain],
    coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD,
    min_alignment_length: int = DEFAULT_MIN_ALIGNMENT_LENGTH,
) -> CoverageAnalysis:
    issues: List[str] = []
    recommendations: List[str] = []
    coverage_pct = f"{hit.query_coverage * 100:.1f}%"

    if hit.alignment_length < min_alignment_length:
        quality = HitQuality.FRAGMENT
        issues.append(f"Very short alignment ({hit.alignment_length} residues)")
        recommendations.append("Consider filtering out - likely a fragment")
    elif hit.query_coverage < 0.3:
        quality = HitQuality.FRAGMENT
        issues.append(f"Very low query coverage ({coverage_pct})")
        recommendations.append("Consider filtering out or merging with adjacent domains")
    elif hit.query_coverage < 0.5:
        quality = HitQuality.POOR
        issues.append(f"Low query coverage ({coverage_pct})")
        recommendations.append("Investigate if this should be part of a larger domain")
    elif hit.query_coverage < coverage_threshold:
        quality = HitQuality.GOOD
        issues.append(f"Moderate query coverage ({coverage_pct})")
    else:
        quality = HitQuality.EXCELLENT

    if hit.type == EvidenceType.HHSEARCH:
        probability = hit.probability or 0.0
        if probability < 90:
            issues.append(f"Low probability ({probability:.1f}%)")
            if quality == HitQuality.EXCELLENT:
                quality = HitQuality.GOOD
    else:
        evalue = hit.evalue if hit.evalue is not None else 1.0
        if evalue > 1e-5:
            issues.append(f"High E-value ({_exponential(evalue)})")
            if quality == HitQuality.EXCELLENT:
                quality = HitQuality.GOOD

    supports = any(_overlap_ratio(hit, d) > SUPPORT_OVERLAP for d in domains)

    if hit.type == EvidenceType.DOMAIN_BLAST and quality == HitQuality.EXCELLENT:
        recommendations.append("High-quality domain evidence - good for boundary definition")
    elif hit.type == EvidenceType.CHAIN_BLAST and hit.query_coverage > 0.8:
        recommendations.append("Extensive chain match - may indicate single-domain protein")
    elif hit.type == EvidenceType.HHSEARCH and quality == HitQuality.EXCELLENT:
        recommendations.append("High-confidence HHSearch hit - reliable classification")

    return CoverageAnalysis(
        hit=hit,
        quality=quality,
        issues=issues,
        recommendations=recommendations,
        supports_current_domains=supports,
    )


def analyze_coverage(
    hits: List[EvidenceHit],
    domains: List[PipelineDomain],
    coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD,
    min_alignment_length: int = DEFAULT_MIN_ALIGNMENT_LENGTH,
) -> List[CoverageAnalysis]:
    return [
        analyze_hit(hit, domains, coverage_threshold, min_alignment_length) for hit in hits
    ]


# ------------------------------------------------------------
# Validation
# ------------------------------------------------------------

BOUNDARY_QUALITY = {
    HitQuality.FRAGMENT: "poor",
    HitQuality.POOR: "questionable",
}


def validate_hits(
    analyses: List[CoverageAnalysis], domains: List[PipelineDomain]
) -> List[HitValidation]:
    validations = []
    for analysis in analyses:
        hit = analysis.hit
        validations.append(
            HitValidation(
                hit=hit,
                analysis=analysis,
                is_usable_for_boundaries=analysis.quality
                not in (HitQuality.FRAGMENT, HitQuality.POOR),
                contributes_to_pipeline_domains=any(
                    _overlap_ratio(hit, d) > USED_OVERLAP for d in domains
                ),
                boundary_quality=BOUNDARY_QUALITY.get(analysis.quality, "reliable"),
                recommended_action=(
                    analysis.recommendations[0]
                    if analysis.recommendations
                    else "Use for boundary determination"
                ),
            )
        )
    return validations


def evidence_metrics(validations: List[HitValidation]) -> Dict[str, int]:
    return {
        "total_hits": len(validations),
        "usable_hits": sum(1 for v in validations if v.is_usable_for_boundaries),
        "used_hits": sum(1 for v in validations if v.contributes_to_pipeline_domains),
        "unused_usable_hits": sum(
            1
            for v in validations
            if v.is_usable_for_boundaries and not v.contributes_to_pipeline_domains
        ),
        "fragments": sum(1 for v in validations if v.analysis.quality == HitQuality.FRAGMENT),
        "poor_quality": sum(1 for v in validations if v.analysis.quality == HitQuality.POOR),
    }


# ------------------------------------------------------------
# Traceability
# ------------------------------------------------------------


def _contribution(hit: EvidenceHit, domain: PipelineDomain) -> EvidenceContribution:
    notes: List[str] = []
    ratio = 0.0
    contribution = 0.0
    kind = ContributionType.UNUSED

    overlap = overlap_length(hit.query_start, hit.query_end, domain.start, domain.end)
    if overlap > 0:
        ratio = overlap / domain.length
        if ratio > PRIMARY_OVERLAP:
            kind, contribution = ContributionType.PRIMARY, 0.8
            notes.append("Primary evidence - high overlap with domain")
        elif ratio > USED_OVERLAP:
            kind, contribution = ContributionType.SUPPORTING, 0.5
            notes.append("Supporting evidence - moderate overlap")
        elif ratio > BOUNDARY_OVERLAP:
            kind, contribution = ContributionType.BOUNDARY_ADJUSTMENT, 0.2
            notes.append("May have influenced boundary placement")

        start_distance = abs(hit.query_start - domain.start)
        end_distance = abs(hit.query_end - domain.end)
        if start_distance <= BOUNDARY_WINDOW:
            notes.append(f"Likely influenced start boundary (±{start_distance} residues)")
        if end_distance <= BOUNDARY_WINDOW:
            notes.append(f"Likely influenced end boundary (±{end_distance} residues)")
    elif hit.query_end < domain.start - NEARBY_WINDOW or hit.query_start > domain.end + NEARBY_WINDOW:
        notes.append("No overlap - not used for this domain")
    else:
        kind = ContributionType.CONFLICTING
        notes.append("Close to domain but not overlapping - potential boundary conflict")

    if domain.source and domain.source == hit.type.value:
        notes.append(f"Classification source match ({hit.type.value})")
        contribution += 0.1

    return EvidenceContribution(
        hit_id=hit.hit_id,
        hit_type=hit.type,
        contribution_type=kind,
        overlap_fraction=ratio,
        confidence_contribution=round(contribution, 3),
        notes=notes,
    )


def trace_domain_evidence(
    domain: PipelineDomain, validations: List[HitValidation]
) -> DomainTrace:
    contributions = [_contribution(v.hit, domain) for v in validations]
    by_type: Dict[ContributionType, List[EvidenceContribution]] = {}
    for c in contributions:
        by_type.setdefault(c.contribution_type, []).append(c)

    primary = by_type.get(ContributionType.PRIMARY, [])
    supporting = by_type.get(ContributionType.SUPPORTING, [])
    conflicting = by_type.get(ContributionType.CONFLICTING, [])
    unused_strong = [
        c
        for c, v in zip(contributions, validations)
        if c.contribution_type == ContributionType.UNUSED and v.is_usable_for_boundaries
    ]

    rationale = []
    if primary:
        rationale.append(
            f"Domain boundaries primarily based on {len(primary)} high-overlap evidence hit(s)"
        )
    if supporting:
        rationale.append(f"Supported by {len(supporting)} additional evidence hit(s)")
    rationale.append(
        f"Classification ({domain.t_group or 'unclassified'}) derived from {domain.source} evidence"
    )
    rationale.append(f"Final confidence: {(domain.confidence or 0) * 100:.0f}%")

    issues = []
    if conflicting:
        issues.append(f"{len(conflicting)} evidence hit(s) near domain but not used")
    if unused_strong:
        issues.append(f"{len(unused_strong)} high-quality evidence hit(s) not incorporated")
    if not primary:
        issues.append("No primary evidence - domain based on weak evidence only")
    if domain.length < MIN_DOMAIN_LENGTH:
        issues.append("Very short domain - may be a fragment")

    counted = primary + supporting
    avg_significance = (
        sum(c.confidence_contribution for c in counted) / len(counted) if counted else 0.0
    )

    return DomainTrace(
        domain_id=domain.id,
        domain_range=domain.range or f"{domain.start}-{domain.end}",
        contributions=contributions,
        decision_rationale=rationale,
        potential_issues=issues,
        confidence_breakdown=ConfidenceBreakdown(
            evidence_count=len(counted),
            avg_significance=round(avg_significance, 3),
            boundary_confidence=min(1.0, len(counted) / 2),
            classification_confidence=domain.confidence or 0.0,
        ),
    )


def analyze_protein_evidence(
    summary: DomainSummary,
    domains: List[PipelineDomain],
    coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD,
    min_alignment_length: int = DEFAULT_MIN_ALIGNMENT_LENGTH,
) -> Dict[str, Any]:
    """Full review for one chain: coverage, validation, metrics and per-domain traces."""
    analyses = analyze_coverage(
        summary.all_hits, domains, coverage_threshold, min_alignment_length
    )
    validations = validate_hits(analyses, domains)
    return {
        "summary": {
            "metadata": summary.metadata.model_dump(),
            "sequence_length": summary.sequence_length,
            "hit_counts": summary.counts(),
        },
        "coverage_analysis": [a.model_dump(mode="json") for a in analyses],
        "hit_validations": [
            v.model_dump(mode="json", exclude={"analysis"}) | {"quality": v.analysis.quality.value}
            for v in validations
        ],
        "metrics": evidence_metrics(validations),
        "traceability": [
            trace_domain_evidence(d, validations).model_dump(mode="json") for d in domains
        ],
        "parameters": {
            "coverage_threshold": coverage_threshold,
            "min_alignment_length": min_alignment_length,
        },
    }
