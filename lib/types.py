# lib/types.py
"""
Core type definitions for the ECOD curation dashboard.

Enums and constants describe the pipeline's vocabulary (classification levels,
evidence types, process versions); the pydantic models carry parsed evidence
between the domain summary parser and the evidence analysis routines.
"""

from typing import Dict, Optional, List, Any
from enum import Enum
from pydantic import BaseModel, Field


# ============================================================
# Constants
# ============================================================

REPRESENTATIVE_VERSION = "mini_pyecod_1.0"
PROPAGATED_VERSION = "mini_pyecod_propagated_1.0"
LEGACY_VERSIONS = ["1.0"]

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5
LOW_CONFIDENCE = 0.2

HIGH_OVERLAP = 0.8
MEDIUM_OVERLAP = 0.5
LOW_OVERLAP = 0.1

RECENT_DAYS = 7

# Curation candidates
CURATION_MIN_CONFIDENCE = 0.8
CURATION_MIN_LENGTH = 30
CURATION_MAX_LENGTH = 1000

EVIDENCE_FILE_TYPES = [
    "domain_summary",
    "chain_blast_result",
    "domain_blast_result",
    "hhsearch_result",
    "hhblits_profile",
]


# ============================================================
# Enums
# ============================================================


class ClassificationLevel(str, Enum):
    X_GROUP = "x_group"
    H_GROUP = "h_group"
    T_GROUP = "t_group"
    A_GROUP = "a_group"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class OverlapType(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    CONFLICT = "conflict"
    NONE = "none"


class EvidenceType(str, Enum):
    CHAIN_BLAST = "chain_blast"
    DOMAIN_BLAST = "domain_blast"
    HHSEARCH = "hhsearch"


class HitQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    POOR = "poor"
    FRAGMENT = "fragment"


class ContributionType(str, Enum):
    PRIMARY = "primary"
    SUPPORTING = "supporting"
    BOUNDARY_ADJUSTMENT = "boundary_adjustment"
    CONFLICTING = "conflicting"
    UNUSED = "unused"


class SyncIssue(str, Enum):
    NO_PARTITION_DATA = "NO_PARTITION_DATA"
    MISSING_PARTITIONS = "MISSING_PARTITIONS"
    STATUS_LAG = "STATUS_LAG"
    COUNT_OVERFLOW = "COUNT_OVERFLOW"
    MISSING_COMPLETION_TIME = "MISSING_COMPLETION_TIME"
    OK = "OK"


# ============================================================
# Domain summary evidence
# ============================================================


class SummaryMetadata(BaseModel):
    pdb_id: str = ""
    chain_id: str = ""
    reference: str = "unknown"
    creation_date: Optional[str] = None
    min_probability: Optional[float] = None


class EvidenceHit(BaseModel):
    """One BLAST or HHSearch hit read from a domain summary file."""

    id: str
    type: EvidenceType
    hit_id: str
    num: Optional[int] = None
    domain_id: Optional[str] = None
    pdb_id: Optional[str] = None
    chain_id: Optional[str] = None

    query_range: str
    hit_range: str
    query_start: int
    query_end: int
    hit_start: int
    hit_end: int

    evalue: Optional[float] = None
    probability: Optional[float] = None
    score: Optional[float] = None
    identity: Optional[float] = None
    similarity: Optional[float] = None
    hsp_count: Optional[int] = None

    query_coverage: float = 0.0
    hit_coverage: float = 1.0
    alignment_length: int = 0

    query_alignment: Optional[str] = None
    template_alignment: Optional[str] = None


class DomainSummary(BaseModel):
    protein_id: str
    sequence_length: int
    metadata: SummaryMetadata
    chain_blast_hits: List[EvidenceHit] = Field(default_factory=list)
    domain_blast_hits: List[EvidenceHit] = Field(default_factory=list)
    hhsearch_hits: List[EvidenceHit] = Field(default_factory=list)

    @property
    def all_hits(self) -> List[EvidenceHit]:
        return self.chain_blast_hits + self.domain_blast_hits + self.hhsearch_hits

    def counts(self) -> Dict[str, int]:
        return {
            "chain_blast": len(self.chain_blast_hits),
            "domain_blast": len(self.domain_blast_hits),
            "hhsearch": len(self.hhsearch_hits),
            "total": len(self.all_hits),
        }


class PipelineDomain(BaseModel):
    """A domain boundary as assigned by the partitioning pipeline."""

    id: Any
    domain_number: Optional[int] = None
    start: int
    end: int
    range: Optional[str] = None
    source: Optional[str] = None
    confidence: Optional[float] = None
    t_group: Optional[str] = None
    h_group: Optional[str] = None
    x_group: Optional[str] = None

    @property
    def length(self) -> int:
        return self.end - self.start + 1


# ============================================================
# Evidence analysis results
# ============================================================


class CoverageAnalysis(BaseModel):
    hit: EvidenceHit
    quality: HitQuality
    issues: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    supports_current_domains: bool = False


class HitValidation(BaseModel):
    hit: EvidenceHit
    analysis: CoverageAnalysis
    is_usable_for_boundaries: bool
    contributes_to_pipeline_domains: bool
    boundary_quality: str
    recommended_action: str


class EvidenceContribution(BaseModel):
    hit_id: str
    hit_type: EvidenceType
    contribution_type: ContributionType
    overlap_fraction: float
    confidence_contribution: float
    notes: List[str] = Field(default_factory=list)


class ConfidenceBreakdown(BaseModel):
    evidence_count: int
    avg_significance: float
    boundary_confidence: float
    classification_confidence: float


class DomainTrace(BaseModel):
    domain_id: Any
    domain_range: str
    contributions: List[EvidenceContribution] = Field(default_factory=list)
    decision_rationale: List[str] = Field(default_factory=list)
    potential_issues: List[str] = Field(default_factory=list)
    confidence_breakdown: ConfidenceBreakdown
