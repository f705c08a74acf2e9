# ecod_pg/models.py
"""
Pydantic models for API request/response contracts.
"""

import math
from typing import Any, Optional, List, Dict, Generic, TypeVar
from pydantic import BaseModel, Field, field_validator
from enum import Enum

from lib.types import ClassificationLevel

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @property
    def sql(self) -> str:
        return self.value.upper()


class ProteinSort(str, Enum):
    RECENT = "recent"
    BATCH = "batch"
    CONFIDENCE = "confidence"
    COVERAGE = "coverage"
    DOMAINS = "domains"
    LENGTH = "length"
    ALPHABETIC = "alphabetic"


class SummarySort(str, Enum):
    RECENT = "recent"
    BATCH = "batch"
    CONFIDENCE = "confidence"
    COVERAGE = "coverage"
    DOMAINS = "domains"
    PDB_ID = "pdb_id"
    SEQUENCE_LENGTH = "sequence_length"


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    COMMITTED = "committed"
    DISCARDED = "discarded"
    ABANDONED = "abandoned"


class CompletionAction(str, Enum):
    COMMIT = "commit"
    DISCARD = "discard"
    REVISIT = "revisit"

    @property
    def final_status(self) -> SessionStatus:
        return {
            CompletionAction.COMMIT: SessionStatus.COMMITTED,
            CompletionAction.DISCARD: SessionStatus.DISCARDED,
            CompletionAction.REVISIT: SessionStatus.COMPLETED,
        }[self]


SORT_OPTIONS = [
    {"key": "recent", "label": "Most Recent", "description": "Recently processed proteins first"},
    {"key": "batch", "label": "Latest Batch", "description": "Newest batches first"},
    {"key": "confidence", "label": "Best Confidence", "description": "Highest confidence first"},
    {"key": "coverage", "label": "Coverage", "description": "Best domain coverage first"},
    {"key": "domains", "label": "Domain Count", "description": "Most domains first"},
    {"key": "length", "label": "Sequence Length", "description": "Longest sequences first"},
    {"key": "alphabetic", "label": "Alphabetic", "description": "PDB ID alphabetically"},
]


def _split_csv(v: Any):
    if isinstance(v, str):
        return [x.strip() for x in v.split(",") if x.strip()]
    return v


# ============================================================
# Pagination
# ============================================================


class Pagination(BaseModel):
    page: int
    size: int
    total: int
    totalPages: int

    @classmethod
    def of(cls, page: int, size: int, total: int) -> "Pagination":
        return cls(page=page, size=size, total=total, totalPages=math.ceil(total / size) if size else 0)


class PaginatedResponse(BaseModel, Generic[T]):
    data: List[T]
    pagination: Pagination


# ============================================================
# Filters
# ============================================================


class PageParams(BaseModel):
    class Config:
        populate_by_name = True

    page: int = Field(default=1, ge=1)
    size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


class ProteinFilters(PageParams):
    """Filter parameters for the protein list."""

    sort: ProteinSort = ProteinSort.RECENT
    sort_dir: SortDirection = SortDirection.DESC

    pdb_id: Optional[str] = None
    chain_id: Optional[str] = None
    unp_acc: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    is_classified: Optional[bool] = None
    batch_id: Optional[int] = None


class ProteinSearchFilters(BaseModel):
    pdb_id: Optional[str] = None
    chain_id: Optional[str] = None
    unp_acc: Optional[str] = None


SEARCHABLE_FIELDS = ("pdb_id", "chain_id", "unp_acc", "name", "source_id")


class ProteinSearchRequest(BaseModel):
    search_term: Optional[str] = None
    search_fields: List[str] = Field(default_factory=lambda: ["pdb_id", "chain_id", "unp_acc"])
    page: int = Field(default=1, ge=1)
    size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    filters: ProteinSearchFilters = Field(default_factory=ProteinSearchFilters)

    @field_validator("search_fields", mode="before")
    @classmethod
    def decode_fields(cls, v: Any):
        return _split_csv(v)

    @field_validator("search_fields")
    @classmethod
    def whitelist_fields(cls, v: List[str]):
        unknown = [f for f in v if f not in SEARCHABLE_FIELDS]
        if unknown:
            raise ValueError(f"Unsupported search fields: {', '.join(unknown)}")
        return v


class PipelineSummaryFilters(PageParams):
    """Filters over pipeline_performance_summary."""

    size: int = Field(default=50, ge=1, le=100)
    sort: SummarySort = SummarySort.RECENT
    sort_dir: SortDirection = SortDirection.DESC

    pdb_id: Optional[str] = None
    chain_id: Optional[str] = None
    batch_id: Optional[int] = None
    domain_number: Optional[int] = None

    min_confidence: Optional[float] = None
    max_confidence: Optional[float] = None
    sequence_length_min: Optional[int] = None
    sequence_length_max: Optional[int] = None
    min_evidence_count: Optional[int] = None
    evidence_types: Optional[List[str]] = None

    t_groups: Optional[List[str]] = None
    h_groups: Optional[List[str]] = None
    x_groups: Optional[List[str]] = None
    a_groups: Optional[List[str]] = None

    @field_validator(
        "evidence_types", "t_groups", "h_groups", "x_groups", "a_groups", mode="before"
    )
    @classmethod
    def decode_strings(cls, v: Any):
        return _split_csv(v)

    def applied(self) -> Dict[str, Any]:
        return {
            k: v
            for k, v in self.model_dump(mode="json").items()
            if v not in (None, [], "")
        }


class ArchitectureFilters(BaseModel):
    class Config:
        populate_by_name = True

    pdb_id: Optional[str] = None
    chain_id: Optional[str] = None
    min_confidence: Optional[float] = None
    max_confidence: Optional[float] = None
    t_groups: Optional[List[str]] = None
    h_groups: Optional[List[str]] = None
    x_groups: Optional[List[str]] = None
    evidence_types: Optional[str] = None

    @field_validator("t_groups", "h_groups", "x_groups", mode="before")
    @classmethod
    def decode_strings(cls, v: Any):
        return _split_csv(v)


class DomainFilters(PageParams):
    pdb_id: Optional[str] = None
    chain_id: Optional[str] = None
    t_groups: Optional[List[str]] = None
    h_groups: Optional[List[str]] = None
    x_groups: Optional[List[str]] = None
    min_confidence: Optional[float] = None
    max_confidence: Optional[float] = None

    @field_validator("t_groups", "h_groups", "x_groups", mode="before")
    @classmethod
    def decode_strings(cls, v: Any):
        return _split_csv(v)


class FilterOptionsQuery(BaseModel):
    type: ClassificationLevel
    search: Optional[str] = None
    limit: int = Field(default=20, ge=1, le=100)


# ============================================================
# Responses
# ============================================================


class ProteinStatistics(BaseModel):
    totalProteins: int = 0
    classifiedProteins: int = 0
    unclassifiedProteins: int = 0
    avgDomainsPerProtein: float = 0
    avgSequenceLength: float = 0
    recentProteins: int = 0


class SortingInfo(BaseModel):
    current_sort: str
    sort_direction: str
    available_sorts: List[Dict[str, str]] = Field(default_factory=lambda: list(SORT_OPTIONS))


class ProteinListResponse(PaginatedResponse[Dict[str, Any]]):
    statistics: ProteinStatistics
    sorting: SortingInfo


class DomainStatistics(BaseModel):
    totalDomains: int = 0
    classifiedDomains: int = 0
    highConfidenceDomains: int = 0
    avgConfidence: float = 0
    domainsWithEvidence: int = 0


class DomainListResponse(PaginatedResponse[Dict[str, Any]]):
    statistics: DomainStatistics


class FilterOption(BaseModel):
    value: str
    label: str
    count: int


class FilterOptionsResponse(BaseModel):
    options: List[FilterOption]
    total: int
    hasMore: bool


# ============================================================
# Curation
# ============================================================


class StartSessionRequest(BaseModel):
    curator_name: str = Field(min_length=1)
    batch_size: int = Field(default=10, ge=1, le=100)


class DecisionFields(BaseModel):
    has_domain: Optional[bool] = None
    domain_assigned_correctly: Optional[bool] = None
    boundaries_correct: Optional[bool] = None
    is_fragment: bool = False
    is_repeat_protein: bool = False
    confidence_level: Optional[int] = Field(default=None, ge=1, le=5)
    notes: Optional[str] = None
    flagged_for_review: bool = False


class EvidenceUsed(BaseModel):
    primary_evidence_type: Optional[str] = None
    primary_evidence_source_id: Optional[str] = None
    reference_domain_id: Optional[str] = None
    evidence_confidence: Optional[float] = None
    evidence_evalue: Optional[float] = None


class CurationDecisionRequest(BaseModel):
    session_id: int
    protein_source_id: str
    decisions: DecisionFields = Field(default_factory=DecisionFields)
    evidence_used: EvidenceUsed = Field(default_factory=EvidenceUsed)
    review_time_seconds: Optional[int] = None


class AutoSaveRequest(BaseModel):
    current_protein_index: int = 0
    decisions: List[Optional[Dict[str, Any]]] = Field(default_factory=list)
    notes: Optional[str] = None

    @property
    def completed_count(self) -> int:
        return sum(1 for d in self.decisions if d and d.get("completed"))


class CompleteSessionRequest(BaseModel):
    action: CompletionAction
    final_notes: Optional[str] = None
