# api/routers/router_proteins.py
from pathlib import Path
from typing import Optional, List

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response
from loguru import logger

from api.config import settings
from ecod_pg.db_lib_reader import db_reader
from ecod_pg.models import (
    ArchitectureFilters,
    PipelineSummaryFilters,
    ProteinFilters,
    ProteinListResponse,
    ProteinSearchRequest,
    ProteinSort,
    SortDirection,
    SummarySort,
)
from lib.domain_summary import parse_domain_summary
from lib.errors import NotFoundError
from lib.evidence_analysis import (
    DEFAULT_COVERAGE_THRESHOLD,
    DEFAULT_MIN_ALIGNMENT_LENGTH,
    analyze_protein_evidence,
)
from lib.export import rows_to_csv
from lib.ranges import parse_protein_identifier, parse_source_id
from lib.types import PipelineDomain

router_proteins = APIRouter()


def parse_list_param(value: Optional[List[str]]) -> Optional[List[str]]:
    """Handle both repeated params and comma-separated values."""
    if not value:
        return None
    parsed = [v.strip() for item in value for v in item.split(",") if v.strip()]
    return parsed or None


def csv_response(rows, filename: str) -> Response:
    return Response(
        content=rows_to_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _source_id(protein_id: str):
    try:
        return parse_source_id(protein_id)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))


@router_proteins.get("", response_model=ProteinListResponse)
def list_proteins(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    sort: ProteinSort = Query(ProteinSort.RECENT),
    sort_dir: SortDirection = Query(SortDirection.DESC),
    pdb_id: Optional[str] = Query(None),
    chain_id: Optional[str] = Query(None),
    unp_acc: Optional[str] = Query(None),
    min_length: Optional[int] = Query(None),
    max_length: Optional[int] = Query(None),
    is_classified: Optional[bool] = Query(None),
    batch_id: Optional[int] = Query(None),
    format: Optional[str] = Query(None),
):
    """Paginated protein list with statistics over the filtered set."""
    filters = ProteinFilters(
        page=page,
        size=size,
        sort=sort,
        sort_dir=sort_dir,
        pdb_id=pdb_id,
        chain_id=chain_id,
        unp_acc=unp_acc,
        min_length=min_length,
        max_length=max_length,
        is_classified=is_classified,
        batch_id=batch_id,
    )
    try:
        result = db_reader.list_proteins(filters)
    except Exception as e:
        logger.exception("Protein list query failed")
        raise HTTPException(status_code=500, detail=f"Failed to fetch proteins: {str(e)}")

    if format == "csv":
        return csv_response(result.data, "proteins.csv")
    return result


@router_proteins.post("")
def search_proteins(request: ProteinSearchRequest):
    """Free-text search over the selected protein fields."""
    try:
        return db_reader.search_proteins(request)
    except Exception as e:
        logger.exception("Protein search failed")
        raise HTTPException(status_code=500, detail=f"Failed to search proteins: {str(e)}")


@router_proteins.get("/summary")
def proteins_summary(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
    sort: SummarySort = Query(SummarySort.RECENT),
    sort_dir: SortDirection = Query(SortDirection.DESC),
    pdb_id: Optional[str] = Query(None),
    chain_id: Optional[str] = Query(None),
    batch_id: Optional[int] = Query(None),
    domain_number: Optional[int] = Query(None),
    min_confidence: Optional[float] = Query(None),
    max_confidence: Optional[float] = Query(None),
    sequence_length_min: Optional[int] = Query(None),
    sequence_length_max: Optional[int] = Query(None),
    min_evidence_count: Optional[int] = Query(None),
    evidence_types: Optional[List[str]] = Query(None),
    t_groups: Optional[List[str]] = Query(None),
    h_groups: Optional[List[str]] = Query(None),
    x_groups: Optional[List[str]] = Query(None),
    a_groups: Optional[List[str]] = Query(None),
):
    """One row per representative chain with domain and evidence aggregates."""
    filters = PipelineSummaryFilters(
        page=page,
        size=size,
        sort=sort,
        sort_dir=sort_dir,
        pdb_id=pdb_id,
        chain_id=chain_id,
        batch_id=batch_id,
        domain_number=domain_number,
        min_confidence=min_confidence,
        max_confidence=max_confidence,
        sequence_length_min=sequence_length_min,
        sequence_length_max=sequence_length_max,
        min_evidence_count=min_evidence_count,
        evidence_types=parse_list_param(evidence_types),
        t_groups=parse_list_param(t_groups),
        h_groups=parse_list_param(h_groups),
        x_groups=parse_list_param(x_groups),
        a_groups=parse_list_param(a_groups),
    )
    try:
        return db_reader.proteins_summary(filters)
    except Exception as e:
        logger.exception("Protein summary query failed")
        raise HTTPException(status_code=500, detail=f"Failed to fetch protein summary: {str(e)}")


@router_proteins.get("/by-architecture")
def proteins_by_architecture(
    pdb_id: Optional[str] = Query(None),
    chain_id: Optional[str] = Query(None),
    min_confidence: Optional[float] = Query(None),
    max_confidence: Optional[float] = Query(None),
    t_groups: Optional[List[str]] = Query(None),
    h_groups: Optional[List[str]] = Query(None),
    x_groups: Optional[List[str]] = Query(None),
    evidence_types: Optional[str] = Query(None),
):
    """Proteins grouped by their ordered T-group architecture."""
    filters = ArchitectureFilters(
        pdb_id=pdb_id,
        chain_id=chain_id,
        min_confidence=min_confidence,
        max_confidence=max_confidence,
        t_groups=parse_list_param(t_groups),
        h_groups=parse_list_param(h_groups),
        x_groups=parse_list_param(x_groups),
        evidence_types=evidence_types,
    )
    try:
        return db_reader.proteins_by_architecture(filters)
    except Exception as e:
        logger.exception("Architecture grouping failed")
        raise HTTPException(status_code=500, detail=f"Failed to group proteins by architecture: {str(e)}")


@router_proteins.get("/{protein_id}")
def get_protein(protein_id: str):
    """Single protein by source id (``5c3l_B``) or numeric id."""
    try:
        identifier = parse_protein_identifier(protein_id)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))

    try:
        result = db_reader.get_protein(identifier)
    except Exception as e:
        logger.exception(f"Protein query failed for {protein_id}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch protein: {str(e)}")
    if not result:
        raise HTTPException(404, f"Protein {protein_id} not found")
    return result


@router_proteins.get("/{protein_id}/domains")
def get_protein_domains(protein_id: str):
    pdb_id, chain_id = _source_id(protein_id)
    try:
        result = db_reader.get_protein_domains(pdb_id, chain_id)
    except Exception as e:
        logger.exception(f"Domain query failed for {protein_id}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch domains: {str(e)}")
    if result is None:
        raise HTTPException(404, f"Protein {protein_id} not found")
    return result


@router_proteins.get("/{protein_id}/propagated")
def get_propagated(
    protein_id: str,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
):
    """Propagated chains that share the representative's sequence."""
    pdb_id, chain_id = _source_id(protein_id)
    try:
        return db_reader.get_propagated(pdb_id, chain_id, page, size)
    except NotFoundError as nf:
        raise HTTPException(status_code=404, detail=str(nf))
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        logger.exception(f"Propagation query failed for {protein_id}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch propagated sequences: {str(e)}")


@router_proteins.get("/{protein_id}/filesystem")
def get_filesystem_evidence(protein_id: str):
    pdb_id, chain_id = _source_id(protein_id)
    try:
        return db_reader.get_filesystem_evidence(pdb_id, chain_id)
    except Exception as e:
        logger.exception(f"Filesystem evidence query failed for {protein_id}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch filesystem evidence: {str(e)}")


@router_proteins.get("/{protein_id}/files/{file_id}")
def get_protein_file(protein_id: str, file_id: int):
    """Content of a tracked pipeline file."""
    try:
        record = db_reader.get_process_file(file_id)
    except Exception as e:
        logger.exception(f"File lookup failed for {protein_id} file {file_id}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch file content: {str(e)}")
    if not record:
        raise HTTPException(404, "File not found")

    try:
        content = Path(record["file_path"]).read_text()
    except OSError as e:
        logger.warning(f"Tracked file {record['file_path']} not readable: {e}")
        raise HTTPException(404, "File exists in database but not accessible on filesystem")

    return {
        "content": content,
        "file_type": record["file_type"],
        "file_path": record["file_path"],
    }


def _pipeline_domains(domains) -> List[PipelineDomain]:
    return [
        PipelineDomain(
            id=d["id"],
            domain_number=d.get("domain_number"),
            start=d["start_pos"],
            end=d["end_pos"],
            range=d.get("range"),
            source=d.get("source"),
            confidence=d.get("confidence"),
            t_group=d.get("t_group"),
            h_group=d.get("h_group"),
            x_group=d.get("x_group"),
        )
        for d in domains
        if d.get("start_pos") is not None and d.get("end_pos") is not None
    ]


@router_proteins.get("/{protein_id}/evidence-analysis")
def get_evidence_analysis(
    protein_id: str,
    coverage_threshold: float = Query(DEFAULT_COVERAGE_THRESHOLD, ge=0, le=1),
    min_alignment_length: int = Query(DEFAULT_MIN_ALIGNMENT_LENGTH, ge=1),
):
    """
    Hit-level review of the chain's domain summary against the pipeline's
    domain boundaries.
    """
    pdb_id, chain_id = _source_id(protein_id)

    try:
        fs = db_reader.get_filesystem_evidence(pdb_id, chain_id)
        partition = db_reader.get_protein_domains(pdb_id, chain_id)
    except Exception as e:
        logger.exception(f"Evidence lookup failed for {protein_id}")
        raise HTTPException(status_code=500, detail=f"Evidence analysis failed: {str(e)}")

    summaries = [f for f in fs["files_by_type"].get("domain_summary", []) if f.get("file_exists")]
    if not summaries:
        raise HTTPException(404, f"No domain summary tracked for {protein_id}")

    try:
        xml_text = Path(summaries[0]["file_path"]).read_text()
    except OSError as e:
        logger.warning(f"Domain summary for {protein_id} not readable: {e}")
        raise HTTPException(404, "Domain summary exists in database but not accessible on filesystem")

    domains =_pipeline_domains(partition["domains"]) if partition else []
    sequence_length = (partition or {}).get("protein", {}).get("sequence_length") or 0

    try:
        summary = parse_domain_summary(xml_text, sequence_length, protein_id)
        return analyze_protein_evidence(summary, domains, coverage_threshold, min_alignment_length)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        logger.exception(f"Evidence analysis failed for {protein_id}")
        raise HTTPException(status_code=500, detail=f"Evidence analysis failed: {str(e)}")
