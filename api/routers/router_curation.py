# api/routers/router_curation.py
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response
from loguru import logger
from pydantic import BaseModel

from api.services.domain_extractor import DomainInfo, extract_domain
from api.services.structure_fetcher import structure_fetcher
from ecod_pg.db_lib_curation import curation_store
from ecod_pg.db_lib_reader import db_reader
from ecod_pg.models import (
    AutoSaveRequest,
    CompleteSessionRequest,
    CurationDecisionRequest,
    StartSessionRequest,
)
from lib.errors import NotFoundError, SessionStateError
from lib.formats import StructureFormat, media_type
from lib.ranges import parse_range, span

router_curation = APIRouter()


class ReferenceStructureRequest(BaseModel):
    evidence_id: Optional[int] = None
    pdb_id: Optional[str] = None
    chain_id: Optional[str] = None
    domain_range: Optional[str] = None
    format: Literal["pdb", "mmcif"] = "pdb"


# =============================================================================
# Sessions
# =============================================================================


@router_curation.post("/session/start")
def start_session(request: StartSessionRequest):
    """Lock a batch of candidate proteins for one curator."""
    try:
        return curation_store.start_session(request.curator_name, request.batch_size)
    except NotFoundError as nf:
        raise HTTPException(status_code=404, detail=str(nf))
    except Exception as e:
        logger.exception("Failed to start curation session")
        raise HTTPException(status_code=500, detail=f"Failed to create curation session: {str(e)}")


@router_curation.post("/decision")
def save_decision(request: CurationDecisionRequest):
    try:
        return curation_store.save_decision(request)
    except NotFoundError as nf:
        raise HTTPException(status_code=404, detail=str(nf))
    except Exception as e:
        logger.exception("Failed to save curation decision")
        raise HTTPException(status_code=500, detail=f"Failed to save decision: {str(e)}")


@router_curation.put("/session/{session_id}/auto-save")
def auto_save(session_id: int, request: AutoSaveRequest):
    try:
        return curation_store.auto_save(session_id, request)
    except NotFoundError as nf:
        raise HTTPException(status_code=404, detail=str(nf))
    except Exception as e:
        logger.exception(f"Auto-save failed for session {session_id}")
        raise HTTPException(status_code=500, detail=f"Failed to auto-save session: {str(e)}")


@router_curation.get("/session/{session_id}/resume")
def resume_session(session_id: int):
    try:
        return curation_store.resume_session(session_id)
    except NotFoundError as nf:
        raise HTTPException(status_code=404, detail=str(nf))
    except SessionStateError as se:
        raise HTTPException(status_code=400, detail=str(se))
    except Exception as e:
        logger.exception(f"Resume failed for session {session_id}")
        raise HTTPException(status_code=500, detail=f"Failed to resume session: {str(e)}")


def _complete(session_id: int, request: CompleteSessionRequest):
    try:
        return curation_store.complete_session(session_id, request.action, request.final_notes)
    except NotFoundError as nf:
        raise HTTPException(status_code=404, detail=str(nf))
    except Exception as e:
        logger.exception(f"Completing session {session_id} failed")
        raise HTTPException(status_code=500, detail=f"Failed to complete session: {str(e)}")


@router_curation.post("/session/{session_id}/complete")
def complete_session(session_id: int, request: CompleteSessionRequest):
    """Commit, discard or set aside a session; locks are released either way."""
    return _complete(session_id, request)


@router_curation.post("/session/{session_id}")
def close_session(session_id: int, request: CompleteSessionRequest):
    return _complete(session_id, request)


# =============================================================================
# Reporting & maintenance
# =============================================================================


@router_curation.get("/sessions")
def list_sessions(
    curator: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=500),
):
    try:
        return curation_store.list_sessions(curator, status, limit)
    except Exception as e:
        logger.exception("Session list query failed")
        raise HTTPException(status_code=500, detail=f"Failed to fetch sessions: {str(e)}")


@router_curation.get("/stats")
def curation_stats():
    try:
        return curation_store.curation_stats()
    except Exception as e:
        logger.exception("Curation stats query failed")
        raise HTTPException(status_code=500, detail=f"Failed to fetch curation statistics: {str(e)}")


@router_curation.post("/cleanup")
def cleanup():
    try:
        return curation_store.cleanup()
    except Exception as e:
        logger.exception("Curation cleanup failed")
        raise HTTPException(status_code=500, detail=f"Failed to clean up sessions: {str(e)}")


@router_curation.get("/diagnostic")
def diagnostic():
    try:
        return curation_store.diagnostic()
    except Exception as e:
        logger.exception("Curation diagnostic failed")
        raise HTTPException(status_code=500, detail=f"Diagnostic failed: {str(e)}")


# =============================================================================
# Reference structures
# =============================================================================


@router_curation.post("/reference-structure")
def reference_structure(request: ReferenceStructureRequest):
    """
    Cut a reference domain out of its parent structure, either from an
    evidence row's hit or from an explicit pdb/chain/range.
    """
    if request.evidence_id is not None:
        try:
            evidence = db_reader.get_evidence_reference(request.evidence_id)
        except Exception as e:
            logger.exception(f"Evidence lookup failed for {request.evidence_id}")
            raise HTTPException(status_code=500, detail=f"Failed to fetch evidence: {str(e)}")
        if not evidence:
            raise HTTPException(404, "Evidence not found")
        pdb_id, chain_id, domain_range = evidence["pdb_id"], evidence["chain_id"], evidence["hit_range"]
    elif request.pdb_id and request.chain_id and request.domain_range:
        pdb_id, chain_id, domain_range = request.pdb_id, request.chain_id, request.domain_range
    else:
        raise HTTPException(400, "Must provide either evidence_id or (pdb_id, chain_id, domain_range)")

    try:
        segments = parse_range(domain_range or "")
    except ValueError:
        raise HTTPException(400, f"Invalid range format: {domain_range}")

    try:
        mmcif_text = structure_fetcher.fetch_mmcif(pdb_id)
    except NotFoundError as nf:
        logger.warning(str(nf))
        raise HTTPException(404, f"Failed to fetch structure {pdb_id}")
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))

    fmt = StructureFormat(request.format)
    try:
        domain_text = extract_domain(mmcif_text, chain_id, segments, fmt)
    except Exception as e:
        logger.exception(f"Domain extraction failed for {pdb_id}_{chain_id}")
        raise HTTPException(status_code=500, detail=f"Failed to extract reference structure: {str(e)}")

    if not domain_text:
        raise HTTPException(400, f"Failed to extract domain {domain_range} from chain {chain_id}")

    start, end = span(segments)
    info = DomainInfo.from_segments(pdb_id, chain_id, segments)
    return Response(
        content=domain_text,
        media_type=media_type(fmt),
        headers={
            "Content-Disposition": f'inline; filename="{pdb_id}_{chain_id}_{start}-{end}.{fmt.value}"',
            "X-Domain-Info": info.header(),
        },
    )
