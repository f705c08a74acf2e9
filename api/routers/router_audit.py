# api/routers/router_audit.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query
from loguru import logger
from pydantic import BaseModel

from ecod_pg.db_lib_audit import db_auditor
from lib.ranges import parse_source_id

router_audit = APIRouter()


class HitLevelValidationRequest(BaseModel):
    protein_id: str
    validation_criteria: Optional[Dict[str, Any]] = None


@router_audit.get("/discrepancies")
def get_discrepancies():
    try:
        return {"discrepancies": db_auditor.discrepancies()}
    except Exception as e:
        logger.exception("Discrepancy audit failed")
        raise HTTPException(status_code=500, detail=f"Failed to detect discrepancies: {str(e)}")


@router_audit.get("/missing-partitions")
def get_missing_partitions(batch_id: Optional[int] = Query(None)):
    try:
        return {"missing_partitions": db_auditor.missing_partitions(batch_id)}
    except Exception as e:
        logger.exception("Missing partition audit failed")
        raise HTTPException(status_code=500, detail=f"Failed to audit missing partitions: {str(e)}")


@router_audit.get("/chain-blast-diagnostic")
def get_chain_blast_diagnostic():
    try:
        return {"chain_blast_diagnostic": db_auditor.chain_blast_diagnostic()}
    except Exception as e:
        logger.exception("Chain BLAST diagnostic failed")
        raise HTTPException(status_code=500, detail=f"Failed to run chain BLAST diagnostic: {str(e)}")


@router_audit.post("/hit-level-validation")
def prepare_hit_level_validation(request: HitLevelValidationRequest):
    """Evidence files available on disk for a hit-level review of one chain."""
    try:
        pdb_id, chain_id = parse_source_id(request.protein_id)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))

    try:
        files = db_auditor.hit_level_files(pdb_id, chain_id)
    except Exception as e:
        logger.exception(f"Hit-level validation setup failed for {request.protein_id}")
        raise HTTPException(status_code=500, detail=f"Failed to prepare validation: {str(e)}")

    return {"filesystem_evidence": files, "validation_ready": True}
