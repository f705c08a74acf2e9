# api/routers/router_batches.py
from fastapi import APIRouter, HTTPException
from loguru import logger

from ecod_pg.db_lib_audit import db_auditor

router_batches = APIRouter()


@router_batches.get("")
def list_batches():
    try:
        return {"batches": db_auditor.list_batches()}
    except Exception as e:
        logger.exception("Batch list query failed")
        raise HTTPException(status_code=500, detail=f"Failed to fetch batches: {str(e)}")


@router_batches.get("/health-check")
def batch_health_check():
    """Reported batch progress against what actually reached the partition tables."""
    try:
        return {"batches": db_auditor.batch_health_check()}
    except Exception as e:
        logger.exception("Batch health check failed")
        raise HTTPException(status_code=500, detail=f"Failed to perform health check: {str(e)}")
