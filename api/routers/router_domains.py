# api/routers/router_domains.py
from typing import Optional, List

from fastapi import APIRouter, HTTPException, Query
from loguru import logger

from api.config import settings
from api.routers.router_proteins import csv_response, parse_list_param
from ecod_pg.db_lib_reader import db_reader
from ecod_pg.models import DomainFilters, DomainListResponse

router_domains = APIRouter()


def _domain_id(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise HTTPException(400, "Invalid domain ID")


@router_domains.get("", response_model=DomainListResponse)
def list_domains(
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    pdb_id: Optional[str] = Query(None),
    chain_id: Optional[str] = Query(None),
    t_groups: Optional[List[str]] = Query(None),
    h_groups: Optional[List[str]] = Query(None),
    x_groups: Optional[List[str]] = Query(None),
    min_confidence: Optional[float] = Query(None),
    max_confidence: Optional[float] = Query(None),
    format: Optional[str] = Query(None),
):
    filters = DomainFilters(
        page=page,
        size=size,
        pdb_id=pdb_id,
        chain_id=chain_id,
        t_groups=parse_list_param(t_groups),
        h_groups=parse_list_param(h_groups),
        x_groups=parse_list_param(x_groups),
        min_confidence=min_confidence,
        max_confidence=max_confidence,
    )
    try:
        result = db_reader.list_domains(filters)
    except Exception as e:
        logger.exception("Domain list query failed")
        raise HTTPException(status_code=500, detail=f"Failed to fetch domains: {str(e)}")

    if format == "csv":
        return csv_response(result.data, "domains.csv")
    return result


@router_domains.get("/{domain_id}")
def get_domain_evidence(domain_id: str):
    """Evidence rows backing one partition domain."""
    identifier = _domain_id(domain_id)
    try:
        return db_reader.get_domain_evidence(identifier)
    except Exception as e:
        logger.exception(f"Evidence query failed for domain {domain_id}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch domain evidence: {str(e)}")


@router_domains.get("/{domain_id}/comparisons")
def get_domain_comparisons(domain_id: str):
    identifier = _domain_id(domain_id)
    try:
        return db_reader.get_domain_comparisons(identifier)
    except Exception as e:
        logger.exception(f"Comparison query failed for domain {domain_id}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch domain comparisons: {str(e)}")
