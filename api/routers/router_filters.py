# api/routers/router_filters.py
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from loguru import logger

from ecod_pg.db_lib_reader import db_reader
from ecod_pg.models import FilterOptionsResponse
from lib.types import ClassificationLevel

router_filters = APIRouter()


@router_filters.get("", response_model=FilterOptionsResponse)
def get_filter_options(
    type: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
):
    """Classification groups at one level for the filter dropdowns."""
    try:
        level = ClassificationLevel(type)
    except ValueError:
        raise HTTPException(400, "Invalid type parameter")

    try:
        return db_reader.filter_options(level, search, limit)
    except Exception as e:
        logger.exception("Filter options query failed")
        raise HTTPException(status_code=500, detail=f"Failed to fetch filter options: {str(e)}")
