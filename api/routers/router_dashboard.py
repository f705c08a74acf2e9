# api/routers/router_dashboard.py
from fastapi import APIRouter
from loguru import logger

from ecod_pg.db_lib_reader import db_reader

router_dashboard = APIRouter()


@router_dashboard.get("/stats")
def dashboard_stats():
    """
    Representative-level pipeline statistics. A failed query still answers
    200 with zeroed counts so the dashboard renders.
    """
    try:
        return db_reader.dashboard_stats()
    except Exception as e:
        logger.exception("Dashboard statistics query failed")
        return {
            **db_reader.DASHBOARD_ZERO,
            "error": "Failed to fetch representative pipeline statistics",
            "details": str(e),
        }
