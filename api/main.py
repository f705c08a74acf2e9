# api/main.py
import sys
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

# --- Path Setup ---
current_dir = Path(__file__).parent
parent_dir = current_dir.parent
sys.path.insert(0, str(parent_dir))

# --- Imports ---
from api.config import settings
from api.routers import (
    router_audit,
    router_batches,
    router_curation,
    router_dashboard,
    router_domains,
    router_filters,
    router_metadata,
    router_pdb,
    router_proteins,
)
from ecod_pg.db_lib_reader import db_reader

logger.remove()
logger.add(sys.stderr, level=settings.LOG_LEVEL)

# --- App Configuration ---
app = FastAPI(
    title="ECOD Curation Dashboard API",
    version="1.0.0",
    description="Browse, audit and curate ECOD domain partitions produced by the mini_pyecod pipeline.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router_proteins, prefix="/api/proteins", tags=["proteins"])
app.include_router(router_domains, prefix="/api/domains", tags=["domains"])
app.include_router(router_filters, prefix="/api/filter-options", tags=["filters"])
app.include_router(router_batches, prefix="/api/batches", tags=["batches"])
app.include_router(router_audit, prefix="/api/audit", tags=["audit"])
app.include_router(router_curation, prefix="/api/curation", tags=["curation"])
app.include_router(router_dashboard, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(router_pdb, prefix="/api/pdb", tags=["structures"])
app.include_router(router_metadata, prefix="/api/pdb-metadata", tags=["metadata"])


@app.get("/")
def root():
    return {
        "message": "ECOD Curation Dashboard API",
        "endpoints": {
            "proteins": "/api/proteins",
            "protein_summary": "/api/proteins/summary",
            "architectures": "/api/proteins/by-architecture",
            "domains": "/api/domains",
            "filter_options": "/api/filter-options?type=t_group",
            "batches": "/api/batches",
            "batch_health": "/api/batches/health-check",
            "audit": "/api/audit/discrepancies",
            "curation": "/api/curation/sessions",
            "dashboard": "/api/dashboard/stats",
            "structure": "/api/pdb/{pdb_id}",
            "pdb_metadata": "/api/pdb-metadata/{pdb_id}",
            "health": "/health",
        },
    }


@app.get("/health")
def health():
    try:
        db_reader.adapter.ping()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail=f"Database unavailable: {str(e)}")
    return {"status": "healthy", "database": "connected"}


if __name__ == "__main__":
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
