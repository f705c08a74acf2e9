# api/routers/router_metadata.py
from typing import List

from fastapi import APIRouter
from loguru import logger
from pydantic import BaseModel, Field

from api.services.pdb_metadata import fetch_pdb_metadata
from ecod_pg.db_lib_reader import db_reader

router_metadata = APIRouter()


class BatchMetadataRequest(BaseModel):
    pdb_ids: List[str] = Field(min_length=1, max_length=100)


@router_metadata.get("/{pdb_id}")
def get_pdb_metadata(pdb_id: str):
    """Cached entry metadata, fetched from RCSB and cached on a miss."""
    pdb_id = pdb_id.lower()
    try:
        cached = db_reader.get_cached_pdb_metadata(pdb_id)
    except Exception as e:
        logger.warning(f"Metadata cache lookup failed for {pdb_id}: {e}")
        cached = None
    if cached:
        return cached

    metadata = fetch_pdb_metadata(pdb_id)
    if len(metadata) > 1:
        try:
            db_reader.cache_pdb_metadata(metadata)
        except Exception as e:
            logger.warning(f"Could not cache metadata for {pdb_id}: {e}")
    return metadata


@router_metadata.post("")
def get_pdb_metadata_batch(request: BatchMetadataRequest):
    """Cache-only lookup for up to 100 entries."""
    results = []
    for pdb_id in request.pdb_ids:
        try:
            metadata = db_reader.get_cached_pdb_metadata(pdb_id.lower())
            results.append(metadata or {"pdb_id": pdb_id.upper(), "error": "Not found"})
        except Exception as e:
            logger.warning(f"Metadata lookup failed for {pdb_id}: {e}")
            results.append({"pdb_id": pdb_id.upper(), "error": "Failed to fetch"})
    return {"metadata": results}
