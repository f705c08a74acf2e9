# api/services/pdb_metadata.py
from typing import Any, Dict, Optional

import requests
from loguru import logger

from api.config import settings

RCSB_ENTRY_URL = "https://data.rcsb.org/rest/v1/core/entry/{pdb_id}"
RCSB_PUBMED_URL = "https://data.rcsb.org/rest/v1/core/pubmed/{pdb_id}"


def _first(items: Optional[list]) -> Dict[str, Any]:
    return items[0] if items else {}


def _get_json(url: str) -> Any:
    resp = requests.get(
        url,
        headers={"Accept": "application/json", "User-Agent": settings.USER_AGENT},
        timeout=settings.METADATA_TIMEOUT,
    )
    resp.raise_for_status()
    return resp.json()


def parse_entry(pdb_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Map an RCSB core entry document onto the dashboard's metadata shape."""
    accession = data.get("rcsb_accession_info") or {}
    keywords = (data.get("struct_keywords") or {}).get("pdbx_keywords")
    resolution = (data.get("rcsb_entry_info") or {}).get("resolution_combined")
    return {
        "pdb_id": pdb_id.upper(),
        "title": (data.get("struct") or {}).get("title"),
        "deposition_date": accession.get("deposit_date"),
        "release_date": accession.get("initial_release_date"),
        "revision_date": accession.get("revision_date"),
        "method": _first(data.get("exptl")).get("method"),
        "resolution": resolution[0] if resolution else None,
        "r_factor": _first(data.get("refine")).get("ls_r_factor_r_work"),
        "structure_keywords": keywords.split(", ") if keywords else None,
        "organism": _first(data.get("rcsb_entity_source_organism")).get("ncbi_scientific_name"),
    }


def parse_citation(data: Any) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    record = data[0] if isinstance(data, list) else data
    ids = record.get("rcsb_pubmed_container_identifiers") or {}
    citation = record.get("rcsb_pubmed_citation") or {}
    pmid = ids.get("pubmed_id")
    return {
        "pmid": str(pmid) if pmid is not None else None,
        "doi": ids.get("doi"),
        "title": citation.get("title"),
        "journal": citation.get("journal_abbrev"),
        "year": citation.get("year"),
    }


def fetch_citation(pdb_id: str) -> Optional[Dict[str, Any]]:
    try:
        return parse_citation(_get_json(RCSB_PUBMED_URL.format(pdb_id=pdb_id)))
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"No citation for {pdb_id}: {e}")
        return None


def fetch_pdb_metadata(pdb_id: str) -> Dict[str, Any]:
    """
    Fetch entry metadata from RCSB. On any failure only ``{pdb_id}`` is
    returned so the caller still has something to show.
    """
    pdb_id = pdb_id.lower()
    try:
        metadata = parse_entry(pdb_id, _get_json(RCSB_ENTRY_URL.format(pdb_id=pdb_id)))
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"RCSB metadata fetch failed for {pdb_id}: {e}")
        return {"pdb_id": pdb_id.upper()}

    citation = fetch_citation(pdb_id)
    if citation:
        metadata["primary_citation"] = citation
    return metadata
