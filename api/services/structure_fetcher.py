# api/services/structure_fetcher.py
"""
mmCIF retrieval for the structure viewer and the reference-domain cutter.

Structures come from RCSB first and PDBe second; every successful download is
kept on disk so a structure is fetched from outside at most once.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Any

import requests
from loguru import logger

from api.config import settings
from lib.errors import InvalidIdentifierError, StructureNotFoundError
from lib.ranges import is_structure_id

RCSB_FILE_URL = "https://files.rcsb.org/download/{pdb_id}.cif"
PDBE_FILE_URL = "https://www.ebi.ac.uk/pdbe/static/entry/{pdb_id}_updated.cif"
RCSB_ENTRY_URL = "https://data.rcsb.org/rest/v1/core/entry/{pdb_id}"

SOURCES: List[Tuple[str, str]] = [
    ("RCSB mmCIF", RCSB_FILE_URL),
    ("PDBe mmCIF", PDBE_FILE_URL),
]


def looks_like_mmcif(text: str) -> bool:
    return bool(text) and ("data_" in text or "_entry.id" in text)


class StructureFetcher:
    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        timeout: Optional[int] = None,
        sources: Optional[List[Tuple[str, str]]] = None,
    ):
        self.cache_dir = Path(cache_dir or settings.CACHE_DIR) / "structures"
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.timeout = timeout or settings.STRUCTURE_TIMEOUT
        self.sources = sources or SOURCES
        self.headers = {"User-Agent": settings.USER_AGENT}

    def cache_path(self, pdb_id: str) -> Path:
        return self.cache_dir / f"{pdb_id.lower()}.cif"

    def _read_cache(self, pdb_id: str) -> Optional[str]:
        path = self.cache_path(pdb_id)
        if not path.exists():
            return None
        text = path.read_text()
        if looks_like_mmcif(text):
            return text
        logger.warning(f"Discarding invalid cached structure {path}")
        path.unlink()
        return None

    def fetch_mmcif(self, pdb_id: str) -> str:
        """
        Return the mmCIF text for a structure.

        Raises InvalidIdentifierError for malformed ids and
        StructureNotFoundError when no source returns usable data.
        """
        if not is_structure_id(pdb_id):
            raise InvalidIdentifierError("Invalid PDB ID format. Must be 4 characters.")
        pdb_id = pdb_id.lower()

        cached = self._read_cache(pdb_id)
        if cached is not None:
            logger.debug(f"Structure {pdb_id} served from cache")
            return cached

        errors: List[str] = []
        for name, template in self.sources:
            url = template.format(pdb_id=pdb_id)
            logger.info(f"Trying {name}: {url}")
            try:
                response = requests.get(url, headers=self.headers, timeout=self.timeout)
            except requests.RequestException as e:
                logger.warning(f"{name} failed for {pdb_id}: {e}")
                errors.append(f"{name}: {e}")
                continue

            if response.status_code != 200:
                logger.warning(f"{name} returned {response.status_code} for {pdb_id}")
                errors.append(f"{name}: HTTP {response.status_code}")
                continue

            text = response.text
            if not looks_like_mmcif(text):
                logger.warning(f"Invalid mmCIF data from {name} for {pdb_id}")
                errors.append(f"{name}: invalid mmCIF data")
                continue

            logger.info(f"Fetched {pdb_id} from {name} ({len(text)} bytes)")
            self.cache_path(pdb_id).write_text(text)
            return text

        raise StructureNotFoundError(pdb_id, errors)

    def validate(self, pdb_id: str) -> Dict[str, Any]:
        """Report whether a structure exists and can be downloaded."""
        pdb_id = (pdb_id or "").lower()
        timestamp = datetime.now(timezone.utc).isoformat()

        if not is_structure_id(pdb_id):
            return {
                "pdbId": pdb_id,
                "exists": False,
                "accessible": False,
                "error": "Invalid PDB ID format",
                "timestamp": timestamp,
            }

        if self.cache_path(pdb_id).exists():
            return {
                "pdbId": pdb_id,
                "exists": True,
                "accessible": True,
                "source": "local_cache",
                "timestamp": timestamp,
            }

        try:
            entry = requests.head(
                RCSB_ENTRY_URL.format(pdb_id=pdb_id), headers=self.headers, timeout=self.timeout
            )
            exists = entry.ok
            accessible = False
            if exists:
                try:
                    file_head = requests.head(
                        RCSB_FILE_URL.format(pdb_id=pdb_id), headers=self.headers, timeout=self.timeout
                    )
                    accessible = file_head.ok
                except requests.RequestException as e:
                    logger.warning(f"File check failed for {pdb_id}: {e}")
        except requests.RequestException as e:
            return {
                "pdbId": pdb_id,
                "exists": False,
                "accessible": False,
                "source": "validation_failed",
                "error": f"External validation failed: {e}",
                "timestamp": timestamp,
            }

        return {
            "pdbId": pdb_id,
            "exists": exists,
            "accessible": accessible,
            "source": "rcsb_api",
            "local_available": False,
            "note": (
                "Available at RCSB but not in local repository"
                if accessible
                else "Structure exists but file not accessible"
            ),
            "timestamp": timestamp,
        }


structure_fetcher = StructureFetcher()
