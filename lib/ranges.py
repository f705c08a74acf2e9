# lib/ranges.py
"""
Identifier validation and residue range helpers.

Ranges follow the pipeline's text convention: ``25-150``, ``A:25-150`` or a
comma separated list of segments such as ``A:11-76,A:80-100``.
"""

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from lib.errors import InvalidIdentifierError, RangeParseError
from lib.types import ConfidenceLevel, OverlapType, HIGH_CONFIDENCE, MEDIUM_CONFIDENCE

PDB_ID_RE = re.compile(r"^[0-9][A-Za-z0-9]{3}$")
STRUCTURE_ID_RE = re.compile(r"^[A-Za-z0-9]{4}$")
CHAIN_ID_RE = re.compile(r"^[A-Za-z0-9]$")
SEGMENT_RE = re.compile(r"^(?:(?P<chain>[A-Za-z0-9]+):)?(?P<start>-?\d+)-(?P<end>-?\d+)$")
FIRST_SPAN_RE = re.compile(r"(\d+)-(\d+)")


@dataclass
class Segment:
    start: int
    end: int
    chain: Optional[str] = None

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def contains(self, resnum: int) -> bool:
        return self.start <= resnum <= self.end


# ------------------------------------------------------------
# Identifiers
# ------------------------------------------------------------


def validate_pdb_id(pdb_id: str) -> bool:
    return bool(pdb_id) and bool(PDB_ID_RE.match(pdb_id))


def is_structure_id(pdb_id: str) -> bool:
    """Looser check used by the structure routes: any four alphanumerics."""
    return bool(pdb_id) and bool(STRUCTURE_ID_RE.match(pdb_id))


def validate_chain_id(chain_id: str) -> bool:
    return bool(chain_id) and bool(CHAIN_ID_RE.match(chain_id))


def parse_source_id(source_id: str) -> Tuple[str, str]:
    """Split ``5c3l_B`` into ``("5c3l", "B")``."""
    parts = (source_id or "").split("_")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidIdentifierError(
            f"Invalid protein ID format: {source_id}. Expected PDB_CHAIN"
        )
    return parts[0], parts[1]


def parse_protein_identifier(identifier: str) -> Union[Tuple[str, str], int]:
    """
    Proteins are addressed either by source id (``pdb_chain``) or by the
    numeric primary key.
    """
    if "_" in identifier:
        return parse_source_id(identifier)
    if identifier.isdigit():
        return int(identifier)
    raise InvalidIdentifierError(
        f"Invalid protein ID format: {identifier}. Expected PDB_CHAIN or numeric ID"
    )


# ------------------------------------------------------------
# Ranges
# ------------------------------------------------------------


def parse_range(range_text: str) -> List[Segment]:
    if not range_text or not range_text.strip():
        raise RangeParseError("Empty range")

    segments = []
    for piece in range_text.split(","):
        piece = piece.strip()
        match = SEGMENT_RE.match(piece)
        if not match:
            raise RangeParseError(f"Invalid range format: {range_text}")
        start, end = int(match.group("start")), int(match.group("end"))
        if end < start:
            raise RangeParseError(f"Invalid range format: {range_text}")
        segments.append(Segment(start=start, end=end, chain=match.group("chain")))
    return segments


def first_range(range_text: Optional[str]) -> Optional[Tuple[int, int]]:
    if not range_text:
        return None
    match = FIRST_SPAN_RE.search(range_text)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def span(segments: List[Segment]) -> Tuple[int, int]:
    return min(s.start for s in segments), max(s.end for s in segments)


def format_range(start: int, end: int) -> str:
    return f"{start}-{end}"


def domain_length(start: int, end: int) -> int:
    return end - start + 1


def overlap_length(start_a: int, end_a: int, start_b: int, end_b: int) -> int:
    return max(0, min(end_a, end_b) - max(start_a, start_b) + 1)


def get_overlap_type(
    putative_start: int, putative_end: int, reference_start: int, reference_end: int
) -> OverlapType:
    overlap = overlap_length(putative_start, putative_end, reference_start, reference_end)
    if overlap == 0:
        return OverlapType.NONE

    putative_len = domain_length(putative_start, putative_end)
    reference_len = domain_length(reference_start, reference_end)
    if overlap == putative_len and overlap == reference_len:
        return OverlapType.EXACT
    if overlap / min(putative_len, reference_len) > 0.8:
        return OverlapType.PARTIAL
    return OverlapType.CONFLICT


# ------------------------------------------------------------
# Display helpers
# ------------------------------------------------------------


def get_confidence_level(confidence: Optional[float]) -> ConfidenceLevel:
    if not confidence:
        return ConfidenceLevel.NONE
    if confidence >= HIGH_CONFIDENCE:
        return ConfidenceLevel.HIGH
    if confidence >= MEDIUM_CONFIDENCE:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def format_confidence(confidence: Optional[float]) -> str:
    if confidence is None:
        return "N/A"
    return f"{confidence:.3f}"


def format_file_size(size: int) -> str:
    if not size or size < 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    value = round(size / math.pow(1024, i), 2)
    return f"{value:g} {units[i]}"
