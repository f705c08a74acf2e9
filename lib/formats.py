# lib/formats.py
"""
Structure format detection and naming for the viewer endpoints.
"""

from enum import Enum
from typing import Optional


class StructureFormat(str, Enum):
    PDB = "pdb"
    MMCIF = "mmcif"
    SDF = "sdf"
    MOL = "mol"
    MOL2 = "mol2"
    MMTF = "mmtf"


FILE_EXTENSIONS = {
    StructureFormat.PDB: "pdb",
    StructureFormat.MMCIF: "cif",
    StructureFormat.SDF: "sdf",
    StructureFormat.MOL: "mol",
    StructureFormat.MOL2: "mol2",
    StructureFormat.MMTF: "mmtf",
}

MEDIA_TYPES = {
    StructureFormat.PDB: "chemical/x-pdb",
    StructureFormat.MMCIF: "chemical/x-mmcif",
    StructureFormat.SDF: "chemical/x-mdl-sdfile",
    StructureFormat.MOL: "chemical/x-mdl-molfile",
    StructureFormat.MOL2: "chemical/x-mol2",
    StructureFormat.MMTF: "application/octet-stream",
}

PDB_RECORDS = ("HEADER", "ATOM  ", "HETATM")


def detect_format_from_content(text: str) -> Optional[StructureFormat]:
    """
    Guess the format from the first kilobytes of a file.

    mmCIF is checked first because its atom_site rows also start with ``ATOM``.
    """
    if not text:
        return None
    head = text[:4096]
    lines = [line for line in head.splitlines() if line.strip()]

    if any(line.startswith("data_") or line.startswith("loop_") for line in lines):
        return StructureFormat.MMCIF
    if any(line.startswith(PDB_RECORDS) for line in lines):
        return StructureFormat.PDB
    if "$$$$" in head or "M  END" in head:
        return StructureFormat.SDF
    return None


def detect_format_from_content_type(content_type: Optional[str]) -> Optional[StructureFormat]:
    if not content_type:
        return None
    ct = content_type.lower()
    if "pdb" in ct:
        return StructureFormat.PDB
    if "cif" in ct:
        return StructureFormat.MMCIF
    if "sdf" in ct or "mol" in ct:
        return StructureFormat.SDF
    return None


def normalize_format(
    name: Optional[str], default: StructureFormat = StructureFormat.MMCIF
) -> StructureFormat:
    if not name:
        return default
    name = name.lower().strip().lstrip(".")
    if name in ("cif", "bcif") or "mmcif" in name:
        return StructureFormat.MMCIF
    if name == "ent" or "pdb" in name:
        return StructureFormat.PDB
    try:
        return StructureFormat(name)
    except ValueError:
        return default


def file_extension(fmt) -> str:
    return FILE_EXTENSIONS[normalize_format(fmt.value if isinstance(fmt, StructureFormat) else fmt)]


def media_type(fmt) -> str:
    return MEDIA_TYPES[normalize_format(fmt.value if isinstance(fmt, StructureFormat) else fmt)]
