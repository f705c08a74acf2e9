# api/services/domain_extractor.py
"""
Cut a single domain out of a full mmCIF structure.

Reference domains in the curation view are shown on their own, so the chain is
reduced to the residues of the domain's segments and written back out as PDB
or mmCIF.
"""

import io
import json
import warnings
from typing import List, Optional

from Bio import BiopythonWarning
from Bio.PDB import MMCIFIO, PDBIO, Select
from Bio.PDB.MMCIFParser import MMCIFParser
from pydantic import BaseModel

from lib.formats import StructureFormat, normalize_format
from lib.ranges import Segment, span, format_range

warnings.simplefilter("ignore", BiopythonWarning)


class DomainInfo(BaseModel):
    pdb_id: str
    chain_id: str
    start_residue: int
    end_residue: int
    total_residues: int
    segments: List[str]

    @classmethod
    def from_segments(cls, pdb_id: str, chain_id: str, segments: List[Segment]) -> "DomainInfo":
        start, end = span(segments)
        return cls(
            pdb_id=pdb_id,
            chain_id=chain_id,
            start_residue=start,
            end_residue=end,
            total_residues=sum(s.length for s in segments),
            segments=[format_range(s.start, s.end) for s in segments],
        )

    def header(self) -> str:
        return json.dumps(self.model_dump())


class DomainSelect(Select):
    """Keep one author chain of the first model, restricted to the domain segments."""

    def __init__(self, chain_id: str, segments: List[Segment]):
        self.chain_id = chain_id
        self.segments = segments

    def accept_model(self, model):
        return model.id == 0

    def accept_chain(self, chain):
        return chain.id == self.chain_id

    def accept_residue(self, residue):
        hetflag, resseq, _icode = residue.id
        if hetflag == "W":
            return False
        return any(s.contains(resseq) for s in self.segments)


def _count_atoms(structure, selector: DomainSelect) -> int:
    count = 0
    for model in structure:
        if not selector.accept_model(model):
            continue
        for chain in model:
            if not selector.accept_chain(chain):
                continue
            for residue in chain:
                if selector.accept_residue(residue):
                    count += len(residue)
    return count


def extract_domain(
    mmcif_text: str,
    chain_id: str,
    segments: List[Segment],
    fmt=StructureFormat.PDB,
) -> Optional[str]:
    """
    Return the domain as PDB or mmCIF text, or None when the selection has no atoms.
    """
    fmt = normalize_format(fmt.value if isinstance(fmt, StructureFormat) else fmt, StructureFormat.PDB)
    start, end = span(segments)
    block_id = f"{chain_id}_{start}_{end}"

    parser = MMCIFParser(QUIET=True)
    structure = parser.get_structure(block_id, io.StringIO(mmcif_text))
    selector = DomainSelect(chain_id, segments)
    if _count_atoms(structure, selector) == 0:
        return None

    out = io.StringIO()
    if fmt == StructureFormat.MMCIF:
        writer = MMCIFIO()
        writer.set_structure(structure)
        # block is named data_{structure.id}
        writer.save(out, selector)
        return out.getvalue()

    writer = PDBIO()
    writer.set_structure(structure)
    writer.save(out, selector)
    return out.getvalue()
