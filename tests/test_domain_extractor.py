import json

from api.services.domain_extractor import DomainInfo, extract_domain
from lib.formats import StructureFormat
from lib.ranges import parse_range


def _atom_lines(text):
    return [line for line in text.splitlines() if line.startswith(("ATOM", "HETATM"))]


def test_extract_pdb_keeps_only_segment_residues(mmcif_text):
    pdb = extract_domain(mmcif_text, "A", parse_range("A:10-11,A:13-14"), StructureFormat.PDB)

    atoms = _atom_lines(pdb)
    assert len(atoms) == 8
    assert {int(line[22:26]) for line in atoms} == {10, 11, 13, 14}
    assert "HOH" not in pdb
    assert pdb.rstrip().endswith("END")


def test_extract_ignores_other_chains(mmcif_text):
    pdb = extract_domain(mmcif_text, "B", parse_range("1-100"))
    atoms = _atom_lines(pdb)
    assert len(atoms) == 2
    assert all(line[21] == "B" for line in atoms)


def test_extract_mmcif_names_block_after_domain(mmcif_text):
    cif = extract_domain(mmcif_text, "A", parse_range("10-12"), "mmcif")

    assert cif.startswith("data_A_10_12")
    assert "_atom_site" in cif
    assert "HOH" not in cif


def test_empty_selection_returns_none(mmcif_text):
    assert extract_domain(mmcif_text, "Z", parse_range("10-14")) is None
    assert extract_domain(mmcif_text, "A", parse_range("200-300")) is None


def test_domain_info_header():
    info = DomainInfo.from_segments("5c3l", "A", parse_range("A:10-11,A:13-14"))

    assert info.start_residue == 10
    assert info.end_residue == 14
    assert info.total_residues == 4
    assert json.loads(info.header())["segments"] == ["10-11", "13-14"]
