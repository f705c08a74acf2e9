from lib.formats import (
    StructureFormat,
    detect_format_from_content,
    detect_format_from_content_type,
    file_extension,
    media_type,
    normalize_format,
)


def test_mmcif_detected_before_pdb(mmcif_text):
    assert detect_format_from_content(mmcif_text) == StructureFormat.MMCIF


def test_pdb_records_detected():
    text = "HEADER    TEST\nATOM      1  N   MET A  10      10.000  10.000  10.000  1.00 20.00           N\nEND\n"
    assert detect_format_from_content(text) == StructureFormat.PDB


def test_unknown_content():
    assert detect_format_from_content("") is None
    assert detect_format_from_content("hello world") is None


def test_content_type_hints():
    assert detect_format_from_content_type("chemical/x-pdb") == StructureFormat.PDB
    assert detect_format_from_content_type("chemical/x-mmcif") == StructureFormat.MMCIF
    assert detect_format_from_content_type(None) is None


def test_normalize_aliases():
    assert normalize_format("cif") == StructureFormat.MMCIF
    assert normalize_format(".ent") == StructureFormat.PDB
    assert normalize_format("sdf") == StructureFormat.SDF
    assert normalize_format("nonsense") == StructureFormat.MMCIF
    assert normalize_format(None, StructureFormat.PDB) == StructureFormat.PDB


def test_extension_and_media_type():
    assert file_extension(StructureFormat.MMCIF) == "cif"
    assert media_type("pdb") == "chemical/x-pdb"
    assert media_type(StructureFormat.MMCIF) == "chemical/x-mmcif"
