import pytest

from lib.errors import InvalidIdentifierError, RangeParseError
from lib.ranges import (
    Segment,
    first_range,
    format_file_size,
    get_confidence_level,
    get_overlap_type,
    is_structure_id,
    overlap_length,
    parse_protein_identifier,
    parse_range,
    parse_source_id,
    span,
    validate_chain_id,
    validate_pdb_id,
)
from lib.types import ConfidenceLevel, OverlapType


def test_pdb_id_requires_leading_digit():
    assert validate_pdb_id("5c3l")
    assert not validate_pdb_id("abcd")
    assert not validate_pdb_id("5c3")
    assert is_structure_id("abcd")


def test_chain_id_single_character():
    assert validate_chain_id("B")
    assert not validate_chain_id("AB")
    assert not validate_chain_id("")


def test_parse_source_id():
    assert parse_source_id("5c3l_B") == ("5c3l", "B")
    with pytest.raises(InvalidIdentifierError):
        parse_source_id("5c3lB")
    with pytest.raises(InvalidIdentifierError):
        parse_source_id("5c3l_")


def test_protein_identifier_accepts_numeric_id():
    assert parse_protein_identifier("1234") == 1234
    assert parse_protein_identifier("5c3l_B") == ("5c3l", "B")
    with pytest.raises(InvalidIdentifierError):
        parse_protein_identifier("5c3l")


def test_parse_range_with_chain_prefix_and_segments():
    segments = parse_range("A:11-76,A:80-100")
    assert segments == [Segment(11, 76, "A"), Segment(80, 100, "A")]
    assert span(segments) == (11, 100)
    assert parse_range("25-150") == [Segment(25, 150)]


def test_parse_range_rejects_garbage():
    for text in ("", "abc", "150-25", "10-"):
        with pytest.raises(RangeParseError):
            parse_range(text)


def test_first_range_tolerates_noise():
    assert first_range("A:5-20,30-40") == (5, 20)
    assert first_range(None) is None
    assert first_range("none") is None


def test_overlap_classification():
    assert overlap_length(1, 10, 11, 20) == 0
    assert get_overlap_type(1, 100, 1, 100) == OverlapType.EXACT
    assert get_overlap_type(1, 100, 5, 100) == OverlapType.PARTIAL
    assert get_overlap_type(1, 100, 60, 200) == OverlapType.CONFLICT
    assert get_overlap_type(1, 10, 50, 60) == OverlapType.NONE


def test_confidence_levels():
    assert get_confidence_level(None) == ConfidenceLevel.NONE
    assert get_confidence_level(0.95) == ConfidenceLevel.HIGH
    assert get_confidence_level(0.5) == ConfidenceLevel.MEDIUM
    assert get_confidence_level(0.1) == ConfidenceLevel.LOW


def test_file_size_formatting():
    assert format_file_size(0) == "0 Bytes"
    assert format_file_size(512) == "512 Bytes"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(-1) == "0 Bytes"
