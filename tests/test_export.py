from datetime import datetime

from lib.export import rows_to_csv


def test_empty_rows():
    assert rows_to_csv([]) == ""


def test_header_from_first_row_and_quoting():
    rows = [
        {"pdb_id": "5c3l", "name": 'Tubulin, "alpha"', "length": 450},
        {"pdb_id": "1abc", "name": None, "length": 120},
    ]
    lines = rows_to_csv(rows).splitlines()

    assert lines[0] == "pdb_id,name,length"
    assert lines[1] == '5c3l,"Tubulin, ""alpha""",450'
    assert lines[2] == "1abc,,120"


def test_dates_and_lists():
    out = rows_to_csv([{"when": datetime(2024, 1, 2, 3, 4, 5), "types": ["hhsearch"]}])
    assert '2024-01-02T03:04:05,"[""hhsearch""]"' in out
