# lib/export.py
import csv
import io
import json
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional


def _cell(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return value


def rows_to_csv(rows: Iterable[Dict[str, Any]], columns: Optional[List[str]] = None) -> str:
    """Header comes from the first row unless columns are given."""
    rows = list(rows)
    if not rows:
        return ""
    columns = columns or list(rows[0].keys())

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow([_cell(row.get(col)) for col in columns])
    return buf.getvalue()
