"""
Tabular export of entity collections with pandas.

CSV: header from the first record's field names, every field quoted with
embedded quotes doubled, CRLF line endings, None written as empty. An empty
collection gives an empty body. XLSX goes through openpyxl.
"""

import csv
from datetime import date
from io import BytesIO
from typing import Any, Dict, List, Mapping, Sequence

import pandas as pd

EXPORT_FORMATS = ("csv", "xlsx")

MEDIA_TYPES = {
    "csv": "text/csv; charset=utf-8",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def export_filename(entity: str, fmt: str, today: date = None) -> str:
    return f"{entity}_export_{(today or date.today()).isoformat()}.{fmt}"


def _to_frame(records: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
    columns = list(records[0].keys())
    rows: List[Dict[str, Any]] = [{c: record.get(c) for c in columns} for record in records]
    # object dtype keeps ints as ints and None as None instead of NaN floats
    return pd.DataFrame(rows, columns=columns, dtype=object)


def to_csv(records: Sequence[Mapping[str, Any]]) -> str:
    if not records:
        return ""
    frame = _to_frame(records)
    return frame.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\r\n", na_rep="")


def to_xlsx(records: Sequence[Mapping[str, Any]], sheet_name: str = "Sheet1") -> bytes:
    buffer = BytesIO()
    frame = _to_frame(records) if records else pd.DataFrame()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=sheet_name[:31], index=False)
    return buffer.getvalue()
