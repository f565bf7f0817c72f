"""Turn pasted text or CSV exports into :class:`RawRecord` values.

Bank exports vary in delimiter and header naming, so the import step:

1. sniffs the delimiter from the first line (``;``, tab, ``|``, else ``,``),
2. reads rows with the ``csv`` module, dropping blank and single-cell rows,
3. detects a header row when any cell mentions a known transaction field,
4. maps header cells to fields greedily using edit-distance similarity.

Failure mode
------------
Input without data rows, or whose columns cannot supply an amount and a
descriptor, raises ``csv.Error`` with an actionable message.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Mapping, Sequence

from .logging_setup import get_logger
from .models import RawRecord
from .similarity import best_match

TRANSACTION_FIELDS: tuple[str, ...] = (
    "date",
    "merchant",
    "amount",
    "status",
    "budget",
    "category",
    "sub_category",
    "planned",
    "recurring",
    "description",
    "budget_year",
)

_DELIMITER_PREFERENCE: tuple[str, ...] = (";", "\t", "|")

_logger = get_logger("budget_ingest.ingest")


def sniff_delimiter(first_line: str) -> str:
    for delim in _DELIMITER_PREFERENCE:
        if delim in first_line:
            return delim
    return ","


def read_rows(text: str) -> list[list[str]]:
    """Parse ``text`` into trimmed rows using the sniffed delimiter.

    Rows with fewer than two cells, or with only empty cells, are dropped.
    """

    if not text:
        return []
    first_line = next(iter(text.splitlines()), "")
    reader = csv.reader(io.StringIO(text), delimiter=sniff_delimiter(first_line))
    rows: list[list[str]] = []
    for row in reader:
        cells = [c.strip() for c in row]
        if len(cells) > 1 and any(cells):
            rows.append(cells)
    return rows


def detect_header(row: Sequence[str], fields: Iterable[str] = TRANSACTION_FIELDS) -> bool:
    names = [f.lower() for f in fields]
    return any(name in cell.lower() for cell in row for name in names)


def map_headers(
    headers: Sequence[str],
    fields: Sequence[str] = TRANSACTION_FIELDS,
    *,
    threshold: float = 0.6,
) -> dict[int, str]:
    """Return ``{column_index: field}``; each field is used at most once.

    Columns are visited left to right and take the best still-unused field.
    """

    mapping: dict[int, str] = {}
    used: set[str] = set()
    for idx, header in enumerate(headers):
        match = best_match(header, [f for f in fields if f not in used], threshold=threshold)
        if match is not None:
            mapping[idx] = match
            used.add(match)
    return mapping


def rows_to_records(rows: Iterable[Sequence[str]], mapping: Mapping[int, str]) -> list[RawRecord]:
    """Build records from data rows; the descriptor is ``merchant`` or else ``description``."""

    records: list[RawRecord] = []
    for row in rows:
        values: dict[str, str] = {}
        for idx, field in mapping.items():
            if idx < len(row):
                values[field] = row[idx]
        records.append(
            RawRecord(
                raw_amount=values.get("amount", ""),
                raw_date=values.get("date", ""),
                raw_descriptor=values.get("merchant") or values.get("description", ""),
            )
        )
    return records


def load_records(text: str, mapping: Mapping[int, str] | None = None) -> list[RawRecord]:
    """Read ``text`` end to end and return its records.

    Without an explicit ``mapping`` the first row must be a header.
    """

    rows = read_rows(text)
    if not rows:
        raise csv.Error("No valid data found: input has no rows with at least two cells.")

    has_header = detect_header(rows[0])
    if mapping is None:
        if not has_header:
            raise csv.Error(
                "Could not detect a header row; pass an explicit column mapping "
                f"using field names from {list(TRANSACTION_FIELDS)}."
            )
        mapping = map_headers(rows[0])

    mapped = set(mapping.values())
    missing: list[str] = []
    if "amount" not in mapped:
        missing.append("amount")
    if not mapped & {"merchant", "description"}:
        missing.append("merchant")
    if missing:
        raise csv.Error(f"Missing column mapping for: {', '.join(missing)}")

    data_rows = rows[1:] if has_header else rows
    _logger.info(
        "ingest:loaded rows=%d header=%s mapping=%s", len(data_rows), has_header, dict(mapping)
    )
    return rows_to_records(data_rows, mapping)


__all__ = [
    "TRANSACTION_FIELDS",
    "detect_header",
    "load_records",
    "map_headers",
    "read_rows",
    "rows_to_records",
    "sniff_delimiter",
]
