"""
CSV export for back-office tables.

``generate_csv`` is pure; ``csv_download`` packages the text for whatever
delivers the file to the operator (the API answers it as an attachment).
"""

from __future__ import annotations

from dataclasses import dataclass, is_dataclass
from datetime import timezone
from enum import Enum
from typing import Any, Iterable, Mapping, NamedTuple, Sequence, Tuple, Union

from .clock import SYSTEM_CLOCK, Clock

CSV_MEDIA_TYPE = "text/csv;charset=utf-8"


class Column(NamedTuple):
    key: str
    header: str


ColumnSpec = Union[Column, Tuple[str, str], Mapping[str, str]]

STATEMENT_COLUMNS: Tuple[Column, ...] = (
    Column("id", "Transaction ID"),
    Column("event_name", "Event"),
    Column("gross_formatted", "Gross Amount"),
    Column("fee_formatted", "Platform Fee"),
    Column("net_formatted", "Net Amount"),
    Column("date", "Date"),
    Column("status", "Status"),
)

TAX_REPORT_COLUMNS: Tuple[Column, ...] = (
    Column("month", "Month"),
    Column("transactions", "Transactions"),
    Column("gross_revenue", "Gross Revenue"),
    Column("platform_fees", "Platform Fees"),
    Column("net_revenue", "Net Revenue"),
)


def escape_csv_field(value: str) -> str:
    if "," in value or '"' in value or "\n" in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def _column(column: ColumnSpec) -> Column:
    if isinstance(column, Mapping):
        return Column(column["key"], column["header"])
    return Column(*column)


def _field(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key)
    if is_dataclass(row):
        return getattr(row, key, None)
    return None


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def generate_csv(rows: Iterable[Any], columns: Sequence[ColumnSpec]) -> str:
    """
    Render ``rows`` as CSV with a header line.

    Rows may be mappings or dataclass instances; missing keys and ``None``
    become empty fields. A column may also be a ``{"key": ..., "header": ...}``
    mapping. Lines are joined with ``\\n``.
    """

    specs = [_column(column) for column in columns]
    header = ",".join(escape_csv_field(column.header) for column in specs)
    body = [
        ",".join(escape_csv_field(_stringify(_field(row, column.key))) for column in specs)
        for row in rows
    ]
    return "\n".join([header, *body])


@dataclass(frozen=True)
class CsvDownload:
    content: str
    filename: str
    media_type: str = CSV_MEDIA_TYPE


def csv_download(csv_text: str, filename: str) -> CsvDownload:
    return CsvDownload(content=csv_text, filename=filename)


def dated_filename(prefix: str, clock: Clock = SYSTEM_CLOCK) -> str:
    """``finance-statement`` -> ``finance-statement-2026-02-07.csv`` (UTC date)."""

    return f"{prefix}-{clock.now().astimezone(timezone.utc).date().isoformat()}.csv"
