"""
Natija Ingestion Pipeline

CONTRACT ANCHORS
----------------
- One file per load: xlsx, legacy xls, or CSV, detected from content.
- First sheet only. Later sheets are ignored and flagged, never merged.
- Undecodable bytes = DecodeError. Zero surviving rows = EmptyResultWarning.
  The two are never confused.
- A load either publishes a complete record set or nothing.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import ClassVar, Optional

import pandas as pd

from natija.ingestion.header_resolver import (
    BIRTH_DATE,
    DEFAULT_RESOLVER,
    MOBILE_FIELDS,
    HeaderResolver,
)
from natija.ingestion.record_normalizer import (
    RawRow,
    StudentRecord,
    is_number,
    normalize_rows,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

XLSX_SIGNATURE: bytes = b"PK\x03\x04"
XLS_SIGNATURE: bytes = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

# Tried in order for CSV text. Windows-1256 covers Arabic Excel exports.
# The delimiter (comma, semicolon, tab, pipe) is sniffed from the header line.
CSV_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "cp1256")

FORMAT_XLSX = "xlsx"
FORMAT_XLS = "xls"
FORMAT_CSV = "csv"

DATE_SYSTEM_1900 = "1900"
DATE_SYSTEM_1904 = "1904"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


@dataclass
class IngestionError(Exception):
    """Structured load failure. The previous dataset stays active."""
    reason: str
    affected_file: str
    fix_steps: list[str] = field(default_factory=list)

    user_message: ClassVar[str] = ""

    def __str__(self) -> str:
        lines = [
            "═" * 60,
            "NATIJA LOAD HALT",
            "═" * 60,
            f"Reason          : {self.reason}",
            f"Affected File   : {self.affected_file}",
        ]
        if self.fix_steps:
            lines.append("Fix Steps:")
            for i, step in enumerate(self.fix_steps, 1):
                lines.append(f"  {i}. {step}")
        lines.append("═" * 60)
        return "\n".join(lines)


@dataclass
class DecodeError(IngestionError):
    """The bytes are not a readable spreadsheet or CSV."""

    user_message: ClassVar[str] = (
        "حدث خطأ أثناء قراءة الملف. "
        "يرجى التأكد من أن الملف بصيغة Excel أو CSV صالحة."
    )


@dataclass
class EmptyResultWarning(IngestionError):
    """The file decoded, but no row carried both a name and a class."""
    rows_read: int = 0
    unmatched_columns: list[str] = field(default_factory=list)

    user_message: ClassVar[str] = (
        "لم يتم العثور على بيانات صالحة في الملف. "
        'تأكد من وجود أعمدة "الاسم" و "المرحله".'
    )


# ---------------------------------------------------------------------------
# Report / result
# ---------------------------------------------------------------------------


@dataclass
class SheetData:
    """First sheet of a decoded file, rows keyed by original headers."""
    headers: list[str]
    rows: list[dict[str, object]]
    file_format: str
    sheet_name: str
    sheet_count: int
    date1904: bool = False


@dataclass
class LoadReport:
    """Produced for every successful load. All flags surfaced."""
    timestamp: str
    source_file: str
    file_format: str
    sheet_name: str
    sheet_count: int
    date_system: str
    row_count: int
    record_count: int
    alias_map: dict[str, str]
    unmatched_columns: list[str]
    flags: list[str]

    @property
    def dropped_count(self) -> int:
        return self.row_count - self.record_count

    def as_text(self) -> str:
        lines = [
            "═" * 60,
            "NATIJA LOAD REPORT",
            "═" * 60,
            f"Generated       : {self.timestamp}",
            "",
            "FILE",
            f"  Source        : {self.source_file}",
            f"  Format        : {self.file_format}",
            f"  Sheet         : {self.sheet_name} (1 of {self.sheet_count})",
            f"  Date system   : {self.date_system}",
            "",
            "ROWS",
            f"  Read          : {self.row_count}",
            f"  Kept          : {self.record_count}",
            f"  Dropped       : {self.dropped_count}",
            "",
            "COLUMN ALIAS MAP",
        ]
        if not self.alias_map:
            lines.append("  None")
        for raw, canonical in self.alias_map.items():
            lines.append(f"  '{raw}' → '{canonical}'")
        lines += ["", "UNMATCHED COLUMNS (kept as extra data)"]
        if not self.unmatched_columns:
            lines.append("  None")
        for col in self.unmatched_columns:
            lines.append(f"  {col}")
        if self.flags:
            lines += ["", "FLAGS (all surfaced)"]
            for flag in self.flags:
                lines.append(f"  ⚑ {flag}")
        lines.append("═" * 60)
        return "\n".join(lines)


@dataclass(frozen=True)
class IngestionResult:
    records: tuple[StudentRecord, ...]
    report: LoadReport


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _rows_from_frame(df: pd.DataFrame) -> tuple[list[str], list[dict[str, object]]]:
    """Blank cells become "" so every row carries every header."""
    df = df.astype(object).where(pd.notna(df), "")
    headers = [str(col) for col in df.columns]
    df.columns = headers
    return headers, df.to_dict(orient="records")


def _book_uses_1904(book: object, file_format: str) -> bool:
    if file_format == FORMAT_XLSX:
        from openpyxl.utils.datetime import CALENDAR_MAC_1904

        return getattr(book, "epoch", None) == CALENDAR_MAC_1904
    return getattr(book, "datemode", 0) == 1


def _read_workbook(file_bytes: bytes, file_format: str, file_label: str) -> SheetData:
    engine = "openpyxl" if file_format == FORMAT_XLSX else "xlrd"
    try:
        with pd.ExcelFile(io.BytesIO(file_bytes), engine=engine) as workbook:
            sheet_names = list(workbook.sheet_names)
            if not sheet_names:
                raise ValueError("workbook has no sheets")
            date1904 = _book_uses_1904(workbook.book, file_format)
            df = workbook.parse(sheet_name=sheet_names[0], dtype=object)
    except Exception as e:
        raise DecodeError(
            reason=f"{file_format} workbook is not readable",
            affected_file=file_label,
            fix_steps=[
                "Open the file in Excel and save it again as .xlsx.",
                f"Parse error: {e}",
            ],
        ) from e

    headers, rows = _rows_from_frame(df)
    return SheetData(
        headers=headers,
        rows=rows,
        file_format=file_format,
        sheet_name=str(sheet_names[0]),
        sheet_count=len(sheet_names),
        date1904=date1904,
    )


def _read_csv(file_bytes: bytes, file_label: str) -> SheetData:
    if b"\x00" in file_bytes:
        raise DecodeError(
            reason="File is binary and not a recognized spreadsheet",
            affected_file=file_label,
            fix_steps=["Upload an .xlsx, .xls or .csv file."],
        )

    last_error: Optional[Exception] = None
    for encoding in CSV_ENCODINGS:
        try:
            # index_col=False: a trailing delimiter must not shift values left.
            df = pd.read_csv(
                io.BytesIO(file_bytes),
                sep=None,
                engine="python",
                index_col=False,
                dtype=str,
                keep_default_na=False,
                encoding=encoding,
            )
        except UnicodeDecodeError as e:
            last_error = e
            continue
        except Exception as e:
            last_error = e
            break
        headers, rows = _rows_from_frame(df)
        return SheetData(
            headers=headers,
            rows=rows,
            file_format=FORMAT_CSV,
            sheet_name=FORMAT_CSV,
            sheet_count=1,
        )

    raise DecodeError(
        reason="CSV file is not parseable",
        affected_file=file_label,
        fix_steps=[
            "Verify the file is a valid CSV saved as UTF-8.",
            f"Parse error: {last_error}",
        ],
    ) from last_error


def read_first_sheet(file_bytes: bytes, file_label: str = "uploaded_file") -> SheetData:
    """
    Decode the first sheet of a workbook or a CSV file.

    Raises
    ------
    DecodeError
        When the bytes are empty or not a readable spreadsheet / CSV.
    """
    if not file_bytes or not file_bytes.strip():
        raise DecodeError(
            reason="File is empty",
            affected_file=file_label,
            fix_steps=["Upload a file that contains a header row and data rows."],
        )
    if file_bytes.startswith(XLSX_SIGNATURE):
        return _read_workbook(file_bytes, FORMAT_XLSX, file_label)
    if file_bytes.startswith(XLS_SIGNATURE):
        return _read_workbook(file_bytes, FORMAT_XLS, file_label)
    return _read_csv(file_bytes, file_label)


# ---------------------------------------------------------------------------
# Flags
# ---------------------------------------------------------------------------


def _collect_flags(
    sheet: SheetData,
    alias_map: dict[str, str],
) -> list[str]:
    flags: list[str] = []
    if sheet.sheet_count > 1:
        flags.append(
            f"Workbook has {sheet.sheet_count} sheets; only '{sheet.sheet_name}' was read"
        )

    mobile_headers = [h for h, f in alias_map.items() if f in MOBILE_FIELDS]
    numeric_mobiles = sum(
        1 for row in sheet.rows for h in mobile_headers if is_number(row.get(h))
    )
    if numeric_mobiles:
        flags.append(
            f"{numeric_mobiles} mobile cells are stored as numbers; "
            "leading zeros lost by the spreadsheet are not restored"
        )

    birth_headers = [h for h, f in alias_map.items() if f == BIRTH_DATE]
    serial_births = sum(
        1 for row in sheet.rows for h in birth_headers
        if is_number(row.get(h)) or isinstance(row.get(h), date)
    )
    if serial_births:
        flags.append(
            f"{serial_births} birth dates are spreadsheet dates rendered month/day/year; "
            "verification reads stored dates as day/month/year"
        )
    return flags


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def parse(
    file_bytes: bytes,
    resolver: HeaderResolver = DEFAULT_RESOLVER,
) -> list[StudentRecord]:
    """
    Decode a spreadsheet and normalize its first sheet.

    Returns the surviving records, possibly none.

    Raises
    ------
    DecodeError
        When the bytes are not a readable spreadsheet / CSV.
    """
    sheet = read_first_sheet(file_bytes)
    return normalize_rows(sheet.rows, resolver, sheet.date1904)


def load_dataset(
    file_bytes: bytes,
    file_label: str = "uploaded_file",
    resolver: Optional[HeaderResolver] = None,
) -> IngestionResult:
    """
    Load one file into an immutable record set with its load report.

    Parameters
    ----------
    file_bytes : bytes
        Full file content, already read into memory.
    file_label : str
        Human-readable file name, used in the report and log messages.
    resolver : HeaderResolver, optional
        Custom alias table. Defaults to the static one.

    Raises
    ------
    DecodeError
        When the bytes are not a readable spreadsheet / CSV.
    EmptyResultWarning
        When decoding succeeded but no row has both a name and a class.
    """
    resolver = resolver or DEFAULT_RESOLVER
    timestamp = datetime.now().isoformat(timespec="seconds")

    try:
        sheet = read_first_sheet(file_bytes, file_label)
    except DecodeError as e:
        logger.warning("[ingestion] %s: decode failed: %s", file_label, e.reason)
        raise

    alias_map = resolver.resolve_columns(sheet.headers, file_label)
    unmatched = resolver.get_unmatched_columns(sheet.headers, alias_map)
    rows: list[RawRow] = sheet.rows  # type: ignore[assignment]
    records = normalize_rows(rows, resolver, sheet.date1904)

    if not records:
        logger.warning(
            "[ingestion] %s: %d rows read, none with name and class",
            file_label, len(sheet.rows),
        )
        raise EmptyResultWarning(
            reason="No rows with both a name and a class column value",
            affected_file=file_label,
            fix_steps=[
                "Check that the sheet has a name column (الاسم) and a class column (المرحله).",
                "Check that the header row is the first row of the first sheet.",
            ],
            rows_read=len(sheet.rows),
            unmatched_columns=unmatched,
        )

    report = LoadReport(
        timestamp=timestamp,
        source_file=file_label,
        file_format=sheet.file_format,
        sheet_name=sheet.sheet_name,
        sheet_count=sheet.sheet_count,
        date_system=DATE_SYSTEM_1904 if sheet.date1904 else DATE_SYSTEM_1900,
        row_count=len(sheet.rows),
        record_count=len(records),
        alias_map=alias_map,
        unmatched_columns=unmatched,
        flags=_collect_flags(sheet, alias_map),
    )
    logger.info(
        "[ingestion] %s: %d rows read, %d records kept, %d dropped",
        file_label, report.row_count, report.record_count, report.dropped_count,
    )
    return IngestionResult(records=tuple(records), report=report)
