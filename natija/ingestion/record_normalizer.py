"""
Natija Record Normalizer

Turns raw sheet rows (keyed by original headers) into StudentRecords.

CONTRACT ANCHORS
----------------
- Rows are processed independently; output keeps source order.
- Mobile numbers: digits only. Leading zeros lost by numeric cells are
  NOT restored.
- Birth dates: date serials and decoded date cells render month/day/year
  without padding; text is trimmed and stored as-is.
- Scores keep their scalar type.
- Rows without name or class are dropped, never reported one by one.
"""

from __future__ import annotations

import logging
import math
import numbers
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

from natija.ingestion.header_resolver import (
    BIRTH_DATE,
    CLASS_NAME,
    DEFAULT_RESOLVER,
    MOBILE1,
    MOBILE2,
    MOBILE_FIELDS,
    NAME,
    SCORE1,
    SCORE2,
    SCORE_FIELDS,
    HeaderResolver,
)
from natija.normalization import digits_only

logger = logging.getLogger(__name__)

Scalar = Union[str, int, float, date]
RawRow = Mapping[str, Scalar]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RECORD_ID_PREFIX: str = "student-"

# Day zero of each spreadsheet date system. The 1900 system counts a
# fictitious 1900-02-29 (serial 60), so serials below it use the next origin.
EPOCH_1900: date = date(1899, 12, 30)
EPOCH_1900_BEFORE_LEAP_BUG: date = date(1899, 12, 31)
EPOCH_1904: date = date(1904, 1, 1)

# Last day representable by spreadsheet applications: 9999-12-31.
MAX_DATE_SERIAL: int = 2958465

ENGLISH_NAME_FALLBACK: tuple[str, ...] = ("name",)
ENGLISH_CLASS_FALLBACK: tuple[str, ...] = ("class", "Class")

_RE_DIGITS = re.compile(r"[0-9]*")


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StudentRecord:
    id: str
    name: str
    class_name: str
    birth_date: str = ""
    display_birth_date: str = ""
    mobile1: str = ""
    mobile2: Optional[str] = None
    score1: Optional[Union[str, int, float]] = None
    score2: Optional[Union[str, int, float]] = None
    extra: Mapping[str, Scalar] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError(f"{self.id}: name must not be empty")
        if not self.class_name.strip():
            raise ValueError(f"{self.id}: class_name must not be empty")
        if not _RE_DIGITS.fullmatch(self.mobile1):
            raise ValueError(f"{self.id}: mobile1 must contain digits only")
        if self.mobile2 is not None and not (
            self.mobile2 and _RE_DIGITS.fullmatch(self.mobile2)
        ):
            raise ValueError(f"{self.id}: mobile2 must be None or digits only")
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))


# ---------------------------------------------------------------------------
# Cell coercion
# ---------------------------------------------------------------------------


def is_number(value: object) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float):
        return value != value  # NaN
    return False


def _cell_to_text(value: object) -> str:
    """Render a cell as text. Integral floats lose their trailing '.0'."""
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def format_month_day_year(value: date) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def serial_to_date(serial: float, date1904: bool = False) -> Optional[date]:
    """
    Convert a spreadsheet date serial to a calendar date.

    The fractional (time of day) part is ignored. Returns None for serials
    outside the representable calendar.
    """
    if not math.isfinite(serial):
        return None
    whole = int(serial // 1)
    if date1904:
        origin = EPOCH_1904
        upper = MAX_DATE_SERIAL - 1462
        lower = 0
    else:
        origin = EPOCH_1900 if whole >= 60 else EPOCH_1900_BEFORE_LEAP_BUG
        upper = MAX_DATE_SERIAL
        lower = 1
    if whole < lower or whole > upper:
        return None
    return origin + timedelta(days=whole)


def coerce_mobile(value: object) -> str:
    return digits_only(_cell_to_text(value))


def coerce_birth_date(value: object, date1904: bool = False) -> str:
    """
    Birth date in its stored comparison form.

    Numbers are date serials; decoded date cells are rendered the same way.
    Text is trimmed and otherwise left alone.
    """
    if isinstance(value, (datetime, date)):
        return format_month_day_year(value)
    if is_number(value) and not _is_blank(value):
        converted = serial_to_date(float(value), date1904)
        if converted is not None:
            return format_month_day_year(converted)
    return _cell_to_text(value)


def coerce_score(value: object) -> Optional[Union[str, int, float]]:
    if _is_blank(value):
        return None
    if is_number(value):
        return value  # type: ignore[return-value]
    return str(value).strip()


# ---------------------------------------------------------------------------
# Row normalization
# ---------------------------------------------------------------------------


def _fallback(row: RawRow, headers: tuple[str, ...]) -> str:
    for header in headers:
        text = _cell_to_text(row.get(header))
        if text:
            return text
    return ""


def normalize_row(
    row: RawRow,
    index: int,
    resolver: HeaderResolver = DEFAULT_RESOLVER,
    date1904: bool = False,
) -> Optional[StudentRecord]:
    """
    Normalize one raw row. Returns None when name or class is missing.

    When several columns resolve to the same field, a later non-blank value
    replaces an earlier one; blank cells never erase a value.
    """
    values: dict[str, object] = {}
    extra: dict[str, Scalar] = {}

    for header, value in row.items():
        field_name = resolver.resolve(header)
        if field_name is None:
            if not _is_blank(value):
                extra[str(header)] = value
            continue

        if field_name in MOBILE_FIELDS:
            coerced: object = coerce_mobile(value)
        elif field_name == BIRTH_DATE:
            coerced = coerce_birth_date(value, date1904)
        elif field_name in SCORE_FIELDS:
            coerced = coerce_score(value)
        else:
            coerced = _cell_to_text(value)

        if field_name not in values or not _is_blank(coerced):
            values[field_name] = coerced

    name = values.get(NAME) or _fallback(row, ENGLISH_NAME_FALLBACK)
    class_name = values.get(CLASS_NAME) or _fallback(row, ENGLISH_CLASS_FALLBACK)

    if not name or not class_name:
        return None

    birth_date = values.get(BIRTH_DATE, "")
    return StudentRecord(
        id=f"{RECORD_ID_PREFIX}{index}",
        name=name,
        class_name=class_name,
        birth_date=birth_date,
        display_birth_date=birth_date,
        mobile1=values.get(MOBILE1, ""),
        mobile2=values.get(MOBILE2) or None,
        score1=values.get(SCORE1),
        score2=values.get(SCORE2),
        extra=extra,
    )


def normalize_rows(
    rows: Iterable[RawRow],
    resolver: HeaderResolver = DEFAULT_RESOLVER,
    date1904: bool = False,
) -> list[StudentRecord]:
    """
    Normalize a whole sheet in source order.

    Row ids come from the source row position, so they are unique within
    one load and independent of any identifier in the data.
    """
    records: list[StudentRecord] = []
    total = 0
    for index, row in enumerate(rows):
        total += 1
        record = normalize_row(row, index, resolver, date1904)
        if record is not None:
            records.append(record)
    logger.debug(
        "[record_normalizer] %d rows in, %d records out, %d dropped",
        total, len(records), total - len(records),
    )
    return records


def record_to_raw_row(record: StudentRecord) -> dict[str, Scalar]:
    """Render a record back to a raw row keyed by canonical headers."""
    row: dict[str, Scalar] = {
        NAME: record.name,
        CLASS_NAME: record.class_name,
        BIRTH_DATE: record.birth_date,
        MOBILE1: record.mobile1,
        MOBILE2: record.mobile2 or "",
        SCORE1: "" if record.score1 is None else record.score1,
        SCORE2: "" if record.score2 is None else record.score2,
    }
    row.update(record.extra)
    return row
