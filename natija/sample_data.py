"""Built-in demo sheet: one or two students per primary-school class."""

from __future__ import annotations

import io

import pandas as pd

SAMPLE_FILE_NAME: str = "result.xlsx"

SAMPLE_HEADERS: tuple[str, ...] = (
    "الاسم",
    "المرحله",
    "تاريخ الميلاد",
    "رقم الموبايل",
    "الدرجة 1",
    "الدرجة 2",
)

# Birth dates are text in day/month/year form; phones are text so the
# leading zero survives the round trip through Excel.
_SAMPLE_VALUES: tuple[tuple[object, ...], ...] = (
    ("أحمد محمد علي", "اولي ابتدائي", "01/01/2019", "01000000001", 95, 92),
    ("جنى محمود حسن", "اولي ابتدائي", "15/05/2019", "01100000001", 98, 96),
    ("عمر خالد ابراهيم", "تانيه ابتدائي", "01/01/2018", "01200000002", 88, 85),
    ("مريم سامي يوسف", "تانيه ابتدائي", "20/08/2018", "01500000002", 91, 89),
    ("يوسف مصطفى كمال", "تالته ابتدائي", "01/01/2017", "01000000003", 94, 90),
    ("سلمى عادل امام", "رابعه ابتدائي", "01/01/2016", "01100000004", 85, 80),
    ("كريم عبد العزيز", "خامسه ابتدائي", "01/01/2015", "01200000005", 97, 95),
    ("هدى سلطان", "ساته ابتدائي", "01/01/2014", "01500000006", 99, 98),
)

SAMPLE_ROWS: tuple[dict[str, object], ...] = tuple(
    dict(zip(SAMPLE_HEADERS, values)) for values in _SAMPLE_VALUES
)


def sample_workbook_bytes() -> bytes:
    """Render the demo rows as an .xlsx file."""
    buffer = io.BytesIO()
    df = pd.DataFrame(list(SAMPLE_ROWS), columns=list(SAMPLE_HEADERS))
    df.to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()
