"""
Record Normalizer Test Suite

Covers mobile digit extraction, date serial conversion in both date
systems, text birth dates kept as-is, score type preservation, the English
fallback columns, row dropping and the record invariants.
"""

from datetime import date, datetime

import pytest

from natija.ingestion.header_resolver import HeaderResolver
from natija.ingestion.record_normalizer import (
    StudentRecord,
    coerce_birth_date,
    coerce_mobile,
    coerce_score,
    normalize_row,
    normalize_rows,
    record_to_raw_row,
    serial_to_date,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def arabic_row(**overrides) -> dict:
    row = {
        "الاسم": "أحمد محمد علي",
        "المرحله": "اولي ابتدائي",
        "تاريخ الميلاد": "01/01/2019",
        "رقم الموبايل": "01000000001",
        "الدرجة 1": 95,
        "الدرجة 2": 92,
    }
    row.update(overrides)
    return row


# ---------------------------------------------------------------------------
# Mobile numbers
# ---------------------------------------------------------------------------

class TestMobileCoercion:
    @pytest.mark.parametrize("raw, expected", [
        ("010-0000-0001", "01000000001"),
        ("010 0000 0001", "01000000001"),
        ("(010) 0000001", "0100000001"),
        ("+20 100.000.0001", "201000000001"),
    ])
    def test_separators_are_stripped(self, raw, expected):
        assert coerce_mobile(raw) == expected

    def test_numeric_cell_loses_leading_zero(self):
        """Leading zeros dropped by numeric storage are not restored."""
        assert coerce_mobile(1000000001) == "1000000001"

    def test_integral_float_has_no_decimal_suffix(self):
        assert coerce_mobile(1000000001.0) == "1000000001"

    def test_arabic_indic_digits_fold_to_ascii(self):
        assert coerce_mobile("٠١٠٠٠٠٠٠٠٠١") == "01000000001"

    def test_blank_is_empty_string(self):
        assert coerce_mobile("") == ""
        assert coerce_mobile(None) == ""


# ---------------------------------------------------------------------------
# Birth dates
# ---------------------------------------------------------------------------

class TestBirthDateCoercion:
    def test_serial_1_january_2019_in_1900_system(self):
        assert coerce_birth_date(43466) == "1/1/2019"

    def test_serial_as_float_with_time_fraction(self):
        assert coerce_birth_date(43466.75) == "1/1/2019"

    def test_serial_in_1904_system(self):
        assert coerce_birth_date(42004, date1904=True) == "1/1/2019"

    def test_no_zero_padding(self):
        # 2018-08-20
        assert coerce_birth_date(43332) == "8/20/2018"

    def test_decoded_date_cell_renders_month_day_year(self):
        assert coerce_birth_date(datetime(2019, 5, 15)) == "5/15/2019"
        assert coerce_birth_date(date(2019, 5, 15)) == "5/15/2019"

    def test_text_is_trimmed_and_kept(self):
        assert coerce_birth_date("  15/05/2019 ") == "15/05/2019"

    def test_text_is_not_validated(self):
        assert coerce_birth_date("31/02/2019") == "31/02/2019"

    def test_out_of_range_serial_falls_back_to_text(self):
        assert coerce_birth_date(-5) == "-5"
        assert coerce_birth_date(99999999) == "99999999"


class TestSerialToDate:
    def test_first_day_of_1900_system(self):
        assert serial_to_date(1) == date(1900, 1, 1)

    def test_before_fictitious_leap_day(self):
        assert serial_to_date(59) == date(1900, 2, 28)

    def test_after_fictitious_leap_day(self):
        assert serial_to_date(61) == date(1900, 3, 1)

    def test_1904_day_zero(self):
        assert serial_to_date(0, date1904=True) == date(1904, 1, 1)

    def test_last_representable_day(self):
        assert serial_to_date(2958465) == date(9999, 12, 31)

    def test_zero_is_not_a_date_in_1900_system(self):
        assert serial_to_date(0) is None

    def test_non_finite_is_not_a_date(self):
        assert serial_to_date(float("nan")) is None
        assert serial_to_date(float("inf")) is None


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------

class TestScoreCoercion:
    def test_number_keeps_type(self):
        assert coerce_score(95) == 95
        assert isinstance(coerce_score(95), int)
        assert coerce_score(88.5) == 88.5

    def test_text_stays_text(self):
        assert coerce_score(" 95 ") == "95"

    def test_blank_is_none(self):
        assert coerce_score("") is None


# ---------------------------------------------------------------------------
# Row normalization
# ---------------------------------------------------------------------------

class TestNormalizeRow:
    def test_full_arabic_row(self):
        record = normalize_row(arabic_row(), 0)
        assert record == StudentRecord(
            id="student-0",
            name="أحمد محمد علي",
            class_name="اولي ابتدائي",
            birth_date="01/01/2019",
            display_birth_date="01/01/2019",
            mobile1="01000000001",
            score1=95,
            score2=92,
        )

    def test_missing_name_drops_row(self):
        assert normalize_row(arabic_row(**{"الاسم": ""}), 0) is None

    def test_whitespace_name_drops_row(self):
        assert normalize_row(arabic_row(**{"الاسم": "   "}), 0) is None

    def test_missing_class_drops_row(self):
        row = arabic_row()
        del row["المرحله"]
        assert normalize_row(row, 0) is None

    def test_numeric_class_becomes_text(self):
        record = normalize_row(arabic_row(**{"المرحله": 3.0}), 0)
        assert record.class_name == "3"

    def test_unrecognized_columns_pass_through(self):
        record = normalize_row(arabic_row(**{"ملاحظات": "ممتاز", "Unnamed: 7": ""}), 0)
        assert dict(record.extra) == {"ملاحظات": "ممتاز"}

    def test_second_mobile_is_optional(self):
        assert normalize_row(arabic_row(), 0).mobile2 is None
        record = normalize_row(arabic_row(**{"رقم الموبايل 2": "011-1111-1111"}), 0)
        assert record.mobile2 == "01111111111"

    def test_later_blank_column_does_not_erase_value(self):
        row = arabic_row(**{"رقم الهاتف": ""})
        assert normalize_row(row, 0).mobile1 == "01000000001"

    def test_later_non_blank_column_wins(self):
        row = arabic_row(**{"رقم الهاتف": "0122 222 2222"})
        assert normalize_row(row, 0).mobile1 == "01222222222"

    def test_serial_birth_date_uses_date_system(self):
        row = arabic_row(**{"تاريخ الميلاد": 42004})
        assert normalize_row(row, 0, date1904=True).birth_date == "1/1/2019"
        assert normalize_row(row, 0).birth_date == "12/31/2014"

    def test_missing_mobile_is_empty(self):
        row = arabic_row()
        del row["رقم الموبايل"]
        assert normalize_row(row, 0).mobile1 == ""


class TestEnglishFallback:
    def test_literal_name_and_class_columns(self):
        record = normalize_row({"name": "Sara", "class": "Grade 1"}, 0)
        assert record.name == "Sara"
        assert record.class_name == "Grade 1"

    def test_capitalized_class_column(self):
        record = normalize_row({"name": "Sara", "Class": "Grade 2"}, 0)
        assert record.class_name == "Grade 2"

    def test_fallback_used_when_alias_table_has_no_name(self):
        resolver = HeaderResolver((("Classes only", {"المرحله": "class_name"}),))
        record = normalize_row({"name": "Sara", "المرحله": "اولي"}, 0, resolver)
        assert record.name == "Sara"

    def test_alias_value_takes_precedence_over_fallback(self):
        record = normalize_row({"الفصل": "ثانية", "class": "Grade 1", "الاسم": "Sara"}, 0)
        assert record.class_name == "ثانية"

    def test_fallback_columns_are_kept_as_extra(self):
        record = normalize_row({"name": "Sara", "class": "Grade 1"}, 0)
        assert dict(record.extra) == {"class": "Grade 1"}


class TestNormalizeRows:
    def test_order_preserved_and_ids_from_position(self):
        rows = [
            arabic_row(**{"الاسم": "أ"}),
            arabic_row(**{"الاسم": ""}),
            arabic_row(**{"الاسم": "ب"}),
        ]
        records = normalize_rows(rows)
        assert [r.name for r in records] == ["أ", "ب"]
        assert [r.id for r in records] == ["student-0", "student-2"]

    def test_output_never_longer_than_input(self):
        rows = [arabic_row(), {"x": 1}, {}]
        assert len(normalize_rows(rows)) == 1

    def test_all_rows_dropped_gives_empty_list(self):
        assert normalize_rows([{"الاسم": "", "المرحله": ""}]) == []

    def test_ids_restart_for_each_load(self):
        first = normalize_rows([arabic_row()])
        second = normalize_rows([arabic_row()])
        assert first[0].id == second[0].id == "student-0"


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------

class TestIdempotence:
    def test_renormalizing_rendered_records_is_identity(self):
        rows = [
            arabic_row(**{"ملاحظات": "ممتاز"}),
            arabic_row(**{"تاريخ الميلاد": 43466, "رقم الموبايل 2": "011 1", "الدرجة 1": "غ"}),
            arabic_row(**{"الدرجة 2": ""}),
        ]
        first = normalize_rows(rows)
        second = normalize_rows([record_to_raw_row(r) for r in first])
        assert [r.id for r in second] == ["student-0", "student-1", "student-2"]
        assert second == first


# ---------------------------------------------------------------------------
# Record invariants
# ---------------------------------------------------------------------------

class TestStudentRecordInvariants:
    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            StudentRecord(id="student-0", name="", class_name="اولي")

    def test_empty_class_rejected(self):
        with pytest.raises(ValueError):
            StudentRecord(id="student-0", name="Sara", class_name=" ")

    def test_non_digit_mobile_rejected(self):
        with pytest.raises(ValueError):
            StudentRecord(id="student-0", name="Sara", class_name="اولي", mobile1="010-1")

    def test_empty_mobile2_rejected(self):
        with pytest.raises(ValueError):
            StudentRecord(id="student-0", name="Sara", class_name="اولي", mobile2="")

    def test_record_is_frozen(self):
        record = StudentRecord(id="student-0", name="Sara", class_name="اولي")
        with pytest.raises(AttributeError):
            record.name = "Other"

    def test_extra_is_read_only(self):
        record = StudentRecord(id="student-0", name="Sara", class_name="اولي", extra={"a": 1})
        with pytest.raises(TypeError):
            record.extra["a"] = 2
