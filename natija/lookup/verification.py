"""
Natija Verification Matcher

Knowledge-based identity check for one selected student.

RULES:
- Phone: cleaned candidate digits must appear inside mobile1 or mobile2.
  Substring matching tolerates partial numbers and stored numbers with
  extra leading/trailing digits. An empty candidate never matches.
- Date: stored birth date is read as day/month/year, the candidate as
  year-month-day (date picker form). All three parts must be equal as
  integers. Anything unparseable is a mismatch, never an exception.
- Both checks must pass. A rejection never says which check failed, and
  nothing identifying is logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from natija.ingestion.record_normalizer import StudentRecord
from natija.normalization import digits_only, to_ascii_digits

logger = logging.getLogger(__name__)

REJECTION_MESSAGE: str = (
    "البيانات المدخلة غير صحيحة. "
    "يرجى التأكد من تاريخ الميلاد ورقم الهاتف المسجل."
)


@dataclass(frozen=True)
class VerificationResult:
    accepted: bool
    message: Optional[str] = None

    @classmethod
    def accept(cls) -> "VerificationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls) -> "VerificationResult":
        return cls(accepted=False, message=REJECTION_MESSAGE)


def _three_ints(text: str, separator: str) -> Optional[tuple[int, int, int]]:
    parts = to_ascii_digits(text).strip().split(separator)
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        return None
    try:
        first, second, third = (int(part) for part in parts)
    except ValueError:
        return None
    return first, second, third


def phone_matches(record: StudentRecord, candidate_phone: str) -> bool:
    cleaned = digits_only(candidate_phone or "")
    if not cleaned:
        return False
    for stored in (record.mobile1, record.mobile2):
        if stored and cleaned in stored:
            return True
    return False


def birth_date_matches(record: StudentRecord, candidate_birth_date: str) -> bool:
    stored = _three_ints(record.birth_date or "", "/")
    candidate = _three_ints(candidate_birth_date or "", "-")
    if stored is None or candidate is None:
        return False
    s_day, s_month, s_year = stored
    c_year, c_month, c_day = candidate
    return (s_day, s_month, s_year) == (c_day, c_month, c_year)


def verify(
    record: StudentRecord,
    candidate_birth_date: str,
    candidate_phone: str,
) -> VerificationResult:
    """
    Decide whether the caller knows this student's birth date and phone.

    Parameters
    ----------
    record : StudentRecord
        The student selected from the list.
    candidate_birth_date : str
        "YYYY-MM-DD" as produced by a date picker.
    candidate_phone : str
        Free-form phone text; separators are ignored.
    """
    phone_ok = phone_matches(record, candidate_phone)
    date_ok = birth_date_matches(record, candidate_birth_date)
    if phone_ok and date_ok:
        return VerificationResult.accept()
    logger.info("[verification] identity check rejected")
    return VerificationResult.reject()
