"""
Lookup flow for one browser session.

States: SELECTING_CLASS → SELECTING_STUDENT → VERIFYING → RESOLVED.
The loaded dataset is an immutable IngestionResult; a new load replaces it
in one assignment, and a failed load leaves it untouched.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from natija.ingestion.ingestion import (
    DecodeError,
    EmptyResultWarning,
    IngestionResult,
    load_dataset,
)
from natija.ingestion.header_resolver import HeaderResolver
from natija.ingestion.record_normalizer import StudentRecord
from natija.lookup.verification import VerificationResult, verify
from natija.normalization import arabic_sort_key

logger = logging.getLogger(__name__)

SELECT_STUDENT_MESSAGE: str = "يرجى اختيار الطالب أولاً"


class LookupState(str, Enum):
    SELECTING_CLASS = "selecting_class"
    SELECTING_STUDENT = "selecting_student"
    VERIFYING = "verifying"
    RESOLVED = "resolved"


class LookupStateError(RuntimeError):
    """Transition not allowed from the current state."""


# ---------------------------------------------------------------------------
# Dataset helpers
# ---------------------------------------------------------------------------


def unique_classes(records: Iterable[StudentRecord]) -> list[str]:
    """Distinct class names, in Arabic collation order."""
    return sorted({r.class_name for r in records}, key=arabic_sort_key)


def students_in_class(
    records: Iterable[StudentRecord],
    class_name: str,
) -> list[StudentRecord]:
    """Students of one class, sorted by name."""
    members = [r for r in records if r.class_name == class_name]
    return sorted(members, key=lambda r: arabic_sort_key(r.name))


def find_student(
    records: Iterable[StudentRecord],
    student_id: str,
) -> Optional[StudentRecord]:
    for record in records:
        if record.id == student_id:
            return record
    return None


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@dataclass
class LookupSession:
    dataset: Optional[IngestionResult] = None
    resolver: Optional[HeaderResolver] = None

    state: LookupState = LookupState.SELECTING_CLASS
    selected_class: Optional[str] = None
    selected_student_id: Optional[str] = None
    birth_date_input: str = ""
    phone_input: str = ""
    error: Optional[str] = None
    resolved_record: Optional[StudentRecord] = None
    load_error: Optional[str] = None
    # Bumped on logout so the presentation layer can render blank widgets.
    form_generation: int = 0

    _load_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False,
    )

    # -- dataset ---------------------------------------------------------

    @property
    def records(self) -> tuple[StudentRecord, ...]:
        return self.dataset.records if self.dataset else ()

    @property
    def classes(self) -> list[str]:
        return unique_classes(self.records)

    @property
    def students(self) -> list[StudentRecord]:
        if not self.selected_class:
            return []
        return students_in_class(self.records, self.selected_class)

    def load_file(self, file_bytes: bytes, file_label: str) -> Optional[IngestionResult]:
        """
        Load a file and swap it in. Loads are serialized; a failed load
        keeps the previous dataset and records the user-facing message.
        """
        with self._load_lock:
            try:
                result = load_dataset(file_bytes, file_label, self.resolver)
            except (DecodeError, EmptyResultWarning) as e:
                self.load_error = e.user_message
                return None
            self.dataset = result
            self.load_error = None
            self._reset_flow()
            return result

    # -- transitions -----------------------------------------------------

    def _require_not_resolved(self, action: str) -> None:
        if self.state is LookupState.RESOLVED:
            raise LookupStateError(
                f"'{action}' is not allowed after a result is shown; "
                "use search_another() or logout() first"
            )

    def _reset_flow(self) -> None:
        self.state = LookupState.SELECTING_CLASS
        self.selected_class = None
        self.selected_student_id = None
        self.birth_date_input = ""
        self.phone_input = ""
        self.error = None
        self.resolved_record = None

    def select_class(self, class_name: Optional[str]) -> None:
        self._require_not_resolved("select_class")
        self.selected_class = class_name or None
        self.selected_student_id = None
        self.birth_date_input = ""
        self.phone_input = ""
        self.error = None
        self.state = (
            LookupState.SELECTING_STUDENT if self.selected_class
            else LookupState.SELECTING_CLASS
        )

    def select_student(self, student_id: Optional[str]) -> None:
        self._require_not_resolved("select_student")
        self.error = None
        record = find_student(self.students, student_id) if student_id else None
        if record is None:
            self.selected_student_id = None
            if self.selected_class:
                self.state = LookupState.SELECTING_STUDENT
            if student_id:
                self.error = SELECT_STUDENT_MESSAGE
            return
        self.selected_student_id = record.id
        self.state = LookupState.VERIFYING

    def submit_verification(self, birth_date: str, phone: str) -> VerificationResult:
        self._require_not_resolved("submit_verification")
        self.birth_date_input = birth_date
        self.phone_input = phone

        record = (
            find_student(self.records, self.selected_student_id)
            if self.state is LookupState.VERIFYING and self.selected_student_id
            else None
        )
        if record is None:
            self.error = SELECT_STUDENT_MESSAGE
            return VerificationResult(accepted=False, message=SELECT_STUDENT_MESSAGE)

        result = verify(record, birth_date, phone)
        if result.accepted:
            self.error = None
            self.resolved_record = record
            self.state = LookupState.RESOLVED
        else:
            self.error = result.message
        return result

    def search_another(self) -> None:
        self._reset_flow()

    def logout(self) -> None:
        self._reset_flow()
        self.form_generation += 1
