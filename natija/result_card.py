"""HTML for the result card shown after a successful verification."""

from __future__ import annotations

import html

from natija.ingestion.record_normalizer import StudentRecord


def result_card_html(student: StudentRecord) -> str:
    """Every field comes from the uploaded file and is escaped."""
    return f"""
    <div class="result-card">
        <h3>{html.escape(student.name)}</h3>
        <p>{html.escape(student.class_name)}</p>
        <p>تاريخ الميلاد: {html.escape(student.display_birth_date)}</p>
    </div>
    """
