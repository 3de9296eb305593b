"""
Natija Header Resolver

Deterministic alias library mapping spreadsheet column headers to the
canonical student fields.

RULES:
- Deterministic string matching only. No fuzzy matching.
- Whitespace stripped before comparison.
- Exact match first; lower-cased match second (covers ASCII variants such
  as "Score 1"). Case folding is a no-op for Arabic script, so Arabic
  aliases effectively match exactly.
- Unrecognized headers are not an error. They are returned by
  get_unmatched_columns() and carried as pass-through data by the
  normalizer, never dropped silently.

Public API:
  HeaderResolver(sources).resolve(header) -> str | None
  resolve_header(header) -> str | None
  resolve_columns(headers, file_label) -> dict[str, str]
  get_unmatched_columns(headers, resolved_map) -> list[str]
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Canonical field names
# ---------------------------------------------------------------------------

NAME = "name"
CLASS_NAME = "class_name"
BIRTH_DATE = "birth_date"
MOBILE1 = "mobile1"
MOBILE2 = "mobile2"
SCORE1 = "score1"
SCORE2 = "score2"

CANONICAL_FIELDS: frozenset[str] = frozenset({
    NAME,
    CLASS_NAME,
    BIRTH_DATE,
    MOBILE1,
    MOBILE2,
    SCORE1,
    SCORE2,
})

MOBILE_FIELDS: frozenset[str] = frozenset({MOBILE1, MOBILE2})
SCORE_FIELDS: frozenset[str] = frozenset({SCORE1, SCORE2})

# ---------------------------------------------------------------------------
# Alias sources
# ---------------------------------------------------------------------------
# Keys are written in their natural spreadsheet spelling. Comparison strips
# whitespace; the folded (lower-cased) table is consulted only after an
# exact miss.

# ── Arabic exports ───────────────────────────────────────────────────────────
_ARABIC_ALIASES: dict[str, str] = {
    # name
    "الاسم": NAME,
    "الإسم": NAME,
    "اسم الطالب": NAME,
    # class_name: stage / class / section
    "المرحله": CLASS_NAME,
    "المرحلة": CLASS_NAME,
    "الفصل": CLASS_NAME,
    "الصف": CLASS_NAME,
    # birth_date
    "تاريخ الميلاد": BIRTH_DATE,
    # mobile1: generic "phone" and explicit "mobile 1"
    "رقم الموبايل": MOBILE1,
    "رقم الهاتف": MOBILE1,
    "موبايل 1": MOBILE1,
    # mobile2
    "رقم الموبايل 2": MOBILE2,
    "موبايل 2": MOBILE2,
    # scores
    "الدرجة 1": SCORE1,
    "الدرجة 2": SCORE2,
}

# ── English exports ──────────────────────────────────────────────────────────
_ENGLISH_ALIASES: dict[str, str] = {
    "score 1": SCORE1,
    "score 2": SCORE2,
}

# ── Canonical headers (sheets already written with canonical names) ─────────
_CANONICAL_ALIASES: dict[str, str] = {
    **{field: field for field in CANONICAL_FIELDS},
    "className": CLASS_NAME,
    "birthDate": BIRTH_DATE,
}

ALIAS_SOURCES: tuple[tuple[str, Mapping[str, str]], ...] = (
    ("Arabic", _ARABIC_ALIASES),
    ("English", _ENGLISH_ALIASES),
    ("Canonical", _CANONICAL_ALIASES),
)


# ---------------------------------------------------------------------------
# Lookup construction
# ---------------------------------------------------------------------------


def _merge_into(
    lookup: dict[str, str],
    key: str,
    target: str,
    source_name: str,
    raw_alias: str,
) -> None:
    existing = lookup.get(key)
    if existing is not None and existing != target:
        raise ValueError(
            f"Alias library conflict detected in '{source_name}': "
            f"alias '{raw_alias}' (normalized: '{key}') maps to '{target}' "
            f"but was already mapped to '{existing}'. "
            f"Remove or reconcile the conflicting entry."
        )
    lookup[key] = target


def _build_alias_lookup(
    sources: Iterable[tuple[str, Mapping[str, str]]],
) -> tuple[dict[str, str], dict[str, str]]:
    """
    Merge all alias sources into an exact table and a folded table.

    Raises ValueError if an alias targets an unknown field, or if the same
    stripped (or stripped + lower-cased) alias maps to different fields.
    """
    exact: dict[str, str] = {}
    folded: dict[str, str] = {}
    for source_name, aliases in sources:
        for raw_alias, target in aliases.items():
            if target not in CANONICAL_FIELDS:
                raise ValueError(
                    f"Alias '{raw_alias}' in '{source_name}' maps to unknown "
                    f"field '{target}'. Valid fields: {sorted(CANONICAL_FIELDS)}"
                )
            stripped = raw_alias.strip()
            _merge_into(exact, stripped, target, source_name, raw_alias)
            _merge_into(folded, stripped.lower(), target, source_name, raw_alias)
    return exact, folded


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class HeaderResolver:
    """Read-only header → canonical field lookup built from alias sources."""

    def __init__(
        self,
        sources: Iterable[tuple[str, Mapping[str, str]]] = ALIAS_SOURCES,
    ) -> None:
        self._exact, self._folded = _build_alias_lookup(sources)

    def resolve(self, header: object) -> Optional[str]:
        """Return the canonical field for one header, or None."""
        cleaned = str(header).strip()
        if not cleaned:
            return None
        found = self._exact.get(cleaned)
        if found is None:
            found = self._folded.get(cleaned.lower())
        return found

    def resolve_columns(
        self,
        headers: Iterable[object],
        file_label: str,
    ) -> dict[str, str]:
        """
        Resolve raw headers to canonical fields.

        Parameters
        ----------
        headers : iterable
            Raw column headers as they appear in the sheet.
        file_label : str
            Human-readable label for the file. Used only in log messages.

        Returns
        -------
        dict[str, str]
            {raw_header: canonical_field} for every recognized header.
            Unrecognized headers are NOT included.
        """
        resolved: dict[str, str] = {}
        for header in headers:
            field = self.resolve(header)
            if field is None:
                continue
            resolved[str(header)] = field
            logger.info(
                "[header_resolver] %s: '%s' → '%s'",
                file_label, header, field,
            )
        return resolved

    @staticmethod
    def get_unmatched_columns(
        headers: Iterable[object],
        resolved_map: Mapping[str, str],
    ) -> list[str]:
        """Raw headers with no alias match, in sheet order."""
        return [str(h) for h in headers if str(h) not in resolved_map]


# Module-level resolver, built once from the static alias table.
DEFAULT_RESOLVER = HeaderResolver()


def resolve_header(header: object) -> Optional[str]:
    return DEFAULT_RESOLVER.resolve(header)


def resolve_columns(headers: Iterable[object], file_label: str) -> dict[str, str]:
    return DEFAULT_RESOLVER.resolve_columns(headers, file_label)


def get_unmatched_columns(
    headers: Iterable[object],
    resolved_map: Mapping[str, str],
) -> list[str]:
    return HeaderResolver.get_unmatched_columns(headers, resolved_map)
