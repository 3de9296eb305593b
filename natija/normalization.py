"""
Text helpers shared by ingestion and lookup.

- Arabic-Indic and Extended Arabic-Indic digits fold to ASCII before any
  digit extraction, so stored phone numbers only ever contain 0-9.
- The collation key orders Arabic names the way a reader expects: hamza
  forms of alef sort with bare alef, tatweel and harakat are ignored.
"""

from __future__ import annotations

import re
import unicodedata

# Arabic-Indic (0660–0669) and Extended Arabic-Indic (06F0–06F9) → ASCII
_DIGIT_TRANSLATION: dict[int, int] = {
    **{0x0660 + i: ord(str(i)) for i in range(10)},
    **{0x06F0 + i: ord(str(i)) for i in range(10)},
}

_RE_NON_DIGIT = re.compile(r"[^0-9]")

_ALEF_VARIANTS = str.maketrans({"أ": "ا", "إ": "ا", "آ": "ا", "ٱ": "ا"})

# Tatweel plus the harakat block (fathatan .. sukun) and superscript alef.
_RE_IGNORABLE = re.compile(r"[\u0640\u064B-\u0652\u0670]")


def to_ascii_digits(text: str) -> str:
    """Replace Arabic-Indic digits with their ASCII equivalents."""
    return text.translate(_DIGIT_TRANSLATION)


def digits_only(text: str) -> str:
    """Keep ASCII digits only, after folding Arabic-Indic digits."""
    return _RE_NON_DIGIT.sub("", to_ascii_digits(text))


def arabic_sort_key(text: str) -> tuple[str, str]:
    """
    Collation key for Arabic (and mixed) display strings.

    The first element carries the folded comparison form; the raw text
    breaks ties so ordering stays deterministic.
    """
    folded = unicodedata.normalize("NFKC", text)
    folded = _RE_IGNORABLE.sub("", folded).translate(_ALEF_VARIANTS)
    return folded.casefold().strip(), text
