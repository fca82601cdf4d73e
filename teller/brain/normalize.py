"""Text normalization shared by intent parsing, retrieval and self-check."""

from __future__ import annotations

import re

_HARAKAT_RE = re.compile(r"[\u064B-\u0652]")
_PUNCT_RE = re.compile(r"[؟?.,!|:;\-]")
_SPACE_RE = re.compile(r"\s+")
_LETTER_MAP = str.maketrans({"أ": "ا", "إ": "ا", "آ": "ا", "ة": "ه", "ى": "ي"})


def normalize_text(text: str) -> str:
    """Lowercase, fold Arabic letter variants, drop diacritics and punctuation."""
    value = (text or "").lower()
    value = _HARAKAT_RE.sub("", value)
    value = value.translate(_LETTER_MAP)
    value = _PUNCT_RE.sub(" ", value)
    return _SPACE_RE.sub(" ", value).strip()


def tokenize(text: str, *, min_len: int = 2) -> list[str]:
    return [tok for tok in normalize_text(text).split(" ") if len(tok) >= min_len]


# Inflections accepted after a Latin phrase of three or more letters.
_LATIN_SUFFIX = r"(?:s|es|d|ed|ing|er|ers|ment|ments|red|ring|led|ling)?"


def contains_phrase(normalized: str, phrase: str) -> bool:
    """Phrase containment on normalized text.

    Latin phrases must start on a token boundary and may carry a short
    inflection ("sending", "payment"); two-letter phrases match whole tokens
    only, so "hi" fires on neither "this" nor "his". Arabic phrases match as
    substrings since clitics attach to words.
    """
    needle = normalize_text(phrase)
    if not needle:
        return False
    if needle.isascii():
        suffix = _LATIN_SUFFIX if len(needle) >= 3 else ""
        return re.search(rf"(?<!\S){re.escape(needle)}{suffix}(?!\S)", normalized) is not None
    return needle in normalized
