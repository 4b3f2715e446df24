"""
Shared string normalization utilities used across the engine.

Artist/album/title comparisons (disallowed artists, suggestions, diversity
keys) all go through these helpers so that typography and case variants of
the same name compare equal.
"""
import unicodedata
from typing import Iterable, List, Set

# Typography normalization for comparison keys
_TYPOGRAPHY_TRANSLATION = {
    ord("\u2018"): "'",  # left single quotation mark
    ord("\u2019"): "'",  # right single quotation mark
    ord("\u201A"): "'",  # single low-9 quotation mark
    ord("\u2032"): "'",  # prime
    ord("\u201C"): '"',  # left double quotation mark
    ord("\u201D"): '"',  # right double quotation mark
    ord("\u2010"): "-",  # hyphen
    ord("\u2011"): "-",  # non-breaking hyphen
    ord("\u2012"): "-",  # figure dash
    ord("\u2013"): "-",  # en dash
    ord("\u2014"): "-",  # em dash
    ord("\u2015"): "-",  # horizontal bar
    ord("\u2212"): "-",  # minus sign
}


def normalize_name_key(name: str) -> str:
    """
    Normalize an artist/album/title to a stable comparison key.

    Steps:
    - Normalize typography variants (quotes/dashes)
    - Unicode NFKD + remove combining marks (diacritics)
    - Casefold
    - Replace punctuation with spaces and collapse whitespace
    """
    if not name:
        return ""

    text = str(name).strip()
    if not text:
        return ""

    text = text.translate(_TYPOGRAPHY_TRANSLATION)
    text = unicodedata.normalize("NFKD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.casefold()

    normalized = "".join(
        " " if unicodedata.category(ch).startswith("P") else ch for ch in text
    )
    return " ".join(normalized.split())


def name_key_set(names: Iterable[str]) -> Set[str]:
    """Build a set of comparison keys, skipping blanks."""
    keys = {normalize_name_key(n) for n in names or ()}
    keys.discard("")
    return keys


def dedupe_preserving_order(values: Iterable[str]) -> List[str]:
    """Drop exact duplicates while keeping first-seen order."""
    seen: Set[str] = set()
    result: List[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result
