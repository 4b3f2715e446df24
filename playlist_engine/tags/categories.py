"""
Closed-vocabulary tag mapping shared by the mood and activity normalizers.

A CategoryTable maps free-text tags onto a small fixed set of canonical
categories through a keyword synonym table. Keywords match on word
boundaries ("blue" does not fire on "blues", "work" does not fire on
"workout").
"""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Mapping, Optional, Pattern, Sequence, Tuple


def _normalize_tag(tag: str) -> str:
    return " ".join(str(tag).lower().split())


class CategoryTable:
    """Canonical categories plus their keyword synonyms."""

    def __init__(self, categories: Sequence[str], synonyms: Mapping[str, Sequence[str]]):
        unknown = set(synonyms) - set(categories)
        if unknown:
            raise ValueError(f"Synonyms reference unknown categories: {sorted(unknown)}")

        self.categories: Tuple[str, ...] = tuple(categories)
        self._by_lower: Dict[str, str] = {c.lower(): c for c in categories}
        self._keyword_to_category: Dict[str, str] = {}
        self._patterns: List[Tuple[str, Pattern[str]]] = []

        for category in categories:
            for keyword in synonyms.get(category, ()):
                key = _normalize_tag(keyword)
                self._keyword_to_category.setdefault(key, category)
                pattern = re.compile(r"(?<![a-z0-9])" + re.escape(key) + r"(?![a-z0-9])")
                self._patterns.append((category, pattern))

    def normalize(self, value: Optional[str]) -> Optional[str]:
        """
        Resolve one token to a category.

        Exact category name first, then an exact synonym keyword; None otherwise.
        """
        if not value:
            return None
        key = _normalize_tag(value)
        if not key:
            return None
        if key in self._by_lower:
            return self._by_lower[key]
        return self._keyword_to_category.get(key)

    def map_tags(self, tags: Iterable[str]) -> List[str]:
        """All categories implied by a tag list, deduplicated, first-seen order."""
        mapped: List[str] = []
        for raw in tags or ():
            tag = _normalize_tag(raw) if raw else ""
            if not tag:
                continue
            exact = self._by_lower.get(tag)
            if exact and exact not in mapped:
                mapped.append(exact)
            for category, pattern in self._patterns:
                if category not in mapped and pattern.search(tag):
                    mapped.append(category)
        return mapped

    def is_category(self, value: str) -> bool:
        return _normalize_tag(value) in self._by_lower
