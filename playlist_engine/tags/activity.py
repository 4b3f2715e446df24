"""
Activity vocabulary: 16 canonical activity categories and their synonym keywords.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from playlist_engine.tags.categories import CategoryTable

ACTIVITY_CATEGORIES: List[str] = [
    "Workout",
    "Running",
    "Cycling",
    "Yoga",
    "Study",
    "Work",
    "Commute",
    "Cooking",
    "Cleaning",
    "Gaming",
    "Party",
    "Dance",
    "Relaxing",
    "Meditation",
    "Reading",
    "Sleep",
]

ACTIVITY_SYNONYMS: Dict[str, List[str]] = {
    "Workout": ["workout", "gym", "training", "exercise", "lifting", "fitness", "hiit"],
    "Running": ["running", "run", "jog", "jogging", "cardio", "sprint"],
    "Cycling": ["cycling", "bike", "biking", "spin", "spinning", "ride"],
    "Yoga": ["yoga", "stretching", "pilates"],
    "Study": ["study", "studying", "focus", "focused", "concentration", "lofi", "homework"],
    "Work": ["work", "working", "office", "productivity", "coding"],
    "Commute": ["commute", "commuting", "driving", "travel", "road trip", "car", "train"],
    "Cooking": ["cooking", "kitchen", "baking", "dinner"],
    "Cleaning": ["cleaning", "chores", "housework", "tidying"],
    "Gaming": ["gaming", "games", "game", "videogame", "video game"],
    "Party": ["party", "celebration", "festival", "night out", "pregame"],
    "Dance": ["dance", "dancing", "club", "edm", "house", "techno"],
    "Relaxing": ["relax", "relaxed", "relaxing", "chill", "chillout", "laid-back", "easygoing", "unwind"],
    "Meditation": ["meditation", "meditate", "mindful", "mindfulness", "zen", "breathing"],
    "Reading": ["reading", "read", "book", "books", "novel"],
    "Sleep": ["sleep", "sleeping", "bedtime", "nap", "sleepy", "lullaby"],
}

ACTIVITY_TABLE = CategoryTable(ACTIVITY_CATEGORIES, ACTIVITY_SYNONYMS)


def get_activity_categories() -> List[str]:
    return list(ACTIVITY_CATEGORIES)


def normalize_activity_category(value: Optional[str]) -> Optional[str]:
    """"gym" -> "Workout", "Yoga" -> "Yoga", "xyz" -> None."""
    return ACTIVITY_TABLE.normalize(value)


def map_activity_tags_to_categories(tags: Iterable[str]) -> List[str]:
    """Map a free-text activity tag list onto canonical categories."""
    return ACTIVITY_TABLE.map_tags(tags)
