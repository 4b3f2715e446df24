"""
Mood vocabulary: 18 canonical mood categories and their synonym keywords.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from playlist_engine.tags.categories import CategoryTable

MOOD_CATEGORIES: List[str] = [
    "Happy",
    "Energetic",
    "Relaxed",
    "Melancholic",
    "Upbeat",
    "Calm",
    "Intense",
    "Peaceful",
    "Exciting",
    "Mellow",
    "Romantic",
    "Dark",
    "Nostalgic",
    "Dreamy",
    "Aggressive",
    "Uplifting",
    "Reflective",
    "Euphoric",
]

MOOD_SYNONYMS: Dict[str, List[str]] = {
    "Happy": ["happy", "joy", "joyful", "cheerful", "bright", "sunny", "fun"],
    "Energetic": ["energetic", "energy", "power", "driving", "high-energy", "pumped"],
    "Relaxed": ["relaxed", "relaxing", "laid-back", "laid back", "easygoing", "smooth"],
    "Melancholic": ["melancholic", "melancholy", "sad", "somber", "moody", "wistful", "heartbreak"],
    "Upbeat": ["upbeat", "bouncy", "feel-good", "feel good", "positive", "groovy"],
    "Calm": ["calm", "chill", "chillout", "ambient", "soft", "gentle", "quiet"],
    "Intense": ["intense", "heavy", "fierce", "powerful"],
    "Peaceful": ["peaceful", "tranquil", "serene", "soothing"],
    "Exciting": ["exciting", "thrilling", "anthemic", "excited"],
    "Mellow": ["mellow", "warm", "cozy", "cosy"],
    "Romantic": ["romantic", "love", "loving", "tender", "intimate", "sensual"],
    "Dark": ["dark", "brooding", "ominous", "noir", "gothic"],
    "Nostalgic": ["nostalgic", "nostalgia", "retro", "throwback", "memories", "yearning"],
    "Dreamy": ["dreamy", "ethereal", "floating", "atmospheric", "hypnotic"],
    "Aggressive": ["aggressive", "angry", "hostile", "harsh", "rage"],
    "Uplifting": ["uplifting", "inspiring", "inspirational", "hopeful", "triumphant"],
    "Reflective": ["reflective", "thoughtful", "contemplative", "introspective", "pensive"],
    "Euphoric": ["euphoric", "ecstatic", "blissful", "transcendent"],
}

MOOD_TABLE = CategoryTable(MOOD_CATEGORIES, MOOD_SYNONYMS)


def get_mood_categories() -> List[str]:
    return list(MOOD_CATEGORIES)


def normalize_mood_category(value: Optional[str]) -> Optional[str]:
    """"chill" -> "Calm", "Romantic" -> "Romantic", "xyz" -> None."""
    return MOOD_TABLE.normalize(value)


def map_mood_tags_to_categories(tags: Iterable[str]) -> List[str]:
    """Map a free-text mood tag list onto canonical categories."""
    return MOOD_TABLE.map_tags(tags)
