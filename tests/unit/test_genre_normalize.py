"""Unit tests for genre normalization.

Tests cover:
- Variant table and capitalization rules
- Affix stripping and separator folding
- Idempotence
- Comma-separated tag splitting
- Pool mappings with near-duplicate merging
"""

import sys
from pathlib import Path

import pytest

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from playlist_engine.genre.normalize import (
    build_genre_mappings,
    normalize_genre,
    normalize_track_genres,
    split_genre_string,
)
from playlist_engine.tracks import Track


# =============================================================================
# normalize_genre
# =============================================================================

class TestNormalizeGenre:
    """Canonical spellings."""

    def test_variation_table(self):
        assert normalize_genre("hip-hop") == "Hip Hop"
        assert normalize_genre("HipHop") == "Hip Hop"
        assert normalize_genre("rock and roll") == "Rock & Roll"
        assert normalize_genre("drum and bass") == "Drum & Bass"

    def test_strips_music_suffix(self):
        assert normalize_genre("Ambient Music") == "Ambient"
        assert normalize_genre("  jazz genre ") == "Jazz"

    def test_title_case_with_small_words(self):
        assert normalize_genre("sounds of the sea") == "Sounds of the Sea"

    def test_hyphenated_words_capitalized(self):
        assert normalize_genre("post-punk") == "Post-Punk"

    def test_acronyms_and_special_cases(self):
        assert normalize_genre("edm") == "EDM"
        assert normalize_genre("r&b") == "R&B"
        assert normalize_genre("uk garage") == "UK Garage"

    def test_and_between_words_becomes_ampersand(self):
        assert normalize_genre("classical and jazz") == "Classical & Jazz"

    def test_blank_input(self):
        assert normalize_genre("") == ""
        assert normalize_genre("   ") == ""

    @pytest.mark.parametrize("raw", [
        "hip-hop",
        "Drum and Bass",
        "rock n roll",
        "Rock And Roll Music",
        "Ambient Music",
        "post-punk",
        "r&b",
        "uk garage",
        "singer/songwriter",
        "jazz & blues",
        "classical and jazz",
        "sounds of the sea",
    ])
    def test_idempotent(self, raw):
        once = normalize_genre(raw)
        assert normalize_genre(once) == once


# =============================================================================
# Splitting
# =============================================================================

class TestSplitGenreString:
    """Comma-separated tag lists."""

    def test_rock_pop_split(self):
        assert split_genre_string("Rock, Pop") == ["Rock", "Pop"]

    def test_single_value(self):
        assert split_genre_string(" Jazz ") == ["Jazz"]

    def test_blank(self):
        assert split_genre_string("") == []
        assert split_genre_string("  ") == []

    def test_track_genres_split_and_deduped(self):
        assert normalize_track_genres(["Rock, Pop", "rock"]) == ["Rock", "Pop"]


# =============================================================================
# Pool mappings
# =============================================================================

class TestGenreMappings:
    """Raw <-> canonical mappings for a pool."""

    def _tracks(self, *genre_lists):
        return [Track(id=f"t{i}", genres=tuple(g)) for i, g in enumerate(genre_lists)]

    def test_counts_distinct_tracks(self):
        mappings = build_genre_mappings(self._tracks(
            ["Rock, Pop"], ["rock"], ["Hip-Hop"], ["hip hop"],
        ))
        assert mappings.normalized_to_track_count == {"Rock": 2, "Pop": 1, "Hip Hop": 2}
        assert mappings.normalized_to_originals["Rock"] == {"Rock", "rock"}
        assert mappings.resolve("hip hop") == "Hip Hop"
        assert mappings.resolve("never seen") is None

    def test_near_duplicate_merges_into_longer_genre(self):
        mappings = build_genre_mappings(self._tracks(["Synthwave"], ["synth"]))
        assert mappings.normalized_to_track_count == {"Synthwave": 2}
        assert mappings.resolve("synth") == "Synthwave"

    def test_enhanced_genres_override_raw(self):
        from playlist_engine.tracks import EnhancedMetadata

        track = Track(id="x", genres=("Rock",), enhanced=EnhancedMetadata(genres=("Jazz",)))
        mappings = build_genre_mappings([track])
        assert mappings.normalized_to_track_count == {"Jazz": 1}
