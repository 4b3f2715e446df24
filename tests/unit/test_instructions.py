"""Unit tests for free-text instruction parsing."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from playlist_engine.playlist.instructions import (
    InstructionHints,
    apply_instruction_hints_to_request,
    extract_instruction_tokens,
    merge_instructions_into_request,
    parse_activity_from_instructions,
    parse_genres_from_instructions,
    parse_mood_from_instructions,
    parse_strategy_hints_from_instructions,
)
from playlist_engine.playlist.request import BpmRange, PlaylistRequest, TempoSpec


class TestTokens:

    def test_unigrams_and_bigrams(self):
        assert extract_instruction_tokens("Road trip with the gang!") == [
            "road", "trip", "gang", "road trip", "trip gang",
        ]

    def test_empty(self):
        assert extract_instruction_tokens(None) == []
        assert extract_instruction_tokens("") == []


class TestTermParsing:

    def test_moods(self):
        moods = parse_mood_from_instructions("something upbeat and happy")
        assert "Upbeat" in moods
        assert "Happy" in moods

    def test_activities_from_bigram(self):
        assert "Commute" in parse_activity_from_instructions("music for a road trip")

    def test_genres_limited_to_known(self):
        genres = parse_genres_from_instructions("lots of jazz and hip hop, maybe polka", ["Jazz", "Hip Hop", "Rock"])
        assert genres == ["Jazz", "Hip Hop"]

    def test_genres_without_known_list(self):
        assert parse_genres_from_instructions("jazz", []) == []

    def test_unparseable_text_yields_nothing(self):
        assert parse_mood_from_instructions("??? !!!") == []
        assert parse_activity_from_instructions("   ") == []


class TestStrategyHints:

    def test_tempo_and_variety(self):
        hints = parse_strategy_hints_from_instructions("Fast only please, and mix it up")
        assert hints.tempo_bucket == "fast"
        assert hints.surprise_boost == 0.2

    def test_predictable_lowers_surprise(self):
        hints = parse_strategy_hints_from_instructions("keep it safe, chill only")
        assert hints.tempo_bucket == "slow"
        assert hints.surprise_boost == -0.2

    def test_duration_hints(self):
        assert parse_strategy_hints_from_instructions("short tracks").max_duration_seconds == 180.0
        assert parse_strategy_hints_from_instructions("long tracks").min_duration_seconds == 300.0

    def test_no_text(self):
        assert parse_strategy_hints_from_instructions(None).is_empty


class TestApplyHints:

    def test_surprise_clamped(self):
        request = PlaylistRequest(surprise=0.9)
        updated = apply_instruction_hints_to_request(request, InstructionHints(surprise_boost=0.2))
        assert updated.surprise == 1.0
        lowered = apply_instruction_hints_to_request(PlaylistRequest(surprise=0.1), InstructionHints(surprise_boost=-0.2))
        assert lowered.surprise == 0.0

    def test_explicit_bpm_range_keeps_bucket(self):
        request = PlaylistRequest(tempo=TempoSpec(bucket="medium", bpm_range=BpmRange(100, 120)))
        updated = apply_instruction_hints_to_request(request, InstructionHints(tempo_bucket="fast"))
        assert updated.tempo.bucket == "medium"

    def test_bucket_applied_without_range(self):
        updated = apply_instruction_hints_to_request(PlaylistRequest(), InstructionHints(tempo_bucket="slow"))
        assert updated.tempo.bucket == "slow"

    def test_request_duration_bounds_win(self):
        request = PlaylistRequest(max_duration_seconds=240)
        updated = apply_instruction_hints_to_request(
            request, InstructionHints(max_duration_seconds=180.0, min_duration_seconds=60.0),
        )
        assert updated.max_duration_seconds == 240
        assert updated.min_duration_seconds == 60.0

    def test_empty_hints_return_same_request(self):
        request = PlaylistRequest()
        assert apply_instruction_hints_to_request(request, InstructionHints()) is request


class TestMergeInstructions:

    def test_terms_unioned_into_request(self):
        request = PlaylistRequest(
            genres=("Rock",),
            mood=("Happy",),
            instructions="some chill jazz for studying",
        )
        merged = merge_instructions_into_request(request, ["Jazz", "Rock"])
        assert merged.genres == ("Rock", "Jazz")
        assert merged.mood[0] == "Happy"
        assert "Calm" in merged.mood
        assert "Study" in merged.activity

    def test_without_instructions(self):
        request = PlaylistRequest(genres=("Rock",))
        assert merge_instructions_into_request(request, ["Jazz"]) is request
