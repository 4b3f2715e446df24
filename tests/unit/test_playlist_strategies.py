"""Unit tests for strategy parsing, the built-in fallback and section positions."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from playlist_engine.playlist.errors import StrategyError
from playlist_engine.playlist.matching_index import LibrarySummary
from playlist_engine.playlist.request import BpmRange, LengthSpec, PlaylistRequest, TempoSpec
from playlist_engine.playlist.strategy import (
    DEFAULT_SECTION,
    OrderingSection,
    PlaylistStrategy,
    fallback_strategy,
    normalize_positions,
    resolve_section,
    resolve_strategy,
)


def _request(**kwargs):
    kwargs.setdefault("length", LengthSpec("tracks", 20))
    return PlaylistRequest(**kwargs)


# =============================================================================
# Fallback heuristic
# =============================================================================

class TestFallbackStrategy:

    def test_low_surprise_tightens_rules(self):
        strategy = fallback_strategy(_request(surprise=0.0))
        rules = strategy.diversity_rules
        assert (rules.max_tracks_per_artist, rules.artist_spacing, rules.genre_spacing) == (2, 3, 2)
        assert strategy.fallback_used is True
        assert strategy.tempo_guidance.allow_variation is False

    def test_full_surprise_loosens_rules(self):
        strategy = fallback_strategy(_request(surprise=1.0))
        rules = strategy.diversity_rules
        assert (rules.max_tracks_per_artist, rules.artist_spacing, rules.genre_spacing) == (3, 5, 3)
        assert strategy.tempo_guidance.allow_variation is True

    def test_flow_arc_for_long_playlists(self):
        strategy = fallback_strategy(_request(tempo=TempoSpec(bucket="fast"), mood=("Energetic",)))
        names = [s.name for s in strategy.ordering_plan]
        assert names == ["warmup", "peak", "cooldown"]
        warmup, peak, cooldown = strategy.ordering_plan
        assert warmup.tempo_target == "medium"
        assert peak.tempo_target == "fast"
        assert peak.energy_level == "high"
        assert cooldown.tempo_target == "slow"

    def test_slow_target_cools_down_to_medium(self):
        strategy = fallback_strategy(_request(tempo=TempoSpec(bucket="slow")))
        assert strategy.ordering_plan[0].tempo_target == "slow"
        assert strategy.ordering_plan[-1].tempo_target == "medium"

    def test_short_playlist_single_section(self):
        strategy = fallback_strategy(_request(length=LengthSpec("tracks", 5)))
        assert len(strategy.ordering_plan) == 1
        assert strategy.ordering_plan[0].name == "peak"

    def test_minutes_use_library_average(self):
        summary = LibrarySummary(
            track_count=10, artist_count=5, top_genres=(), avg_duration_seconds=240.0, tempo_distribution={},
        )
        strategy = fallback_strategy(_request(length=LengthSpec("minutes", 20)), summary)
        # 20 minutes / 4 minute tracks = 5 tracks -> single section
        assert len(strategy.ordering_plan) == 1
        assert strategy.constraints.max_tracks is None

    def test_min_artists_caps_tracks_per_artist(self):
        strategy = fallback_strategy(_request(surprise=1.0, min_artists=10))
        assert strategy.diversity_rules.max_tracks_per_artist == 2

    def test_genre_mix_from_request(self):
        strategy = fallback_strategy(_request(genres=("Rock", "Pop", "Jazz", "Blues", "Soul")))
        mix = strategy.genre_mix_guidance
        assert mix.primary_genres == ("Rock", "Pop", "Jazz")
        assert mix.secondary_genres == ("Blues", "Soul")
        assert strategy.constraints.required_genres == ("Rock", "Pop", "Jazz", "Blues", "Soul")

    def test_genre_mix_from_library(self):
        summary = LibrarySummary(
            track_count=10, artist_count=5,
            top_genres=(("Rock", 5), ("Pop", 4), ("Jazz", 3), ("Blues", 2)),
            avg_duration_seconds=None, tempo_distribution={},
        )
        mix = fallback_strategy(_request(), summary).genre_mix_guidance
        assert mix.primary_genres == ("Rock", "Pop", "Jazz")
        assert mix.secondary_genres == ("Blues",)

    def test_bpm_range_sets_tempo_target(self):
        strategy = fallback_strategy(_request(tempo=TempoSpec(bpm_range=BpmRange(150, 170))))
        assert strategy.tempo_guidance.target_bucket == "fast"
        assert strategy.tempo_guidance.bpm_range == (150, 170)

    def test_title_and_description(self):
        strategy = fallback_strategy(_request(genres=("Jazz",), mood=("Calm",), activity=("Study",)))
        assert strategy.title == "Calm Jazz for Study"
        assert strategy.description.startswith("20 tracks of Jazz")


# =============================================================================
# Section positions
# =============================================================================

class TestNormalizePositions:

    def test_overlapping_sections_made_contiguous(self):
        sections = [
            OrderingSection("b", 0.5, 0.9),
            OrderingSection("a", 0.0, 0.6),
        ]
        result = normalize_positions(sections)
        assert [s.name for s in result] == ["a", "b"]
        assert result[0].start_position == 0.0
        assert result[0].end_position == result[1].start_position
        assert result[-1].end_position == 1.0
        assert all(s.end_position > s.start_position for s in result)

    def test_input_is_not_modified(self):
        sections = [OrderingSection("b", 0.5, 0.9), OrderingSection("a", 0.2, 0.6)]
        snapshot = list(sections)
        normalize_positions(sections)
        assert sections == snapshot

    def test_gap_at_start_closed(self):
        result = normalize_positions([OrderingSection("only", 0.3, 0.7)])
        assert (result[0].start_position, result[0].end_position) == (0.0, 1.0)

    def test_degenerate_sections_still_cover_range(self):
        result = normalize_positions([
            OrderingSection("x", 0.3, 0.3),
            OrderingSection("y", 0.0, 1.0),
        ])
        assert result[0].start_position == 0.0
        assert result[-1].end_position == 1.0
        for first, second in zip(result, result[1:]):
            assert first.end_position == second.start_position
        assert all(s.end_position > s.start_position for s in result)

    def test_empty_plan(self):
        assert normalize_positions([]) == (DEFAULT_SECTION,)


class TestResolveSection:

    SECTIONS = (
        OrderingSection("warmup", 0.0, 0.2),
        OrderingSection("peak", 0.2, 0.8),
        OrderingSection("cooldown", 0.8, 1.0),
    )

    @pytest.mark.parametrize("position,name", [
        (0.0, "warmup"), (0.19, "warmup"), (0.2, "peak"), (0.79, "peak"), (0.8, "cooldown"), (1.0, "cooldown"),
    ])
    def test_positions(self, position, name):
        assert resolve_section(self.SECTIONS, position).name == name

    def test_no_sections(self):
        assert resolve_section((), 0.5) == DEFAULT_SECTION


# =============================================================================
# External strategies
# =============================================================================

VALID_STRATEGY = {
    "title": "Late Night Jazz",
    "description": "Smoky",
    "constraints": {"requiredGenres": ["Jazz"], "excludedGenres": ["Metal"]},
    "scoringWeights": {"genreMatch": 0.5, "tempoMatch": 0.2, "moodMatch": 0.1, "activityMatch": 0.1, "diversity": 0.1},
    "diversityRules": {"maxTracksPerArtist": 2, "artistSpacing": 4, "genreSpacing": 1, "maxTracksPerAlbum": 1},
    "orderingPlan": {"sections": [
        {"name": "open", "startPosition": 0.0, "endPosition": 0.5, "tempoTarget": "Slow", "energyLevel": "low"},
        {"name": "close", "startPosition": 0.5, "endPosition": 1.0, "tempoTarget": "medium"},
    ]},
    "vibeTags": ["smoky"],
    "tempoGuidance": {"targetBucket": "slow", "allowVariation": False},
    "genreMixGuidance": {"primaryGenres": ["Jazz"], "secondaryGenres": ["Blues"], "mixRatio": {"primary": 0.8, "secondary": 0.2}},
}


class TestStrategyFromDict:

    def test_parse(self):
        strategy = PlaylistStrategy.from_dict(VALID_STRATEGY)
        assert strategy.title == "Late Night Jazz"
        assert strategy.constraints.required_genres == ("Jazz",)
        assert strategy.scoring_weights.genre_match == 0.5
        assert strategy.diversity_rules.max_tracks_per_album == 1
        assert strategy.ordering_plan[0].tempo_target == "slow"
        assert strategy.ordering_plan[1].energy_level is None
        assert strategy.genre_mix_guidance.primary_ratio == 0.8
        assert strategy.tempo_guidance.allow_variation is False

    def test_to_dict_round_trip(self):
        strategy = PlaylistStrategy.from_dict(VALID_STRATEGY)
        assert PlaylistStrategy.from_dict(strategy.to_dict()) == strategy

    @pytest.mark.parametrize("mutation", [
        {"title": ""},
        {"scoringWeights": {"genreMatch": -1}},
        {"orderingPlan": {"sections": [{"name": "x", "startPosition": 0, "endPosition": 1, "tempoTarget": "warp"}]}},
        {"orderingPlan": {"sections": [{"name": "x", "endPosition": 1}]}},
        {"diversityRules": {"maxTracksPerArtist": "many"}},
        {"diversityRules": {"maxTracksPerArtist": 0}},
    ])
    def test_malformed(self, mutation):
        data = dict(VALID_STRATEGY)
        data.update(mutation)
        with pytest.raises(StrategyError):
            PlaylistStrategy.from_dict(data)

    def test_missing_title(self):
        data = dict(VALID_STRATEGY)
        del data["title"]
        with pytest.raises(StrategyError):
            PlaylistStrategy.from_dict(data)

    def test_not_a_mapping(self):
        with pytest.raises(StrategyError):
            PlaylistStrategy.from_dict(["title"])


class TestResolveStrategy:

    def test_without_generator_uses_fallback(self):
        assert resolve_strategy(_request()).fallback_used is True

    def test_failing_generator_falls_back(self):
        def broken(request, summary):
            raise RuntimeError("service down")

        strategy = resolve_strategy(_request(), generator=broken)
        assert strategy.fallback_used is True

    def test_malformed_generator_output_falls_back(self):
        strategy = resolve_strategy(_request(), generator=lambda request, summary: {"description": "no title"})
        assert strategy.fallback_used is True

    def test_wrong_type_falls_back(self):
        strategy = resolve_strategy(_request(), generator=lambda request, summary: 42)
        assert strategy.fallback_used is True

    def test_generator_dict_accepted(self):
        strategy = resolve_strategy(_request(), generator=lambda request, summary: VALID_STRATEGY)
        assert strategy.fallback_used is False
        assert strategy.title == "Late Night Jazz"

    def test_generator_sections_normalized(self):
        produced = PlaylistStrategy(title="X", ordering_plan=(OrderingSection("only", 0.3, 0.6),))
        strategy = resolve_strategy(_request(), generator=lambda request, summary: produced)
        assert strategy.ordering_plan[0].start_position == 0.0
        assert strategy.ordering_plan[-1].end_position == 1.0

    def test_generator_sees_tempo_bucket_expanded(self):
        seen = []

        def generator(request, summary):
            seen.append(request)
            return VALID_STRATEGY

        original = _request(tempo=TempoSpec(bucket="slow"), mood=("Happy",))
        resolve_strategy(original, generator=generator)
        assert seen[0].tempo.bpm_range == BpmRange(60.0, 89.0)
        assert seen[0].mood[0] == "Happy"
        assert "Calm" in seen[0].mood
        assert "Sleep" in seen[0].activity
        assert original.tempo.bpm_range is None
        assert original.mood == ("Happy",)
