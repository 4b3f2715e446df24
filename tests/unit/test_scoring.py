"""Unit tests for the candidate scorers."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from playlist_engine.playlist.config import EngineConfig
from playlist_engine.playlist.diversity import SelectionState
from playlist_engine.playlist.matching_index import build_matching_index
from playlist_engine.playlist.request import BpmRange, LengthSpec, PlaylistRequest, TempoSpec
from playlist_engine.playlist.scoring import (
    ScoringContext,
    calculate_activity_match,
    calculate_diversity,
    calculate_duration_fit,
    calculate_genre_match,
    calculate_genre_mix_fit,
    calculate_mood_match,
    calculate_section_alignment,
    calculate_tempo_match,
    score_candidate,
    suggestion_bonus,
)
from playlist_engine.playlist.strategy import (
    DiversityRules,
    GenreMixGuidance,
    OrderingSection,
    PlaylistStrategy,
)


@pytest.fixture()
def meta_for(make_track):
    """Build TrackMetadata for one track through the index."""
    def _meta(track_id="x", **kwargs):
        return build_matching_index([make_track(track_id, **kwargs)]).metadata(track_id)
    return _meta


# =============================================================================
# Mood / activity fallbacks
# =============================================================================

class TestMoodMatch:

    def test_no_request_scores_full(self, meta_for):
        assert calculate_mood_match(meta_for(), []).score == 1.0

    def test_explicit_match(self, meta_for):
        result = calculate_mood_match(meta_for(mood=("happy",)), ["Happy"])
        assert result.score == 1.0
        assert "Happy" in result.reasons[0].explanation

    def test_partial_explicit_match(self, meta_for):
        assert calculate_mood_match(meta_for(mood=("happy",)), ["Happy", "Calm"]).score == 0.9

    def test_explicit_mismatch_falls_back_to_genre(self, meta_for):
        result = calculate_mood_match(meta_for(genres=("Ambient",), mood=("Energetic",), bpm=60), ["Calm"])
        assert result.score == 0.7
        assert "Genre suggests Calm" in result.reasons[0].explanation

    def test_explicit_mismatch_without_inference_is_neutral(self, meta_for):
        result = calculate_mood_match(meta_for(mood=("dark",)), ["Happy"])
        assert result.score == 0.5
        assert "differ" in result.reasons[0].explanation

    def test_genre_inference(self, meta_for):
        assert calculate_mood_match(meta_for(genres=("Ambient",), bpm=None), ["Calm"]).score == 0.7

    def test_tempo_inference(self, meta_for):
        assert calculate_mood_match(meta_for(genres=("Rock",), bpm=150), ["Energetic"]).score == 0.6

    def test_no_metadata_is_neutral(self, meta_for):
        result = calculate_mood_match(meta_for(genres=("Rock",), bpm=None), ["Happy"])
        assert result.score == 0.5
        assert "neutral" in result.reasons[0].explanation


class TestActivityMatch:

    def test_explicit_match(self, meta_for):
        assert calculate_activity_match(meta_for(activity=("gym",)), ["workout"]).score == 1.0

    def test_explicit_mismatch_falls_back_to_bpm(self, meta_for):
        result = calculate_activity_match(meta_for(genres=("Metal",), activity=("Study",), bpm=170), ["Workout"])
        assert result.score == 0.7
        assert "BPM suits Workout" in result.reasons[0].explanation

    def test_explicit_mismatch_without_inference_is_neutral(self, meta_for):
        result = calculate_activity_match(meta_for(activity=("sleep",)), ["Workout"])
        assert result.score == 0.5
        assert "differ" in result.reasons[0].explanation

    def test_bpm_inference(self, meta_for):
        assert calculate_activity_match(meta_for(bpm=150), ["Workout"]).score == 0.7

    def test_genre_inference(self, meta_for):
        assert calculate_activity_match(meta_for(genres=("House",), bpm=None), ["Party"]).score == 0.65

    def test_duration_inference(self, meta_for):
        meta = meta_for(genres=("Rock",), bpm=None, duration_seconds=120)
        assert calculate_activity_match(meta, ["Running"]).score == 0.6

    @pytest.mark.parametrize("kwargs", [
        {"genres": ("Rock",), "bpm": None, "duration_seconds": 240},
        {"genres": (), "bpm": None, "duration_seconds": None},
        {"genres": ("Polka",), "bpm": 100, "duration_seconds": 250},
    ])
    def test_fallbacks_never_below_neutral(self, meta_for, kwargs):
        assert calculate_activity_match(meta_for(**kwargs), ["Sleep"]).score >= 0.5
        assert calculate_mood_match(meta_for(**kwargs), ["Romantic"]).score >= 0.5


# =============================================================================
# Tempo
# =============================================================================

class TestTempoMatch:

    @pytest.mark.parametrize("bpm,bucket,expected", [
        (120, "medium", 1.0),
        (150, "medium", 0.6),
        (150, "slow", 0.2),
        (None, "slow", 0.5),
    ])
    def test_bucket(self, meta_for, bpm, bucket, expected):
        assert calculate_tempo_match(meta_for(bpm=bpm), TempoSpec(bucket=bucket)).score == expected

    def test_range(self, meta_for):
        spec = TempoSpec(bpm_range=BpmRange(100, 120))
        assert calculate_tempo_match(meta_for(bpm=110), spec).score == 1.0
        assert calculate_tempo_match(meta_for(bpm=130), spec).score == 0.5
        assert calculate_tempo_match(meta_for(bpm=200), spec).score == 0.0
        assert calculate_tempo_match(meta_for(bpm=None), spec).score == 0.5

    def test_narrow_range_uses_minimum_width(self, meta_for):
        spec = TempoSpec(bpm_range=BpmRange(120, 122))
        assert calculate_tempo_match(meta_for(bpm=127), spec).score == 0.5

    def test_no_tempo_request(self, meta_for):
        assert calculate_tempo_match(meta_for(), TempoSpec()).score == 1.0


# =============================================================================
# Genre
# =============================================================================

class TestGenreMatch:

    def test_fraction_of_requested(self, meta_for):
        assert calculate_genre_match(meta_for(genres=("Rock",)), ["Rock", "Jazz"]).score == 0.5

    def test_normalization_aware(self, meta_for):
        assert calculate_genre_match(meta_for(genres=("Hip-Hop",)), ["hip hop"]).score == 1.0

    def test_partial_match(self, meta_for):
        assert calculate_genre_match(meta_for(genres=("Punk Rock",)), ["Rock"]).score == 0.7

    def test_missing_required_genre(self, meta_for):
        result = calculate_genre_match(meta_for(genres=("Rock",)), ["Rock", "Jazz"], required_genres=["Jazz"])
        assert result.score == 0.15

    def test_no_request(self, meta_for):
        assert calculate_genre_match(meta_for(), []).score == 1.0


class TestGenreMixFit:

    GUIDANCE = GenreMixGuidance(primary_genres=("Rock",), secondary_genres=("Jazz",))

    def test_secondary_boosted_when_primary_over_ratio(self, meta_for):
        chosen = [meta_for(f"r{i}", genres=("Rock",)) for i in range(3)]
        result = calculate_genre_mix_fit(meta_for(genres=("Jazz",)), self.GUIDANCE, chosen)
        assert result.score == 1.0
        assert "secondary" in result.reasons[0].explanation.lower()

    def test_primary_penalized_when_over_ratio(self, meta_for):
        chosen = [meta_for(f"r{i}", genres=("Rock",)) for i in range(3)]
        assert calculate_genre_mix_fit(meta_for(genres=("Rock",)), self.GUIDANCE, chosen).score == 0.7

    def test_balanced_selection(self, meta_for):
        assert calculate_genre_mix_fit(meta_for(genres=("Rock",)), self.GUIDANCE, []).score == 1.0
        assert calculate_genre_mix_fit(meta_for(genres=("Jazz",)), self.GUIDANCE, []).score == 0.8

    def test_outside_mix(self, meta_for):
        assert calculate_genre_mix_fit(meta_for(genres=("Polka",)), self.GUIDANCE, []).score == 0.2
        assert calculate_genre_mix_fit(meta_for(genres=("Jazz Fusion",)), self.GUIDANCE, []).score == 0.6
        assert calculate_genre_mix_fit(meta_for(genres=()), self.GUIDANCE, []).score == 0.3

    def test_without_secondary_genres(self, meta_for):
        guidance = GenreMixGuidance(primary_genres=("Rock",))
        assert calculate_genre_mix_fit(meta_for(genres=("Polka",)), guidance, []).score == 1.0
        assert calculate_genre_mix_fit(meta_for(), None, []).score == 1.0


# =============================================================================
# Diversity
# =============================================================================

class TestDiversityScore:

    def test_album_and_artist_repeats(self, meta_for):
        state = SelectionState()
        for i in range(2):
            meta = meta_for(f"a{i}", artist="Band", album="Record")
            state.record(meta, 200)
        candidate = meta_for("c", artist="Band", album="Record")
        result = calculate_diversity(candidate, state, DiversityRules(), EngineConfig())
        assert result.score == 0.5
        assert len(result.reasons) == 2

    def test_decade_dominance(self, meta_for):
        state = SelectionState()
        for i in range(4):
            state.record(meta_for(f"d{i}", artist=f"Artist {i}", year=1990 + i), 200)
        candidate = meta_for("c", artist="Someone Else", year=1995)
        result = calculate_diversity(candidate, state, DiversityRules(), EngineConfig())
        assert result.score == 0.7

    def test_fresh_candidate(self, meta_for):
        result = calculate_diversity(meta_for(), SelectionState(), DiversityRules(), EngineConfig())
        assert result.score == 1.0
        assert result.reasons[0].explanation == "Adds variety"


# =============================================================================
# Section / duration / suggestions
# =============================================================================

class TestSectionAlignment:

    def test_tempo_only(self, meta_for):
        section = OrderingSection("peak", 0.2, 0.8, tempo_target="fast")
        assert calculate_section_alignment(meta_for(bpm=150), section).score == 1.0
        assert calculate_section_alignment(meta_for(bpm=70), section).score == 0.2

    def test_unknown_energy_is_neutral(self, meta_for):
        section = OrderingSection("peak", 0.2, 0.8, tempo_target="fast", energy_level="high")
        assert calculate_section_alignment(meta_for(bpm=150), section, energy=None).score == 0.75

    def test_energy_match(self, meta_for):
        section = OrderingSection("cooldown", 0.8, 1.0, energy_level="low")
        assert calculate_section_alignment(meta_for(), section, energy="low").score == 1.0
        assert calculate_section_alignment(meta_for(), section, energy="high").score == 0.2

    def test_no_section(self, meta_for):
        assert calculate_section_alignment(meta_for(), None).score == 1.0


class TestDurationFit:

    def test_exact_fit(self, meta_for):
        assert calculate_duration_fit(meta_for(duration_seconds=300), remaining_seconds=600, remaining_slots=2).score == 1.0

    def test_half_target_scores_zero(self, meta_for):
        assert calculate_duration_fit(meta_for(duration_seconds=150), remaining_seconds=600, remaining_slots=2).score == 0.0

    def test_nothing_remaining(self, meta_for):
        assert calculate_duration_fit(meta_for(), remaining_seconds=0, remaining_slots=1).score == 0.0


class TestSuggestions:

    def test_bonuses_stack(self, meta_for):
        request = PlaylistRequest(
            suggested_artists=("artist a",),
            suggested_albums=("THE ALBUM",),
            suggested_tracks=("Night Drive",),
        )
        context = ScoringContext.build(request, PlaylistStrategy(title="t"), EngineConfig())
        meta = meta_for(artist="Artist A", album="The Album", title="Night Drive")
        assert suggestion_bonus(meta, context).score == 1.1
        assert suggestion_bonus(meta_for(artist="Other", title="Other"), context).score == 0.0


# =============================================================================
# Combination
# =============================================================================

class TestScoreCandidate:

    def test_components_tracks_mode(self, meta_for):
        request = PlaylistRequest(genres=("Rock",), length=LengthSpec("tracks", 10))
        context = ScoringContext.build(request, PlaylistStrategy(title="t"), EngineConfig())
        score = score_candidate(meta_for(genres=("Rock",)), context, SelectionState())
        assert set(score.components) == {"genre", "tempo", "mood", "activity", "diversity", "section"}
        # every criterion is perfect: weighted sum 1.0 plus the section term 0.2
        assert score.total == pytest.approx(1.2)

    def test_duration_component_in_minutes_mode(self, meta_for):
        request = PlaylistRequest(length=LengthSpec("minutes", 30))
        context = ScoringContext.build(request, PlaylistStrategy(title="t"), EngineConfig(), target_tracks=10)
        score = score_candidate(meta_for(duration_seconds=180), context, SelectionState())
        assert score.components["duration"] == 1.0

    def test_suggestion_raises_total(self, meta_for):
        strategy = PlaylistStrategy(title="t")
        plain = ScoringContext.build(PlaylistRequest(), strategy, EngineConfig())
        suggested = ScoringContext.build(PlaylistRequest(suggested_artists=("Artist",)), strategy, EngineConfig())
        meta = meta_for()
        base = score_candidate(meta, plain, SelectionState()).total
        boosted = score_candidate(meta, suggested, SelectionState())
        assert boosted.total == pytest.approx(base + 0.3)
        assert boosted.components["suggestion"] == 0.3
