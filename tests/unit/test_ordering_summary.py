"""Unit tests for energy levels, transition annotation and playlist summaries."""

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from playlist_engine.playlist.assembly import TrackSelection
from playlist_engine.playlist.matching_index import build_matching_index
from playlist_engine.playlist.ordering import (
    annotate_order,
    calculate_transition_score,
    derive_energy_level,
    track_energy_level,
)
from playlist_engine.playlist.strategy import OrderingSection
from playlist_engine.playlist.summary import summarize_playlist


def _pair(make_track, first, second):
    index = build_matching_index([make_track("a", **first), make_track("b", **second)])
    return index.metadata("a"), index.metadata("b")


# =============================================================================
# Energy
# =============================================================================

class TestEnergyLevel:

    @pytest.mark.parametrize("moods,activities,expected", [
        (["Energetic", "Upbeat"], [], "high"),
        ([], ["Workout", "Running"], "high"),
        (["Calm"], ["Sleep"], "low"),
        (["Energetic"], ["Sleep"], "medium"),
        (["Happy"], [], "medium"),
    ])
    def test_derive(self, moods, activities, expected):
        assert derive_energy_level(moods, activities) == expected

    def test_no_signal(self, make_track):
        meta = build_matching_index([make_track("a", genres=("Rock",), bpm=None)]).metadata("a")
        assert track_energy_level(meta) is None

    def test_explicit_tags(self, make_track):
        meta = build_matching_index([make_track("a", mood=("calm", "relaxed"))]).metadata("a")
        assert track_energy_level(meta) == "low"

    def test_inferred_from_bpm(self, make_track):
        meta = build_matching_index([make_track("a", genres=("Rock",), bpm=150)]).metadata("a")
        assert track_energy_level(meta) == "high"


# =============================================================================
# Transitions
# =============================================================================

class TestTransitionScore:

    def test_first_track_is_neutral(self, make_track):
        current, _ = _pair(make_track, {}, {})
        assert calculate_transition_score(current, None) == 1.0

    def test_smooth_transition(self, make_track):
        previous, current = _pair(
            make_track,
            {"artist": "X", "bpm": 120, "year": 2000},
            {"artist": "Y", "bpm": 150, "year": 2002},
        )
        # shared genre, adjacent tempo, close years
        assert calculate_transition_score(current, previous) == 1.386

    def test_same_artist_and_album(self, make_track):
        previous, current = _pair(
            make_track,
            {"artist": "X", "album": "One"},
            {"artist": "X", "album": "One"},
        )
        assert calculate_transition_score(current, previous) == 0.1386

    def test_rough_transition(self, make_track):
        previous, current = _pair(
            make_track,
            {"artist": "X", "genres": ("Rock",), "bpm": 70, "year": 1970},
            {"artist": "Y", "genres": ("Jazz",), "bpm": 150, "year": 2000},
        )
        assert calculate_transition_score(current, previous) == 0.684

    def test_shared_tags(self, make_track):
        previous, current = _pair(
            make_track,
            {"artist": "X", "mood": ("happy",)},
            {"artist": "Y", "mood": ("happy",)},
        )
        assert calculate_transition_score(current, previous) == 1.4553


class TestAnnotateOrder:

    SECTIONS = (OrderingSection("warmup", 0.0, 0.5), OrderingSection("close", 0.5, 1.0))

    def test_annotations(self, make_track):
        index = build_matching_index([
            make_track("a", artist="X"),
            make_track("b", artist="Y"),
        ])
        selections = [
            TrackSelection(track_id="a", position=0, score=1.0, section="warmup"),
            TrackSelection(track_id="b", position=1, score=0.9, section="close"),
        ]
        ordered = annotate_order(selections, self.SECTIONS, index)
        assert [t.position for t in ordered] == [0, 1]
        assert [t.section for t in ordered] == ["warmup", "close"]
        assert ordered[0].transition_score == 1.0
        assert ordered[1].transition_score > 1.0

    def test_missing_section_resolved_by_position(self, make_track):
        index = build_matching_index([make_track("a", artist="X"), make_track("b", artist="Y")])
        selections = [SimpleNamespace(track_id="a"), SimpleNamespace(track_id="b")]
        ordered = annotate_order(selections, self.SECTIONS, index)
        assert [t.section for t in ordered] == ["warmup", "close"]
        assert ordered[0].reasons == ()

    def test_empty(self):
        assert annotate_order([], self.SECTIONS, build_matching_index([])) == []


# =============================================================================
# Summary
# =============================================================================

class TestSummary:

    @pytest.fixture()
    def index(self, make_track):
        return build_matching_index([
            make_track("a", artist="X", genres=("Rock",), duration_seconds=100, bpm=80),
            make_track("b", artist="X", genres=("Rock", "Pop"), duration_seconds=200, bpm=120),
            make_track("c", artist="Y", genres=("Jazz",), duration_seconds=None, bpm=None),
        ])

    def test_statistics(self, index):
        summary = summarize_playlist(["a", "b", "c"], index)
        assert summary.track_count == 3
        assert summary.total_duration == 300.0
        assert summary.avg_duration == 150.0
        assert summary.min_duration == 100
        assert summary.max_duration == 200
        assert summary.genre_mix == {"Rock": 2, "Pop": 1, "Jazz": 1}
        assert summary.tempo_mix == {"slow": 1, "medium": 1, "unknown": 1}
        assert summary.artist_mix == {"X": 2, "Y": 1}

    def test_accepts_selections(self, index):
        selections = [TrackSelection(track_id="a", position=0, score=1.0, section="peak")]
        assert summarize_playlist(selections, index).track_count == 1

    def test_no_durations(self, index):
        summary = summarize_playlist(["c"], index)
        assert summary.total_duration == 0.0
        assert summary.avg_duration is None
        assert summary.min_duration is None

    def test_to_dict_keys(self, index):
        data = summarize_playlist(["a"], index).to_dict()
        assert set(data) == {
            "trackCount", "genreMix", "tempoMix", "artistMix",
            "totalDuration", "avgDuration", "minDuration", "maxDuration",
        }
