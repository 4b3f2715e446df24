"""Test configuration and fixtures."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from playlist_engine.tracks import EnhancedMetadata, Track

DAY_MS = 24 * 60 * 60 * 1000
NOW_MS = 1_750_000_000_000

GENRE_CYCLE = [
    ("Rock",),
    ("Pop",),
    ("Jazz",),
    ("Electronic",),
    ("Hip-Hop",),
    ("Rock, Pop",),
]


def _make_track(track_id, **kwargs) -> Track:
    """Track with sensible defaults; ``mood``/``activity`` become enhanced tags."""
    mood = kwargs.pop("mood", ())
    activity = kwargs.pop("activity", ())
    genres = kwargs.pop("genres", ("Rock",))
    if isinstance(genres, str):
        genres = (genres,)
    fields = {
        "title": f"Song {track_id}",
        "artist": "Artist",
        "album": "",
        "year": 2000,
        "duration_seconds": 200.0,
        "bpm": 120.0,
    }
    fields.update(kwargs)
    enhanced = None
    if mood or activity:
        enhanced = EnhancedMetadata(mood=tuple(mood), activity=tuple(activity))
    return Track(id=str(track_id), genres=tuple(genres), enhanced=enhanced, **fields)


def build_library(n: int = 60, seed: int = 7):
    """Synthetic library: 7 artists, cycling genres, seeded BPM/duration/year."""
    rng = np.random.default_rng(seed)
    bpms = rng.integers(70, 170, size=n)
    durations = rng.integers(150, 330, size=n)
    years = rng.integers(1970, 2024, size=n)
    tracks = []
    for i in range(n):
        tracks.append(Track(
            id=f"t{i:03d}",
            title=f"Song {i}",
            artist=f"Artist {i % 7}",
            album=f"Album {i % 7}-{i % 3}",
            genres=GENRE_CYCLE[i % len(GENRE_CYCLE)],
            year=int(years[i]),
            duration_seconds=float(durations[i]),
            bpm=float(bpms[i]),
            added_at=NOW_MS - i * DAY_MS,
        ))
    return tracks


@pytest.fixture()
def make_track():
    return _make_track


@pytest.fixture()
def library():
    return build_library()


@pytest.fixture()
def large_library():
    return build_library(n=100, seed=11)


@pytest.fixture()
def rng():
    return np.random.default_rng(42)


@pytest.fixture()
def now_ms():
    return NOW_MS
