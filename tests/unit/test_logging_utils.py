"""Tests for logging utilities."""
import argparse
import logging
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(ROOT_DIR))

from playlist_engine.logging_utils import (
    RunSummary,
    add_logging_args,
    format_count,
    resolve_log_level,
    stage_timer,
    truncate_list,
)


class TestStageTimer:
    """Tests for stage_timer context manager."""

    def test_stage_timer_completes_normally(self, caplog):
        test_logger = logging.getLogger('test_stage_timer_norm')
        with caplog.at_level(logging.DEBUG, logger='test_stage_timer_norm'):
            with stage_timer("Test stage", logger=test_logger):
                pass
        messages = [r.getMessage() for r in caplog.records]
        assert "Test stage starting..." in messages
        assert any(m.startswith("Test stage completed in") for m in messages)

    def test_stage_timer_completes_on_exception(self, caplog):
        test_logger = logging.getLogger('test_stage_timer_exc')
        with caplog.at_level(logging.INFO, logger='test_stage_timer_exc'):
            with pytest.raises(RuntimeError):
                with stage_timer("Failing stage", logger=test_logger):
                    raise RuntimeError("boom")
        assert any("Failing stage completed" in r.getMessage() for r in caplog.records)


class TestFormatHelpers:

    def test_format_count(self):
        assert format_count(1, "track") == "1 track"
        assert format_count(1500, "track") == "1,500 tracks"
        assert format_count(2, "genre", "genre list") == "2 genre list"

    def test_truncate_list(self):
        assert truncate_list([]) == "(none)"
        assert truncate_list(["rock", "pop"]) == "rock, pop"
        assert truncate_list(["a", "b", "c", "d", "e"], max_items=3) == "a, b, c (+2 more)"
        assert truncate_list([1, 2], format_fn=lambda n: f"#{n}") == "#1, #2"


class TestLoggingArgs:

    def _parse(self, argv):
        parser = argparse.ArgumentParser()
        add_logging_args(parser)
        return parser.parse_args(argv)

    def test_defaults(self):
        args = self._parse([])
        assert resolve_log_level(args) == 'INFO'
        assert args.log_file is None
        assert args.show_run_id is False

    def test_debug_wins(self):
        assert resolve_log_level(self._parse(['--debug', '--quiet'])) == 'DEBUG'

    def test_quiet(self):
        assert resolve_log_level(self._parse(['--quiet', '--log-level', 'ERROR'])) == 'WARNING'

    def test_explicit_level(self):
        assert resolve_log_level(self._parse(['--log-level', 'ERROR'])) == 'ERROR'


class TestRunSummary:

    def test_logs_metrics(self, caplog):
        summary = RunSummary("Playlist generation", logger=logging.getLogger('test_run_summary'))
        summary.add("tracks_selected", 20)
        summary.add("avg_score", 0.8123)
        with caplog.at_level(logging.INFO, logger='test_run_summary'):
            summary.log()
        messages = [r.getMessage() for r in caplog.records]
        assert "PLAYLIST GENERATION SUMMARY" in messages
        assert "  Tracks Selected: 20" in messages
        assert "  Avg Score: 0.81" in messages
