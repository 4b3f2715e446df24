"""
Logging setup for the playlist engine.

Entrypoints call configure_logging() once; library modules only create
module loggers with logging.getLogger(__name__).
"""
import logging
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

_logging_configured = False
_run_id: Optional[str] = None
_HANDLER_TAG = "_playlist_engine_handler"
_CONSOLE_FMT = '%(asctime)s | %(levelname)-5s | %(name)s | %(message)s'
_CONSOLE_FMT_RUN_ID = '%(asctime)s | %(levelname)-5s | %(name)s | run_id=%(run_id)s | %(message)s'
_FILE_FMT = '%(asctime)s | %(levelname)-5s | %(name)s | %(funcName)s:%(lineno)d | run_id=%(run_id)s | %(message)s'


class RunIdFilter(logging.Filter):
    """Attach the current run_id to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _run_id or "-"
        return True


def set_run_id(run_id: Optional[str]) -> None:
    global _run_id
    _run_id = run_id


def get_run_id() -> Optional[str]:
    return _run_id


def configure_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    file_level: str = 'DEBUG',
    force: bool = False,
    run_id: Optional[str] = None,
    console: bool = True,
    show_run_id: bool = False,
) -> None:
    """
    Install console (stderr) and optional file handlers on the root logger.

    Repeated calls are no-ops unless force=True; reconfiguring removes only
    the handlers installed here.

    Args:
        level: Console level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path (parent directories are created)
        file_level: File handler level
        force: Reconfigure even if already configured
        run_id: Identifier injected into every record
        console: Install the console handler
        show_run_id: Include run_id in console lines (always on at DEBUG)

    Environment overrides:
        LOG_LEVEL: replaces ``level``
        LOG_FILE: used when ``log_file`` is not given
    """
    global _logging_configured

    if run_id:
        set_run_id(run_id)

    if _logging_configured and not force:
        return

    level = os.getenv('LOG_LEVEL', level).upper()
    if log_file is None:
        log_file = os.getenv('LOG_FILE')

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for handler in root.handlers[:]:
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)

    root.filters = [f for f in root.filters if not isinstance(f, RunIdFilter)]
    root.addFilter(RunIdFilter())

    if console:
        # stderr keeps stdout free for CLI output
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, level, logging.INFO))
        console_handler.setFormatter(logging.Formatter(
            _CONSOLE_FMT_RUN_ID if (show_run_id or level == "DEBUG") else _CONSOLE_FMT,
            datefmt='%H:%M:%S',
        ))
        console_handler.addFilter(RunIdFilter())
        setattr(console_handler, _HANDLER_TAG, True)
        root.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(getattr(logging, file_level.upper(), logging.DEBUG))
        file_handler.setFormatter(logging.Formatter(_FILE_FMT, datefmt='%Y-%m-%d %H:%M:%S'))
        file_handler.addFilter(RunIdFilter())
        setattr(file_handler, _HANDLER_TAG, True)
        root.addHandler(file_handler)

    _logging_configured = True
    logging.getLogger(__name__).debug(
        "Logging configured: level=%s, file=%s, run_id=%s", level, log_file or 'none', _run_id or '-',
    )


@contextmanager
def stage_timer(stage_name: str, logger: Optional[logging.Logger] = None):
    """
    Time a pipeline stage.

    Logs "<stage> starting..." at DEBUG and "<stage> completed in 12ms" at INFO.

    Usage:
        with stage_timer("Candidate pool", logger):
            pool = build_candidate_pool(...)
    """
    log = logger or logging.getLogger(__name__)
    log.debug("%s starting...", stage_name)
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if elapsed < 1:
            log.info("%s completed in %.0fms", stage_name, elapsed * 1000)
        elif elapsed < 60:
            log.info("%s completed in %.1fs", stage_name, elapsed)
        else:
            log.info("%s completed in %dm %.0fs", stage_name, int(elapsed // 60), elapsed % 60)


def format_count(n: int, singular: str, plural: Optional[str] = None) -> str:
    """"1 track" / "5 tracks"."""
    if plural is None:
        plural = singular + 's'
    return f"{n:,} {singular if n == 1 else plural}"


def truncate_list(items: List[Any], max_items: int = 3, format_fn=str) -> str:
    """"rock, pop, jazz (+5 more)"; "(none)" for an empty list."""
    if not items:
        return "(none)"
    result = ', '.join(format_fn(item) for item in items[:max_items])
    if len(items) > max_items:
        result += f" (+{len(items) - max_items} more)"
    return result


def add_logging_args(parser) -> None:
    """Add --log-level/--debug/--quiet/--log-file/--show-run-id to an argparse parser."""
    group = parser.add_argument_group('logging')
    group.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Set logging level (default: INFO)',
    )
    group.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging (shortcut for --log-level DEBUG)',
    )
    group.add_argument(
        '--quiet',
        action='store_true',
        help='Only warnings and errors (shortcut for --log-level WARNING)',
    )
    group.add_argument(
        '--log-file',
        type=str,
        metavar='PATH',
        help='Write logs to file',
    )
    group.add_argument(
        '--show-run-id',
        action='store_true',
        help='Include run_id in console logs (always included in file logs)',
    )


def resolve_log_level(args) -> str:
    """--debug wins over --quiet, which wins over --log-level."""
    if getattr(args, 'debug', False):
        return 'DEBUG'
    if getattr(args, 'quiet', False):
        return 'WARNING'
    return getattr(args, 'log_level', None) or 'INFO'


class RunSummary:
    """
    Collect run metrics and log them as one block at the end.

    Usage:
        summary = RunSummary("Playlist generation")
        summary.add("tracks_selected", 20)
        summary.log()
    """

    def __init__(self, title: str, logger: Optional[logging.Logger] = None):
        self.title = title
        self.logger = logger or logging.getLogger(__name__)
        self.metrics: Dict[str, Union[int, float, str]] = {}
        self.start_time = time.perf_counter()

    def add(self, key: str, value: Union[int, float, str]) -> None:
        self.metrics[key] = value

    def log(self, level: int = logging.INFO) -> None:
        elapsed = time.perf_counter() - self.start_time
        self.logger.log(level, "=" * 60)
        self.logger.log(level, "%s SUMMARY", self.title.upper())
        for key, value in self.metrics.items():
            display_key = key.replace('_', ' ').title()
            if isinstance(value, float):
                self.logger.log(level, "  %s: %.2f", display_key, value)
            else:
                self.logger.log(level, "  %s: %s", display_key, value)
        self.logger.log(level, "  Total Time: %.1fs", elapsed)
        self.logger.log(level, "=" * 60)
