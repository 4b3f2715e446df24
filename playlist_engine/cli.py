"""
Command-line entrypoint.

    playlist-engine --library library.json --request request.yaml --output playlist.json

Exit codes: 0 on success (an under-filled playlist included), 1 when an
input file cannot be read, 2 for an invalid request.
"""
import argparse
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Any, List, Optional

import yaml

from playlist_engine.config_loader import Config
from playlist_engine.genre.similarity import load_taxonomy_overrides
from playlist_engine.logging_utils import (
    RunSummary,
    add_logging_args,
    configure_logging,
    format_count,
    resolve_log_level,
)
from playlist_engine.playlist.config import default_engine_config
from playlist_engine.playlist.errors import ValidationError
from playlist_engine.playlist.generator import generate_playlist
from playlist_engine.playlist.request import PlaylistRequest
from playlist_engine.tracks import load_tracks

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playlist-engine",
        description="Generate a playlist from a track library and a request",
    )
    parser.add_argument('--library', required=True, metavar='PATH',
                        help='JSON (or YAML) list of track records')
    parser.add_argument('--request', required=True, metavar='PATH',
                        help='Playlist request as JSON or YAML')
    parser.add_argument('--config', metavar='PATH', help='Engine config.yaml')
    parser.add_argument('--output', metavar='PATH', help='Write playlist JSON here (default: stdout)')
    parser.add_argument('--seed', type=int, help='Random seed for surprise > 0')
    parser.add_argument('--library-root', metavar='PATH',
                        help='Library identity used for tag caching and playlist ids')
    add_logging_args(parser)
    return parser


def _load_structured(path: str) -> Any:
    """Parse a JSON or YAML file (by extension; YAML otherwise)."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with open(file_path, 'r', encoding='utf-8') as f:
        if file_path.suffix.lower() == '.json':
            return json.load(f)
        return yaml.safe_load(f)


def _track_records(data: Any) -> List[dict]:
    if isinstance(data, dict) and isinstance(data.get('tracks'), list):
        return data['tracks']
    if isinstance(data, list):
        return data
    raise ValueError("Library must be a list of track records or a mapping with a 'tracks' list")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(
        level=resolve_log_level(args),
        log_file=args.log_file,
        run_id=uuid.uuid4().hex[:8],
        show_run_id=args.show_run_id,
    )

    summary = RunSummary("Playlist generation", logger)
    try:
        config = Config(args.config) if args.config else None
        engine_config = config.engine_config() if config is not None else default_engine_config()
        taxonomy = None
        if config is not None and config.taxonomy_overrides_path:
            taxonomy = load_taxonomy_overrides(config.taxonomy_overrides_path)

        tracks = load_tracks(_track_records(_load_structured(args.library)))
        raw_request = _load_structured(args.request)
    except (FileNotFoundError, ValueError, yaml.YAMLError, json.JSONDecodeError) as exc:
        logger.error("Could not load inputs: %s", exc)
        return 1

    if not isinstance(raw_request, dict):
        logger.error("Request must be a mapping, got %s", type(raw_request).__name__)
        return 2
    if args.seed is not None:
        raw_request['seed'] = args.seed
    if config is not None and raw_request.get('surprise') is None:
        raw_request['surprise'] = config.default_surprise

    try:
        request = PlaylistRequest.from_dict(raw_request)
        result = generate_playlist(
            tracks=tracks,
            request=request,
            config=engine_config,
            library_root=args.library_root,
            taxonomy=taxonomy,
        )
    except ValidationError as exc:
        logger.error("Invalid request: %s", exc)
        return 2

    payload = json.dumps(result.to_dict(), indent=2, default=str)
    if args.output:
        Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        Path(args.output).write_text(payload + "\n", encoding='utf-8')
        logger.info("Wrote playlist to %s", args.output)
    else:
        sys.stdout.write(payload + "\n")

    summary.add("library", format_count(len(tracks), "track"))
    summary.add("selected", format_count(len(result.track_ids), "track"))
    summary.add("under_filled", str(result.under_filled))
    summary.add("strategy", "fallback" if result.strategy.fallback_used else "external")
    summary.log()
    return 0


if __name__ == "__main__":
    sys.exit(main())
