"""
Configuration Loader - YAML configuration with environment overrides
"""
import os
from typing import Any, Dict, Optional

import yaml

from playlist_engine.playlist.config import EngineConfig, default_engine_config

_NUMERIC_ENGINE_KEYS = (
    'max_top_k',
    'section_alignment_weight',
    'duration_fit_weight',
    'default_track_seconds',
    'duration_tolerance',
    'inference_timeout',
    'inference_max_failures',
    'similar_genre_limit',
)


class Config:
    """Configuration manager for the playlist engine"""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = config_path
        self.config = self._load_config()
        self._validate_config()

    def _load_config(self) -> dict:
        """Load configuration from YAML file"""
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.config_path} must contain a mapping at the top level")
        return data

    def _validate_config(self):
        """Validate value types and ranges"""
        for section in ('logging', 'engine', 'requests', 'genres'):
            value = self.config.get(section)
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"Configuration section '{section}' must be a mapping")

        engine = self.config.get('engine') or {}
        for key in _NUMERIC_ENGINE_KEYS:
            if key in engine and (isinstance(engine[key], bool) or not isinstance(engine[key], (int, float))):
                raise ValueError(f"engine.{key} must be numeric, got {engine[key]!r}")
        if 'max_top_k' in engine and engine['max_top_k'] < 1:
            raise ValueError(f"engine.max_top_k must be >= 1, got {engine['max_top_k']}")

        surprise = self.get('requests', 'default_surprise')
        if surprise is not None:
            if isinstance(surprise, bool) or not isinstance(surprise, (int, float)) or not 0 <= surprise <= 1:
                raise ValueError(f"requests.default_surprise must be in [0, 1], got {surprise!r}")

        # Surface unknown engine keys and bad ranges now rather than at generation time
        self.engine_config()

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get configuration value

        Args:
            section: Configuration section
            key: Configuration key
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        if section not in self.config or not isinstance(self.config[section], dict):
            return default
        return self.config[section].get(key, default)

    def engine_config(self) -> EngineConfig:
        """EngineConfig with the ``engine`` section applied over the defaults"""
        overrides: Dict[str, Any] = dict(self.config.get('engine') or {})
        return default_engine_config(overrides=overrides)

    @property
    def log_level(self) -> str:
        return str(self.get('logging', 'level', 'INFO')).upper()

    @property
    def log_file(self) -> Optional[str]:
        return os.getenv('LOG_FILE') or self.get('logging', 'file')

    @property
    def default_surprise(self) -> float:
        return float(self.get('requests', 'default_surprise', 0.5))

    @property
    def max_top_k(self) -> int:
        return self.engine_config().max_top_k

    @property
    def section_alignment_weight(self) -> float:
        return self.engine_config().section_alignment_weight

    @property
    def duration_fit_weight(self) -> float:
        return self.engine_config().duration_fit_weight

    @property
    def default_track_seconds(self) -> float:
        return self.engine_config().default_track_seconds

    @property
    def duration_tolerance(self) -> float:
        return self.engine_config().duration_tolerance

    @property
    def inference_timeout(self) -> float:
        return self.engine_config().inference_timeout

    @property
    def inference_max_failures(self) -> int:
        return self.engine_config().inference_max_failures

    @property
    def similar_genre_limit(self) -> int:
        return self.engine_config().similar_genre_limit

    @property
    def taxonomy_overrides_path(self) -> Optional[str]:
        """Optional YAML file of extra genre taxonomy entries"""
        return self.get('genres', 'taxonomy_overrides')
