"""
Configuration management for the TrueAudio engine.

Loads configuration from YAML files with environment variable
interpolation, and validates the analysis and batch sections into typed,
immutable option records.
"""

import math
import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from trueaudio.utils.errors import ConfigurationError

MIN_TRANSFORM_SIZE = 256
MAX_TRANSFORM_SIZE = 32768


class ConfigManager:
    """
    Manages application configuration loaded from YAML files.

    Features:
    - YAML configuration loading
    - Environment variable interpolation (${VAR_NAME})
    - Nested key access with dot notation
    - Default value support
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration manager.

        Args:
            config_dict: Optional pre-loaded configuration dictionary
        """
        self._config: Dict[str, Any] = config_dict or {}
        self._env_pattern = re.compile(r'\$\{([^}]+)\}')

    @classmethod
    def from_file(cls, file_path: Path) -> "ConfigManager":
        """
        Create ConfigManager from YAML file.

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                config_key=str(file_path)
            )

        try:
            with open(file_path, 'r') as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}",
                config_key=str(file_path)
            ) from e

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping: {file_path}",
                config_key=str(file_path)
            )

        manager = cls(config_dict)
        manager._interpolate_env_vars()
        return manager

    def _interpolate_env_vars(self) -> None:
        """Replace ${ENV_VAR} patterns with environment variable values."""
        self._config = self._interpolate(self._config)

    def _interpolate(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: self._interpolate(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._interpolate(v) for v in value]
        if isinstance(value, str):
            return self._interpolate_string(value)
        return value

    def _interpolate_string(self, s: str) -> Any:
        """Replace ${ENV_VAR} with environment variable value."""
        def replace(match: re.Match) -> str:
            value = os.environ.get(match.group(1))
            if value is None:
                return match.group(0)  # Keep original if not found
            return value

        result = self._env_pattern.sub(replace, s)
        # A whole-value substitution may carry a YAML scalar (e.g. "4096")
        if result != s and self._env_pattern.fullmatch(s):
            return yaml.safe_load(result)
        return result

    def get(
        self,
        key: str,
        default: Any = None,
        required: bool = False
    ) -> Any:
        """
        Get configuration value using dot notation.

        Example:
            config.get("analysis.transform_size", default=4096)
            config.get("batch.concurrency_limit", required=True)
        """
        value: Any = self._config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                if required:
                    raise ConfigurationError(
                        f"Required configuration key not found: {key}",
                        config_key=key
                    )
                return default

        return value

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return self._config.copy()


def _check_known_keys(section: str, options: Dict[str, Any], known: set) -> None:
    if not isinstance(options, dict):
        raise ConfigurationError(
            f"Configuration section '{section}' must be a mapping",
            config_key=section
        )
    unknown = sorted(set(options) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown {section} option(s): {', '.join(unknown)}. "
            f"Valid options: {', '.join(sorted(known))}",
            config_key=f"{section}.{unknown[0]}"
        )


@dataclass(frozen=True)
class EngineConfig:
    """
    Validated options for a single analysis.

    Attributes:
        transform_size: FFT size, a power of two >= 256
        cutoff_threshold_db: Energy threshold used for cutoff detection
        analysis_duration: Seconds of audio analysed around the midpoint
        smoothing: Frame-to-frame smoothing time constant
    """

    transform_size: int = 4096
    cutoff_threshold_db: float = -80.0
    analysis_duration: float = 2.0
    smoothing: float = 0.8

    def __post_init__(self) -> None:
        """Validate fields."""
        size = self.transform_size
        if (
            isinstance(size, bool)
            or not isinstance(size, int)
            or size < MIN_TRANSFORM_SIZE
            or size > MAX_TRANSFORM_SIZE
            or size & (size - 1)
        ):
            raise ConfigurationError(
                f"transform_size must be a power of two in "
                f"[{MIN_TRANSFORM_SIZE}, {MAX_TRANSFORM_SIZE}], got {size!r}",
                config_key="analysis.transform_size"
            )
        threshold = _as_float(self.cutoff_threshold_db, "analysis.cutoff_threshold_db")
        if not math.isfinite(threshold) or threshold >= 0:
            raise ConfigurationError(
                f"cutoff_threshold_db must be a finite negative dB value, got {threshold!r}",
                config_key="analysis.cutoff_threshold_db"
            )
        duration = _as_float(self.analysis_duration, "analysis.analysis_duration")
        if not math.isfinite(duration) or duration <= 0:
            raise ConfigurationError(
                f"analysis_duration must be positive, got {duration!r}",
                config_key="analysis.analysis_duration"
            )
        smoothing = _as_float(self.smoothing, "analysis.smoothing")
        if not 0.0 <= smoothing < 1.0:
            raise ConfigurationError(
                f"smoothing must be in [0, 1), got {smoothing!r}",
                config_key="analysis.smoothing"
            )
        object.__setattr__(self, "cutoff_threshold_db", threshold)
        object.__setattr__(self, "analysis_duration", duration)
        object.__setattr__(self, "smoothing", smoothing)

    @classmethod
    def from_dict(cls, options: Optional[Dict[str, Any]] = None) -> "EngineConfig":
        """
        Build from the ``analysis`` config section.

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        options = options or {}
        _check_known_keys("analysis", options, {f.name for f in fields(cls)})
        return cls(**options)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class BatchConfig:
    """Validated options for the batch scheduler."""

    concurrency_limit: int = 2
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate fields."""
        validate_concurrency_limit(self.concurrency_limit)
        if self.max_workers is not None and (
            isinstance(self.max_workers, bool)
            or not isinstance(self.max_workers, int)
            or self.max_workers < 1
        ):
            raise ConfigurationError(
                f"max_workers must be a positive integer, got {self.max_workers!r}",
                config_key="batch.max_workers"
            )

    @classmethod
    def from_dict(cls, options: Optional[Dict[str, Any]] = None) -> "BatchConfig":
        """Build from the ``batch`` config section."""
        options = options or {}
        _check_known_keys("batch", options, {f.name for f in fields(cls)})
        return cls(**options)


def validate_concurrency_limit(limit: Any) -> int:
    """Validate a concurrency limit is an integer >= 1."""
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ConfigurationError(
            f"concurrency_limit must be an integer >= 1, got {limit!r}",
            config_key="batch.concurrency_limit"
        )
    return limit


def _as_float(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(
            f"{key} must be a number, got {value!r}",
            config_key=key
        )
    return float(value)


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file or return defaults.

    Args:
        config_path: Optional path to config file.
                    If None, tries "config/config.yaml"

    Returns:
        Dict[str, Any]: Configuration dictionary, file values layered
        over the defaults section by section
    """
    if config_path is None:
        default_paths = [
            Path("config/config.yaml"),
            Path("config.yaml"),
        ]

        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break

    config = get_default_config()

    if config_path is None:
        return config

    loaded = ConfigManager.from_file(Path(config_path)).to_dict()
    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section] = {**config[section], **values}
        else:
            config[section] = values
    return config


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "analysis": EngineConfig().to_dict(),
        "batch": {
            "concurrency_limit": 2,
            "max_workers": None,
        },
        "audio": {
            "max_file_size": 524288000,  # 500 MB
        },
        "logging": {
            "level": "INFO",
            "format": "json",
            "file": None,
        },
    }
