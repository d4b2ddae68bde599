"""
Utility modules for configuration, logging, and error handling.
"""

from trueaudio.utils.errors import (
    AnalysisError,
    InsufficientDataError,
    DecodeError,
    ConfigurationError,
)
from trueaudio.utils.logging import get_logger, setup_logging, JSONFormatter
from trueaudio.utils.config import (
    BatchConfig,
    ConfigManager,
    EngineConfig,
    load_config,
)

__all__ = [
    "AnalysisError",
    "InsufficientDataError",
    "DecodeError",
    "ConfigurationError",
    "get_logger",
    "setup_logging",
    "JSONFormatter",
    "ConfigManager",
    "EngineConfig",
    "BatchConfig",
    "load_config",
]
