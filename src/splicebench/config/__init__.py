"""Splicebench configuration module."""

from .loader import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
    build_config,
    load_config,
    save_config,
)
from .scale import SCALE_PROFILES, SUPPORTED_SCALES, TPCH_TABLES, ScaleProfile, get_profile
from .schema import BenchmarkType, LoadMode, QuerySet, RunConfig

__all__ = [
    # Config classes
    "RunConfig",
    # Scale
    "ScaleProfile",
    "SCALE_PROFILES",
    "SUPPORTED_SCALES",
    "TPCH_TABLES",
    "get_profile",
    # Enums
    "BenchmarkType",
    "LoadMode",
    "QuerySet",
    # Loader functions
    "build_config",
    "load_config",
    "save_config",
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "ConfigValidationError",
]
