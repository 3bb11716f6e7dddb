"""
stock_config -- typed engine configuration.

Responsibility:
    Parses YAML engine settings (database, logging, receiving policy,
    low-stock threshold) into frozen dataclasses with environment
    overrides.  The kernel never imports this package; the service layer
    hands the parsed values down.
"""

from stock_config.loader import load_config, parse_config
from stock_config.schema import DatabaseSettings, EngineConfig, LoggingSettings

__all__ = [
    "DatabaseSettings",
    "EngineConfig",
    "LoggingSettings",
    "load_config",
    "parse_config",
]
