"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Loads an engine YAML document and parses it into the frozen
``stock_config.schema`` types, applying environment overrides last.

Architecture position
---------------------
**Config layer**.  No dependency on kernel, modules or services.

Invariants enforced
-------------------
* Missing keys fall back to the documented defaults.
* Unknown keys raise ``ValueError``; a misspelt setting is never ignored.
* ``STOCK_DATABASE_URL`` and ``STOCK_LOG_LEVEL`` override the file.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import fields, replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping

import yaml

from stock_config.schema import DatabaseSettings, EngineConfig, LoggingSettings

_logger = logging.getLogger("stock_kernel.config")

ENV_DATABASE_URL = "STOCK_DATABASE_URL"
ENV_LOG_LEVEL = "STOCK_LOG_LEVEL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _check_keys(section: str, data: Mapping[str, Any], allowed: set[str]) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"Unknown {section} keys: {', '.join(unknown)}")


def _field_names(cls) -> set[str]:
    return {f.name for f in fields(cls)}


def parse_config(data: Mapping[str, Any]) -> EngineConfig:
    """Parse an ``EngineConfig`` from a dict."""
    _check_keys("top-level", data, _field_names(EngineConfig))

    db_data = data.get("database") or {}
    _check_keys("database", db_data, _field_names(DatabaseSettings))
    log_data = data.get("logging") or {}
    _check_keys("logging", log_data, _field_names(LoggingSettings))

    receiving = data.get("receiving") or {}
    if not isinstance(receiving, dict):
        raise ValueError("receiving must be a mapping")

    kwargs: dict[str, Any] = {
        "database": DatabaseSettings(**db_data),
        "logging": LoggingSettings(**log_data),
        "receiving": dict(receiving),
    }
    if data.get("default_low_stock_threshold") is not None:
        kwargs["default_low_stock_threshold"] = Decimal(
            str(data["default_low_stock_threshold"])
        )
    return EngineConfig(**kwargs)


def apply_env_overrides(
    config: EngineConfig, environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """Return ``config`` with ``STOCK_*`` environment overrides applied."""
    env = os.environ if environ is None else environ

    url = env.get(ENV_DATABASE_URL)
    if url:
        config = replace(config, database=replace(config.database, url=url))
    level = env.get(ENV_LOG_LEVEL)
    if level:
        config = replace(config, logging=LoggingSettings(level=level))
    return config


def load_config(
    path: Path | str | None = None, environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """
    Load engine configuration.

    With no path the documented defaults are used; environment overrides
    apply either way.
    """
    data = load_yaml_file(Path(path)) if path is not None else {}
    config = apply_env_overrides(parse_config(data), environ)
    _logger.info(
        "STOCK_CONFIG_LOADED source=%s log_level=%s low_stock_threshold=%s",
        path or "<defaults>",
        config.logging.level,
        config.default_low_stock_threshold,
    )
    return config
