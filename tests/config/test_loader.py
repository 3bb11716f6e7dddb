"""Tests for stock_config: schema validation, YAML loading, env overrides."""

import logging
from decimal import Decimal

import pytest
import yaml

from stock_config import DatabaseSettings, EngineConfig, LoggingSettings, load_config, parse_config
from stock_config.loader import apply_env_overrides, load_yaml_file
from stock_config.schema import DEFAULT_DATABASE_URL


class TestSchema:

    def test_defaults(self):
        config = EngineConfig()
        assert config.database.url == DEFAULT_DATABASE_URL
        assert config.database.pool_size == 5
        assert config.logging.level == "INFO"
        assert config.default_low_stock_threshold == Decimal("100")
        assert config.receiving == {}

    @pytest.mark.parametrize(
        "kwargs",
        [{"url": ""}, {"pool_size": 0}, {"max_overflow": -1}, {"pool_timeout": 0}],
    )
    def test_invalid_database_settings(self, kwargs):
        with pytest.raises(ValueError):
            DatabaseSettings(**kwargs)

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            LoggingSettings(level="CHATTY")

    def test_level_number(self):
        assert LoggingSettings(level="debug").level_number == logging.DEBUG

    def test_negative_threshold(self):
        with pytest.raises(ValueError):
            EngineConfig(default_low_stock_threshold=Decimal("-1"))


class TestParse:

    def test_full_document(self):
        config = parse_config(
            {
                "database": {"url": "sqlite://", "echo": True},
                "logging": {"level": "DEBUG"},
                "default_low_stock_threshold": 12.5,
                "receiving": {"missing_standard_policy": "pass"},
            }
        )
        assert config.database.url == "sqlite://"
        assert config.database.echo is True
        assert config.logging.level == "DEBUG"
        assert config.default_low_stock_threshold == Decimal("12.5")
        assert config.receiving == {"missing_standard_policy": "pass"}

    def test_empty_document_uses_defaults(self):
        assert parse_config({}) == EngineConfig()

    @pytest.mark.parametrize(
        "data",
        [
            {"databse": {}},
            {"database": {"host": "db"}},
            {"logging": {"format": "json"}},
            {"receiving": ["skip"]},
        ],
    )
    def test_unknown_or_malformed_sections(self, data):
        with pytest.raises(ValueError):
            parse_config(data)


class TestLoad:

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(
            "database:\n"
            "  url: postgresql://stock:secret@db:5432/stock\n"
            "  pool_size: 8\n"
            "default_low_stock_threshold: 50\n"
        )
        config = load_config(path, environ={})
        assert config.database.pool_size == 8
        assert config.default_low_stock_threshold == Decimal("50")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml", environ={})

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("database: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_yaml_file(path)

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_yaml_file(path)

    def test_no_path_gives_defaults(self):
        assert load_config(environ={}) == EngineConfig()

    def test_load_is_logged(self, captured_logs):
        load_config(environ={})
        messages = [r["message"] for r in captured_logs()]
        assert any(m.startswith("STOCK_CONFIG_LOADED source=<defaults>") for m in messages)


class TestEnvOverrides:

    def test_env_wins_over_file(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("logging:\n  level: INFO\n")
        config = load_config(
            path,
            environ={"STOCK_DATABASE_URL": "sqlite://", "STOCK_LOG_LEVEL": "ERROR"},
        )
        assert config.database.url == "sqlite://"
        assert config.logging.level == "ERROR"

    def test_override_keeps_other_database_settings(self):
        base = parse_config({"database": {"pool_size": 9}})
        config = apply_env_overrides(base, {"STOCK_DATABASE_URL": "sqlite://"})
        assert config.database.pool_size == 9

    def test_invalid_env_level(self):
        with pytest.raises(ValueError):
            apply_env_overrides(EngineConfig(), {"STOCK_LOG_LEVEL": "LOUD"})
