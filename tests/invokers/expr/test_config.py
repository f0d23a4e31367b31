"""
Tests for engine configuration loading.
"""

import json
import logging

import pytest
from pydantic import ValidationError

from invokers.expr import (
    DEFAULT_EXPRESSION_LIMITS,
    ENV_VAR_EXPR_CONFIG,
    EngineConfig,
    ExpressionLimits,
    load_engine_config,
)


class TestEngineConfig:
    """Tests for the configuration model."""

    def test_defaults(self):
        assert EngineConfig().resolve_limits() == DEFAULT_EXPRESSION_LIMITS

    def test_camel_case_overrides(self):
        config = EngineConfig.model_validate(
            {"expressionLimits": {"maxTokenCount": 10, "maxPlaceholders": 5}}
        )
        limits = config.resolve_limits()
        assert limits.max_token_count == 10
        assert limits.max_placeholders == 5
        assert limits.max_recursion_depth == DEFAULT_EXPRESSION_LIMITS.max_recursion_depth

    def test_snake_case_overrides(self):
        config = EngineConfig.model_validate(
            {"expression_limits": {"max_token_count": 10}}
        )
        assert config.resolve_limits().max_token_count == 10

    def test_accepts_limits_instance(self):
        limits = ExpressionLimits(max_parse_depth=7)
        config = EngineConfig(expression_limits=limits)
        assert config.resolve_limits() == limits

    @pytest.mark.parametrize(
        "limits",
        [
            {"maxWidgets": 1},
            {"maxTokenCount": 0},
            {"maxTokenCount": -5},
            {"maxTokenCount": True},
            {"maxTokenCount": "many"},
            ["maxTokenCount"],
        ],
    )
    def test_rejects_invalid_limits(self, limits):
        with pytest.raises(ValidationError):
            EngineConfig.model_validate({"expressionLimits": limits})

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            EngineConfig.model_validate({"cacheSize": 10})


class TestLoadEngineConfig:
    """Tests for loading configuration files."""

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(
            "expressionLimits:\n  maxRecursionDepth: 64\n  cacheCapacity: 500\n",
            encoding="utf-8",
        )
        limits = load_engine_config(path).resolve_limits()
        assert limits.max_recursion_depth == 64
        assert limits.cache_capacity == 500

    def test_loads_json(self, tmp_path):
        path = tmp_path / "engine.json"
        path.write_text(json.dumps({"expressionLimits": {"maxTemplateLength": 100}}))
        config = load_engine_config(str(path))
        assert config.resolve_limits().max_template_length == 100

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "engine.yml"
        path.write_text("expressionLimits:\n  maxArrayIndex: 10\n", encoding="utf-8")
        monkeypatch.setenv(ENV_VAR_EXPR_CONFIG, str(path))
        assert load_engine_config().resolve_limits().max_array_index == 10

    def test_no_path_returns_defaults(self, monkeypatch):
        monkeypatch.delenv(ENV_VAR_EXPR_CONFIG, raising=False)
        assert load_engine_config() == EngineConfig()

    def test_empty_file_returns_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_engine_config(path).resolve_limits() == DEFAULT_EXPRESSION_LIMITS

    def test_rejects_non_mapping_content(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ValueError, match="must be a mapping"):
            load_engine_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_engine_config(tmp_path / "missing.yaml")

    def test_logs_load(self, tmp_path, caplog):
        path = tmp_path / "engine.yaml"
        path.write_text("{}\n", encoding="utf-8")
        with caplog.at_level(logging.INFO, logger="invokers.expr.config"):
            load_engine_config(path)
        record = caplog.records[0]
        assert record.getMessage() == "engine_config_loaded"
        assert record.format == "yaml"
