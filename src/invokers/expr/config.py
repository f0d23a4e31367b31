"""
Engine configuration.

An ``EngineConfig`` can be built in code, from a mapping (snake_case or
camelCase keys), or from a YAML/JSON file. The file path falls back to the
``INVOKERS_EXPR_CONFIG`` environment variable.

Example (YAML)::

    expressionLimits:
      maxRecursionDepth: 64
      cacheCapacity: 500
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits

logger = logging.getLogger(__name__)

ENV_VAR_EXPR_CONFIG = "INVOKERS_EXPR_CONFIG"

_LIMIT_FIELDS = frozenset(f.name for f in dataclasses.fields(ExpressionLimits))

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _to_snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class EngineConfig(BaseModel):
    """Configuration for creating an ExpressionEngine."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    # Limit overrides; unspecified limits keep their defaults
    expression_limits: Optional[ExpressionLimits] = Field(
        default=None, alias="expressionLimits"
    )

    @field_validator("expression_limits", mode="before")
    @classmethod
    def _normalize_limits(cls, value: Any) -> Any:
        if value is None or isinstance(value, ExpressionLimits):
            return value
        if not isinstance(value, dict):
            raise ValueError("expressionLimits must be a mapping")

        overrides: dict[str, int] = {}
        for key, limit in value.items():
            name = key if key in _LIMIT_FIELDS else _to_snake_case(str(key))
            if name not in _LIMIT_FIELDS:
                raise ValueError(f"Unknown expression limit: {key}")
            if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
                raise ValueError(
                    f"Expression limit {key} must be a positive integer, got {limit!r}"
                )
            overrides[name] = limit

        return dataclasses.replace(DEFAULT_EXPRESSION_LIMITS, **overrides)

    def resolve_limits(self) -> ExpressionLimits:
        """Returns the effective limits."""
        return self.expression_limits or DEFAULT_EXPRESSION_LIMITS


def load_engine_config(path: Optional[str | Path] = None) -> EngineConfig:
    """
    Loads an EngineConfig from a YAML or JSON file.

    Args:
        path: File to read. Defaults to $INVOKERS_EXPR_CONFIG; when neither
            is set the default configuration is returned.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file content is not a mapping or fails validation
    """
    if path is None:
        path = os.getenv(ENV_VAR_EXPR_CONFIG)
    if not path:
        return EngineConfig()

    file_path = Path(path)
    content = file_path.read_text(encoding="utf-8")

    if file_path.suffix.lower() == ".json":
        data = json.loads(content)
        file_format = "json"
    else:
        data = yaml.safe_load(content)
        file_format = "yaml"

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Engine config in {file_path} must be a mapping")

    config = EngineConfig.model_validate(data)

    logger.info(
        "engine_config_loaded",
        extra={"path": str(file_path), "format": file_format},
    )
    return config
