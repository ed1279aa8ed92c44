"""
AppSentinel — Configuration System

All configuration is Pydantic-validated and loaded from:
1. An optional YAML file (defaults)
2. Environment variables (overrides)

Only the explanation layer and logging are tunable. The rule tables used by
the risk evaluator, resolver and guards are fixed in code.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ─── Sub-configs ──────────────────────────────────────────────────


class InferenceConfig(BaseModel):
    """Parameters for one call across the text-generation boundary."""

    endpoint: str = "http://localhost:11434"
    model: str = "qwen2.5:0.5b-instruct"
    max_new_tokens: int = Field(160, gt=0)
    temperature: float = 0.0  # greedy decoding, identical prompts give identical slots
    top_p: float = Field(1.0, gt=0.0, le=1.0)
    stop_sequences: list[str] = Field(default_factory=lambda: ["\n\n\n", "```\n\n"])
    timeout_s: float = Field(15.0, gt=0.0)


class ExplainConfig(BaseModel):
    llm_enabled: bool = False
    validation_mode: Literal["lenient", "strict"] = "lenient"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"  # "console" | "json"

    @field_validator("format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        if value not in ("console", "json"):
            raise ValueError(f"Unknown log format: {value}")
        return value


# ─── Root Configuration ──────────────────────────────────────────


class SentinelConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="APPSENTINEL_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    instance_id: str = "appsentinel"

    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    explain: ExplainConfig = Field(default_factory=ExplainConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | Path | None = None) -> SentinelConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    overrides: dict[str, Any] = {}
    if endpoint := os.environ.get("APPSENTINEL_INFERENCE__ENDPOINT"):
        overrides.setdefault("inference", {})["endpoint"] = endpoint
    if model := os.environ.get("APPSENTINEL_INFERENCE__MODEL"):
        overrides.setdefault("inference", {})["model"] = model
    if timeout := os.environ.get("APPSENTINEL_INFERENCE__TIMEOUT_S"):
        overrides.setdefault("inference", {})["timeout_s"] = float(timeout)
    if llm_enabled := os.environ.get("APPSENTINEL_EXPLAIN__LLM_ENABLED"):
        overrides.setdefault("explain", {})["llm_enabled"] = llm_enabled.lower() in ("true", "1", "yes")
    if log_level := os.environ.get("APPSENTINEL_LOGGING__LEVEL"):
        overrides.setdefault("logging", {})["level"] = log_level
    if log_format := os.environ.get("APPSENTINEL_LOGGING__FORMAT"):
        overrides.setdefault("logging", {})["format"] = log_format
    if instance_id := os.environ.get("APPSENTINEL_INSTANCE_ID"):
        overrides["instance_id"] = instance_id

    return SentinelConfig(**_deep_merge(raw, overrides))
