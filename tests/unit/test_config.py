"""
Tests for configuration loading.

Covers:
  - Defaults
  - YAML file loading, missing and empty files
  - Environment variable overrides on top of YAML
  - Validation of out-of-range values
"""

from __future__ import annotations

import pydantic
import pytest

from appsentinel.config import (
    ExplainConfig,
    InferenceConfig,
    LoggingConfig,
    SentinelConfig,
    load_config,
)

_ENV_KEYS = (
    "APPSENTINEL_INFERENCE__ENDPOINT",
    "APPSENTINEL_INFERENCE__MODEL",
    "APPSENTINEL_INFERENCE__TIMEOUT_S",
    "APPSENTINEL_EXPLAIN__LLM_ENABLED",
    "APPSENTINEL_LOGGING__LEVEL",
    "APPSENTINEL_LOGGING__FORMAT",
    "APPSENTINEL_INSTANCE_ID",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    config = SentinelConfig()
    assert config.instance_id == "appsentinel"
    assert config.explain.llm_enabled is False
    assert config.explain.validation_mode == "lenient"
    assert config.inference.temperature == 0.0
    assert config.inference.max_new_tokens == 160
    assert config.inference.timeout_s == 15.0
    assert config.logging.format == "console"


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "absent.yaml")
    assert config == SentinelConfig()


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path) == SentinelConfig()


def test_yaml_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "instance_id: handset-7\n"
        "inference:\n"
        "  model: phi3:mini\n"
        "  timeout_s: 4.5\n"
        "explain:\n"
        "  llm_enabled: true\n"
        "  validation_mode: strict\n"
    )
    config = load_config(path)
    assert config.instance_id == "handset-7"
    assert config.inference.model == "phi3:mini"
    assert config.inference.timeout_s == 4.5
    assert config.inference.max_new_tokens == 160
    assert config.explain.llm_enabled is True
    assert config.explain.validation_mode == "strict"


def test_env_overrides_yaml(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("inference:\n  model: phi3:mini\n  endpoint: http://a:1\n")
    monkeypatch.setenv("APPSENTINEL_INFERENCE__MODEL", "llama3.2:1b")
    monkeypatch.setenv("APPSENTINEL_INFERENCE__TIMEOUT_S", "2.5")
    monkeypatch.setenv("APPSENTINEL_EXPLAIN__LLM_ENABLED", "yes")
    monkeypatch.setenv("APPSENTINEL_LOGGING__FORMAT", "json")

    config = load_config(path)
    assert config.inference.model == "llama3.2:1b"
    assert config.inference.endpoint == "http://a:1"
    assert config.inference.timeout_s == 2.5
    assert config.explain.llm_enabled is True
    assert config.logging.format == "json"


def test_env_false_flag(monkeypatch):
    monkeypatch.setenv("APPSENTINEL_EXPLAIN__LLM_ENABLED", "off")
    assert load_config().explain.llm_enabled is False


class TestValidation:
    def test_unknown_log_format(self):
        with pytest.raises(pydantic.ValidationError, match="Unknown log format"):
            LoggingConfig(format="xml")

    def test_unknown_validation_mode(self):
        with pytest.raises(pydantic.ValidationError):
            ExplainConfig(validation_mode="paranoid")

    @pytest.mark.parametrize("field", ["timeout_s", "max_new_tokens"])
    def test_non_positive_rejected(self, field):
        with pytest.raises(pydantic.ValidationError):
            InferenceConfig(**{field: 0})

    def test_top_p_range(self):
        with pytest.raises(pydantic.ValidationError):
            InferenceConfig(top_p=1.5)
