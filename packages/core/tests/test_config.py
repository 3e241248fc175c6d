"""Tests for configuration loading."""

import pytest

from reviewlens_core.config import load_config, load_guidelines, validate_config


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["provider"] == "ollama"
    assert config["model"] is None
    assert config["severity_threshold"] == "high"
    assert config["guidelines"] is None
    assert config["store"] == "noop"


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".lens.yml"
    cfg.write_text("provider: anthropic\nseverity_threshold: critical\nmax_diff_chars: 1000\n")
    config = load_config(config_path=str(cfg))
    assert config["provider"] == "anthropic"
    assert config["severity_threshold"] == "critical"
    assert config["max_diff_chars"] == 1000


def test_empty_config_file(tmp_path):
    cfg = tmp_path / ".lens.yml"
    cfg.write_text("")
    assert load_config(config_path=str(cfg))["provider"] == "ollama"


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".lens.yml"
    cfg.write_text("provider: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"provider": "anthropic"})
    assert config["provider"] == "anthropic"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".lens.yml"
    cfg.write_text("provider: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"provider": None})
    assert config["provider"] == "openai"


def test_ollama_endpoint_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("OLLAMA_ENDPOINT", "http://gpu-box:11434/api/generate")
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["endpoint"] == "http://gpu-box:11434/api/generate"


def test_custom_guidelines_path(tmp_path):
    guidelines_file = tmp_path / "my-guidelines.md"
    guidelines_file.write_text("# Custom Guidelines\n- Rule 1")
    cfg = tmp_path / ".lens.yml"
    cfg.write_text(f"guidelines: {guidelines_file}\n")
    config = load_config(config_path=str(cfg))
    assert "Custom Guidelines" in load_guidelines(config)


def test_builtin_guidelines_loaded_as_fallback():
    config = load_config(config_path="nonexistent.yml")
    content = load_guidelines(config)
    assert "found no significant issues" in content.lower()


def test_missing_custom_guidelines_raises(tmp_path):
    config = {"guidelines": str(tmp_path / "does-not-exist.md")}
    with pytest.raises(FileNotFoundError):
        load_guidelines(config)


def test_env_vars_loaded(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "gh-token")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")
    monkeypatch.setenv("OPENAI_API_KEY", "oai-key")
    config = load_config(config_path="nonexistent.yml")
    assert config["github_token"] == "gh-token"
    assert config["anthropic_api_key"] == "ant-key"
    assert config["openai_api_key"] == "oai-key"


class TestValidateConfig:
    def test_defaults_are_valid(self):
        validate_config(load_config(config_path="nonexistent.yml"))

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="provider"):
            validate_config({"provider": "bard", "severity_threshold": "high"})

    def test_unknown_threshold(self):
        with pytest.raises(ValueError, match="severity_threshold"):
            validate_config({"provider": "ollama", "severity_threshold": "blocker"})
