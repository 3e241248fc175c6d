import os
from pathlib import Path
from typing import Optional

import yaml

PROVIDERS = ("ollama", "anthropic", "openai")
SEVERITY_THRESHOLDS = ("critical", "high", "medium", "low", "info")

DEFAULT_CONFIG: dict = {
    "provider": "ollama",
    "model": None,  # None = the provider's default model
    "endpoint": "http://localhost:11434/api/generate",  # Ollama only
    "base_url": None,  # OpenAI-compatible servers (LM Studio, vLLM, ...)
    "temperature": 0.0,
    "severity_threshold": "high",
    "profile": "general",
    "guidelines": None,  # None = use built-in default; set to a path string to override
    "max_diff_chars": 60000,
    "store": "noop",
    "store_path": None,
    "history_limit": 200,
}

BUILTIN_GUIDELINES_DIR = Path(__file__).parent / "guidelines"
_BUILTIN_DEFAULT = BUILTIN_GUIDELINES_DIR / "default.md"


def load_config(config_path: str = ".reviewlens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .reviewlens.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if os.environ.get("OLLAMA_ENDPOINT"):
        config["endpoint"] = os.environ["OLLAMA_ENDPOINT"]

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def validate_config(config: dict) -> None:
    """Raise ValueError for settings the review pipeline cannot work with."""
    if config.get("provider") not in PROVIDERS:
        raise ValueError(f"Unknown provider: {config.get('provider')!r}. Choose one of: {', '.join(PROVIDERS)}.")
    if config.get("severity_threshold") not in SEVERITY_THRESHOLDS:
        raise ValueError(
            f"Unknown severity_threshold: {config.get('severity_threshold')!r}. "
            f"Choose one of: {', '.join(SEVERITY_THRESHOLDS)}."
        )


def load_guidelines(config: dict) -> str:
    """
    Load review guidelines.

    If ``guidelines`` is set in config, loads from that path (relative to cwd).
    Otherwise falls back to the built-in default.
    """
    custom_path = config.get("guidelines")
    if custom_path:
        p = Path(custom_path)
        if not p.exists():
            raise FileNotFoundError(f"Guidelines file not found: {custom_path}")
        return p.read_text()

    if _BUILTIN_DEFAULT.exists():
        return _BUILTIN_DEFAULT.read_text()

    raise FileNotFoundError("No guidelines configured and built-in default is missing.")
