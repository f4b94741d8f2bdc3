"""YAML and env loader with fail-fast validation."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from draftsmith.llm.provider import required_env_key
from draftsmith.models import SettingsConfig


def _read_yaml(path: str) -> dict:
    resolved = Path(path)
    if not resolved.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with resolved.open("r", encoding="utf-8") as file_obj:
        loaded = yaml.safe_load(file_obj) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Expected object at root of YAML file: {path}")
    return loaded


def load_settings(settings_path: str = "config/settings.yaml") -> SettingsConfig:
    load_dotenv()
    return SettingsConfig.model_validate(_read_yaml(settings_path))


def get_required_env_keys(settings: SettingsConfig) -> list[str]:
    """Derive which API key env vars the configured backend needs.

    The openai backend always needs OPENAI_API_KEY; the pydantic_ai backend
    derives the key from the model prefix (``anthropic:`` -> ANTHROPIC_API_KEY).
    """
    return [required_env_key(settings.generation)]


def validate_secret_env(settings: SettingsConfig | None = None) -> list[str]:
    """Return list of missing required env var names."""
    load_dotenv()
    required = get_required_env_keys(settings) if settings is not None else ["OPENAI_API_KEY"]
    return [key for key in required if not os.getenv(key)]
