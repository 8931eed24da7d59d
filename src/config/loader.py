"""YAML and env loader with fail-fast validation."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from src.models import SettingsConfig

DEFAULT_SETTINGS_PATH = "config/settings.yaml"

# Environment overrides applied after the YAML file: env var -> (section, field).
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "PLAN_SYNC_DB_PATH": ("storage", "db_path"),
    "PLAN_SYNC_LOG_LEVEL": ("logging", "level"),
    "PLAN_SYNC_JSONL_DIR": ("logging", "jsonl_dir"),
}


def _read_yaml(path: str) -> dict:
    resolved = Path(path)
    if not resolved.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with resolved.open("r", encoding="utf-8") as file_obj:
        loaded = yaml.safe_load(file_obj) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Expected object at root of YAML file: {path}")
    return loaded


def _apply_env_overrides(raw: dict) -> dict:
    for env_key, (section, field_name) in _ENV_OVERRIDES.items():
        value = os.getenv(env_key)
        if value:
            raw.setdefault(section, {})[field_name] = value
    return raw


def load_settings(settings_path: Optional[str] = None) -> SettingsConfig:
    """Load settings from YAML (when given or present at the default path) plus env overrides.

    An explicitly passed path must exist; the default path is optional.
    """
    load_dotenv()
    if settings_path is not None:
        raw = _read_yaml(settings_path)
    elif Path(DEFAULT_SETTINGS_PATH).exists():
        raw = _read_yaml(DEFAULT_SETTINGS_PATH)
    else:
        raw = {}
    return SettingsConfig.model_validate(_apply_env_overrides(raw))
