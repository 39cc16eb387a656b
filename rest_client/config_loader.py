"""Config Loader - Loads HTTP client configuration.

Handles loading YAML config files with environment variable substitution
into a ClientConfig.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from rest_client.models import ClientConfig


class ConfigError(Exception):
    """Raised when configuration loading fails."""


# ${NAME} or ${NAME:-fallback}
_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def load_client_config(config_path: Path) -> ClientConfig:
    """Load client configuration from YAML, expanding ${VAR} and ${VAR:-default}."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    # An empty file means "all defaults"
    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must be a YAML mapping")

    raw_config = _expand_env(raw_config)

    try:
        return ClientConfig.model_validate(raw_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid config structure: {e}") from e


def _expand_env(value: Any) -> Any:
    """Expand ${VAR} and ${VAR:-default} in every string leaf of value.

    Mapping keys are left alone. An unset variable without a default is an
    error rather than an empty string.
    """
    if isinstance(value, dict):
        return {key: _expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if not isinstance(value, str):
        return value

    def lookup(match: re.Match[str]) -> str:
        name, default = match.group("name"), match.group("default")
        resolved = os.environ.get(name, default)
        if resolved is None:
            raise ConfigError(f"Environment variable '{name}' is not set and has no default")
        return resolved

    return _ENV_REFERENCE.sub(lookup, value)
