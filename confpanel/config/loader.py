"""
Configuration loader with YAML/JSON support, environment overrides, and CLI overrides.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .schemas import EngineConfig

ENV_PREFIX = "CONFPANEL__"


def load_config(path: str) -> EngineConfig:
    """
    Load configuration from YAML or JSON file.

    Args:
        path: Path to config file

    Returns:
        EngineConfig validated instance

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If file format is unsupported
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = config_path.suffix.lower()

    if suffix in [".yaml", ".yml"]:
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}
    elif suffix == ".json":
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
    else:
        raise ValueError(f"Unsupported config file format: {suffix}. Use .yaml, .yml, or .json")

    return EngineConfig(**config_dict)


def _parse_value(value: str) -> Any:
    """Parse an override value (try JSON first, fallback to string)"""
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        if value.lower() == "true":
            return True
        if value.lower() == "false":
            return False
        if value.lower() == "null":
            return None
        return value


def _apply(cfg: EngineConfig, overrides: Dict[str, Any]) -> EngineConfig:
    if not overrides:
        return cfg
    config_dict = cfg.model_dump()
    config_dict.update(overrides)
    # Re-validate
    return EngineConfig(**config_dict)


def apply_env_overrides(cfg: EngineConfig) -> EngineConfig:
    """
    Apply environment variable overrides to configuration.

    Environment variables must follow pattern: CONFPANEL__{field}
    Example: CONFPANEL__store_path=/tmp/settings.yml

    Args:
        cfg: Base EngineConfig

    Returns:
        EngineConfig with environment overrides applied
    """
    overrides: Dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.upper().startswith(ENV_PREFIX):
            continue
        # Normalize to lowercase (env vars are often uppercase)
        field = key[len(ENV_PREFIX):].lower()
        if field not in EngineConfig.model_fields:
            raise ValueError(f"Unknown configuration field in {key}")
        overrides[field] = _parse_value(value)

    return _apply(cfg, overrides)


def apply_cli_overrides(cfg: EngineConfig, sets: List[str]) -> EngineConfig:
    """
    Apply CLI --set field=value overrides to configuration.

    Args:
        cfg: Base EngineConfig
        sets: List of "field=value" strings from CLI --set flags

    Returns:
        EngineConfig with CLI overrides applied
    """
    if not sets:
        return cfg

    overrides: Dict[str, Any] = {}

    for set_str in sets:
        if "=" not in set_str:
            raise ValueError(f"Invalid --set format: {set_str}. Expected 'field=value'")

        field, value_str = set_str.split("=", 1)
        field = field.strip()
        if field not in EngineConfig.model_fields:
            available = ", ".join(EngineConfig.model_fields)
            raise ValueError(f"Unknown configuration field: {field}. Available fields: {available}")
        overrides[field] = _parse_value(value_str)

    return _apply(cfg, overrides)
