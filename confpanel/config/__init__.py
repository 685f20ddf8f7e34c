"""
Configuration system: schema and loaders
"""

from .schemas import EngineConfig
from .loader import load_config, apply_env_overrides, apply_cli_overrides

__all__ = [
    "EngineConfig",
    "load_config",
    "apply_env_overrides",
    "apply_cli_overrides",
]
