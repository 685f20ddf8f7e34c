"""
Override store: persisted values with locked reads and atomic writes
"""

from .locking import FileLock
from .overrides import OverrideMap, load_overrides, parse_overrides, save_overrides

__all__ = ["FileLock", "OverrideMap", "load_overrides", "parse_overrides", "save_overrides"]
