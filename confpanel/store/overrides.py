"""
Override store: persisted user-set values keyed by dotted key.

The store is a YAML (or JSON, by suffix) mapping. YAML scalars are kept as text
until the type system coerces them, so `"0755"` is never read back as 755.
A missing file is an empty store.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml

from ..errors import PersistenceError
from ..schema.types import TypedValue
from .locking import FileLock

logger = logging.getLogger(__name__)

# Ordered mapping: dotted key (or bare option id) -> raw value
OverrideMap = Dict[str, Any]

_NULL_TAG = "tag:yaml.org,2002:null"


class _TextPreservingLoader(yaml.SafeLoader):
    """SafeLoader that resolves only null implicitly; every other plain scalar stays a string"""


_TextPreservingLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag == _NULL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _is_json(path: Path) -> bool:
    return path.suffix.lower() == ".json"


def _flatten(raw: Mapping[Any, Any], prefix: str, out: OverrideMap, source: Path) -> None:
    for key, value in raw.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, dict):
            _flatten(value, f"{full_key}.", out, source)
            continue
        if full_key in out:
            raise PersistenceError(f"Duplicate entry '{full_key}' in {source}", key=full_key)
        out[full_key] = value


def parse_overrides(text: str, source: Path, as_json: bool = False) -> OverrideMap:
    """
    Parse override store text into a flat ordered map.

    Nested `panel: {section: {option: value}}` mappings are flattened to dotted keys.

    Raises:
        PersistenceError: If the text is malformed or not a mapping
    """
    try:
        if as_json:
            raw = json.loads(text) if text.strip() else None
        else:
            raw = yaml.load(text, Loader=_TextPreservingLoader)
    except (yaml.YAMLError, ValueError) as e:
        raise PersistenceError(f"Malformed override store {source}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise PersistenceError(f"Override store {source} must be a mapping, got {type(raw).__name__}")

    overrides: OverrideMap = {}
    _flatten(raw, "", overrides, source)
    return overrides


def load_overrides(path: Union[str, Path]) -> OverrideMap:
    """
    Load the override store under a shared lock.

    Args:
        path: Store file path

    Returns:
        Ordered key -> raw value map; empty when the file does not exist

    Raises:
        PersistenceError: If the file exists but cannot be read or parsed
    """
    store_path = Path(path)
    if not store_path.exists():
        logger.debug(f"No override store at {store_path}, using schema defaults")
        return {}

    try:
        with FileLock(store_path, shared=True):
            text = store_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PersistenceError(f"Cannot read override store {store_path}: {e}") from e

    overrides = parse_overrides(text, store_path, as_json=_is_json(store_path))
    logger.debug(f"Loaded {len(overrides)} overrides from {store_path}")
    return overrides


def _plain(value: Any) -> Any:
    if isinstance(value, TypedValue):
        return value.to_python()
    return value


def save_overrides(path: Union[str, Path], overrides: Mapping[str, Any]) -> Path:
    """
    Atomically write the override store.

    The document is written to a temporary file in the same directory, fsynced,
    then renamed over the original while holding the exclusive lock.

    Raises:
        PersistenceError: If the store cannot be written
    """
    store_path = Path(path)
    data = {key: _plain(value) for key, value in overrides.items()}
    if _is_json(store_path):
        payload = json.dumps(data, indent=2, ensure_ascii=False)
    else:
        payload = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)

    store_path.parent.mkdir(parents=True, exist_ok=True)
    with FileLock(store_path, shared=False):
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=str(store_path.parent),
                prefix=f".{store_path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, store_path)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise PersistenceError(f"Cannot write override store {store_path}: {e}") from e

    logger.info(f"Saved {len(data)} overrides to {store_path}")
    return store_path
