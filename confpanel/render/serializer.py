"""
Output serializer: JSON, YAML and plain text.

JSON and YAML default to a canonical form (sorted keys, sorted arrays) that compares
equal across implementations. `preserve_order=True` keeps the renderer's key order,
which matters for export documents and human-oriented output.
"""

import json
from enum import Enum
from typing import Any, Tuple

import yaml

from ..errors import FormatMismatch
from ..schema.types import TypedValue


class OutputFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"
    PLAIN = "plain"


def _array_sort_key(item: Any) -> Tuple:
    if item is None:
        return (0,)
    if isinstance(item, bool):
        return (1, int(item))
    if isinstance(item, (int, float)):
        return (2, item)
    if isinstance(item, str):
        return (3, item)
    if isinstance(item, list):
        return (4, tuple(_array_sort_key(member) for member in item))
    return (5, json.dumps(item, sort_keys=True, default=str))


def _sort_typed(values: list) -> list:
    """Sort TypedValues of one option type by their own ordering"""
    types = {value.option_type for value in values}
    if len(types) == 1:
        return [value.to_python() for value in sorted(values)]
    return sorted((value.to_python() for value in values), key=_array_sort_key)


def to_plain(document: Any, canonical: bool = False) -> Any:
    """
    Replace TypedValue leaves with plain values.

    With `canonical`, mapping keys are sorted and every array is sorted too.
    """
    if isinstance(document, TypedValue):
        return to_plain(document.to_python(), canonical)
    if isinstance(document, dict):
        keys = sorted(document, key=str) if canonical else list(document)
        return {key: to_plain(document[key], canonical) for key in keys}
    if isinstance(document, (list, tuple)):
        if canonical and document and all(isinstance(item, TypedValue) for item in document):
            return [to_plain(item, canonical) for item in _sort_typed(list(document))]
        items = [to_plain(item, canonical) for item in document]
        if canonical:
            items.sort(key=_array_sort_key)
        return items
    return document


def is_scalar(document: Any) -> bool:
    return isinstance(document, TypedValue) or not isinstance(document, (dict, list, tuple))


def _plain_text(document: Any) -> str:
    if isinstance(document, TypedValue):
        return document.humanize()
    if isinstance(document, dict):
        if len(document) != 1:
            raise FormatMismatch(
                f"Plain output needs a single value, the result has {len(document)} entries; use --json or --yaml"
            )
        return _plain_text(next(iter(document.values())))
    if isinstance(document, (list, tuple)):
        return ",".join(_plain_text(item) for item in document)
    if document is None:
        return ""
    if isinstance(document, bool):
        return "yes" if document else "no"
    return str(document)


def serialize(document: Any, fmt: OutputFormat, preserve_order: bool = False) -> bytes:
    """
    Serialize a rendered document.

    Args:
        document: Renderer output (may contain TypedValue leaves)
        fmt: Output format
        preserve_order: Keep renderer key and array order instead of canonical sorting

    Raises:
        FormatMismatch: If plain output is requested for a multi-value document
    """
    fmt = OutputFormat(fmt)
    if fmt is OutputFormat.PLAIN:
        return (_plain_text(document) + "\n").encode("utf-8")

    data = to_plain(document, canonical=not preserve_order)
    if fmt is OutputFormat.JSON:
        text = json.dumps(data, indent=4, ensure_ascii=False)
        return (text + "\n").encode("utf-8")

    text = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    if text.endswith("\n...\n"):
        text = text[: -len("...\n")]
    return text.encode("utf-8")
