"""
Query runner: load -> resolve -> render -> serialize for one invocation.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..config.schemas import EngineConfig
from ..i18n import CatalogTranslator
from ..legacy import translate_legacy_key
from ..query.context import SettingsContext, Translator
from ..query.resolver import resolve
from ..render.modes import RenderMode, render
from ..render.serializer import OutputFormat, is_scalar, serialize

logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    """Rendered document and its serialized bytes"""
    key: str
    mode: RenderMode
    document: Any
    output: bytes


def build_context(config: EngineConfig, translate: Optional[Translator] = None) -> SettingsContext:
    """Load schema and overrides fresh for this invocation"""
    locale = config.effective_locale()
    if translate is None:
        translate = CatalogTranslator(config.locales_dir)
    return SettingsContext.load(config.schema_path, config.store_path, translate=translate, locale=locale)


def format_document(document: Any, mode: RenderMode, fmt: Optional[OutputFormat]) -> bytes:
    """
    Serialize a rendered document.

    Without an explicit format, single values print as plain text and trees as YAML in
    declaration order. Export documents always keep declaration order.
    """
    if fmt is None:
        if is_scalar(document):
            return serialize(document, OutputFormat.PLAIN)
        return serialize(document, OutputFormat.YAML, preserve_order=True)
    return serialize(document, fmt, preserve_order=(mode is RenderMode.EXPORT))


def run_query(
    config: EngineConfig,
    key: str,
    mode: RenderMode = RenderMode.CLASSIC,
    fmt: Optional[OutputFormat] = None,
    translate: Optional[Translator] = None,
    list_all: bool = False,
) -> QueryResult:
    """
    Run one `get` (or `list` with list_all=True) query.

    Args:
        config: Engine configuration
        key: Dotted key (legacy aliases accepted); ignored for list
        mode: Render mode
        fmt: Output format, None for the human default
        translate: Translator override (default: catalogs from config.locales_dir)
        list_all: Resolve the whole schema, applying config.list_exclude in classic mode

    Raises:
        SettingsError: Any engine failure; nothing is written on failure
    """
    mode = RenderMode(mode)
    ctx = build_context(config, translate)

    if list_all:
        key = ""
        exclude = config.list_exclude if mode is RenderMode.CLASSIC else []
    else:
        key = translate_legacy_key(key)
        exclude = []

    node = resolve(ctx, key, exclude=exclude)
    document = render(ctx, node, mode, typed=True)
    output = format_document(document, mode, OutputFormat(fmt) if fmt is not None else None)
    logger.info(f"Rendered '{key}' in {mode.value} mode ({len(output)} bytes)")
    return QueryResult(key=key, mode=mode, document=document, output=output)
