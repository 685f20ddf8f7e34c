"""
Catalog-backed translator.

Catalogs are one JSON file per locale (`<locales_dir>/<locale>.json`) mapping message
ids to format strings. A CatalogTranslator instance is the `translate(msgid, locale,
params)` function the renderer is given; it holds its own loaded catalogs, so nothing
is shared between instances.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en"


def system_locale() -> str:
    """Two-letter locale from LC_ALL, then LANG; English when unset or C/POSIX"""
    for var in ("LC_ALL", "LANG"):
        value = os.environ.get(var)
        if value and value not in ("C", "POSIX") and not value.startswith("C."):
            return value[:2]
    return DEFAULT_LOCALE


class CatalogTranslator:
    """
    Translate message ids from JSON catalogs.

    Args:
        locales_dir: Directory holding `<locale>.json` catalogs
        fallback_locale: Locale consulted when the requested one lacks a message
    """

    def __init__(self, locales_dir: Union[str, Path], fallback_locale: str = DEFAULT_LOCALE):
        self.locales_dir = Path(locales_dir)
        self.fallback_locale = fallback_locale
        self._catalogs: Dict[str, Dict[str, str]] = {}

    def _catalog(self, locale: str) -> Dict[str, str]:
        if locale not in self._catalogs:
            path = self.locales_dir / f"{locale}.json"
            if not path.is_file():
                logger.debug(f"No catalog for locale '{locale}' in {self.locales_dir}")
                self._catalogs[locale] = {}
            else:
                self._catalogs[locale] = self._read_catalog(path, locale)
        return self._catalogs[locale]

    def _read_catalog(self, path: Path, locale: str) -> Dict[str, str]:
        # A broken catalog only costs translations, labels fall back to the schema text
        try:
            with open(path, "r", encoding="utf-8") as f:
                catalog = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable translation catalog {path}: {e}")
            return {}
        if not isinstance(catalog, dict):
            logger.warning(f"Ignoring translation catalog {path}: must be a JSON object")
            return {}
        logger.debug(f"Loaded {len(catalog)} messages for locale '{locale}'")
        return catalog

    def exists(self, msgid: str, locale: str) -> bool:
        return msgid in self._catalog(locale) or msgid in self._catalog(self.fallback_locale)

    def __call__(self, msgid: str, locale: str, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Translate `msgid` for `locale`.

        Returns:
            The formatted message, or `msgid` unchanged when no catalog knows it
        """
        text = self._catalog(locale).get(msgid)
        if text is None:
            text = self._catalog(self.fallback_locale).get(msgid)
        if text is None:
            return msgid
        if params:
            return text.format(**params)
        return text
