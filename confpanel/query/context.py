"""
Per-invocation settings context.

A SettingsContext bundles the loaded schema, the merged value of every option and
the injected translator. One is built per query; nothing is cached at module level,
so several independent contexts can coexist in the same process.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..errors import PersistenceError, SettingsError, UnknownKey
from ..schema.models import OptionSpec
from ..schema.predicates import Predicate
from ..schema.registry import SchemaRegistry
from ..schema.types import NOT_STORED, TypedValue, merge
from ..store.overrides import OverrideMap, load_overrides

logger = logging.getLogger(__name__)

# translate(msgid, locale, params) -> text; returns msgid itself when unknown
Translator = Callable[..., str]


def identity_translator(msgid: str, locale: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Translator that knows no message: every lookup falls back to schema text"""
    return msgid


def _qualify_overrides(registry: SchemaRegistry, overrides: OverrideMap) -> Dict[str, Any]:
    """
    Map every store entry to a fully-qualified option key.

    Bare option ids (the historical store layout) are accepted when unambiguous.

    Raises:
        PersistenceError: For unknown, ambiguous or duplicated entries
    """
    qualified: Dict[str, Any] = {}
    for key, raw in overrides.items():
        target: Optional[str] = None
        if "." in key:
            try:
                node = registry.lookup(key)
            except UnknownKey:
                node = None
            if isinstance(node, OptionSpec):
                target = key
        else:
            candidates = registry.option_keys_for_id(key)
            if len(candidates) > 1:
                raise PersistenceError(
                    f"Override '{key}' is ambiguous, it matches: {', '.join(candidates)}", key=key
                )
            if candidates:
                target = candidates[0]

        if target is None:
            raise PersistenceError(f"Override for unknown setting '{key}'", key=key)
        if target in qualified:
            raise PersistenceError(f"Setting '{target}' is overridden more than once", key=target)
        qualified[target] = raw
    return qualified


def merge_values(registry: SchemaRegistry, overrides: OverrideMap) -> Dict[str, TypedValue]:
    """
    Merge schema defaults with stored overrides for every option.

    Every override is validated, including overrides of currently invisible
    options, so a bad stored value always surfaces.

    Raises:
        PersistenceError: For store entries that match no option
        TypeMismatch: For stored values of the wrong type
        ConstraintViolation: For stored values breaking a constraint
    """
    stored = _qualify_overrides(registry, overrides)
    values: Dict[str, TypedValue] = {}

    for key, panel, section, option in registry.iter_options():
        raw = stored.get(key, NOT_STORED)
        if not option.has_value and raw is not NOT_STORED:
            if raw is not None:
                raise PersistenceError(f"Setting '{key}' is display-only and cannot hold a value", key=key)
            raw = NOT_STORED
        try:
            values[key] = merge(registry.default_value(key), raw, option.constraints)
        except SettingsError as e:
            raise e.with_key(key)

    logger.debug(f"Merged {len(stored)} overrides over {len(values)} options")
    return values


@dataclass
class SettingsContext:
    """Schema, merged values and translator for one invocation"""

    registry: SchemaRegistry
    values: Dict[str, TypedValue]
    translate: Translator = field(default=identity_translator)
    locale: str = "en"

    @classmethod
    def build(
        cls,
        registry: SchemaRegistry,
        overrides: Optional[OverrideMap] = None,
        translate: Optional[Translator] = None,
        locale: str = "en",
    ) -> "SettingsContext":
        values = merge_values(registry, overrides or {})
        return cls(registry=registry, values=values, translate=translate or identity_translator, locale=locale)

    @classmethod
    def load(
        cls,
        schema_path,
        store_path,
        translate: Optional[Translator] = None,
        locale: str = "en",
    ) -> "SettingsContext":
        """
        Load schema and override store fresh from disk.

        Raises:
            SchemaError: If the schema is invalid
            PersistenceError: If the store is unreadable or references unknown settings
        """
        registry = SchemaRegistry.load(schema_path)
        overrides = load_overrides(store_path)
        return cls.build(registry, overrides, translate=translate, locale=locale)

    @property
    def i18n_key(self) -> Optional[str]:
        return self.registry.schema.i18n

    def value_of(self, key: str) -> TypedValue:
        return self.values[key]

    def is_visible(self, predicate: Predicate, panel_id: Optional[str], section_id: Optional[str]) -> bool:
        """Evaluate a visibility predicate against the current merged values"""
        if predicate.is_constant:
            return predicate.evaluate(lambda name: None)

        def lookup(name: str) -> Any:
            key = self.registry.resolve_identifier(name, panel_id, section_id)
            return self.values[key].to_python()

        return predicate.evaluate(lookup)
