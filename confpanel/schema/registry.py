"""
Schema registry: loads the static panel/section/option definition and answers lookups.

The definition is a dict-of-dicts document (TOML, YAML or JSON):

    version = "1.0"
    i18n = "global_settings_setting"

    [security]
    name = "Security"

        [security.webadmin]
        name = "Webadmin"

            [security.webadmin.webadmin_allowlist_enabled]
            type = "boolean"
            default = false

Reserved scalar fields configure a node; every other table is a child node.
"""

import json
import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from ..errors import SchemaError, SettingsError
from .keys import DottedKey
from .models import OptionSpec, PanelSpec, Schema, SectionSpec
from .predicates import Predicate
from .types import OptionType, TypedValue, coerce

logger = logging.getLogger(__name__)

SCHEMA_FIELDS = {"version", "i18n"}
PANEL_FIELDS = {"name", "help", "visible", "services"}
SECTION_FIELDS = {"name", "help", "visible", "optional", "services"}

SchemaNode = Union[Schema, PanelSpec, SectionSpec, OptionSpec]


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects duplicate mapping keys instead of keeping the last one"""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _value_node in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in seen:
                raise yaml.constructor.ConstructorError(
                    None, None, f"duplicate id {key!r}", key_node.start_mark
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _reject_duplicates(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise ValueError(f"duplicate id {key!r}")
        result[key] = value
    return result


def parse_definition(text: str, fmt: str) -> Dict[str, Any]:
    """
    Parse definition text into a raw mapping.

    Args:
        text: File contents
        fmt: One of "toml", "yaml", "json"

    Raises:
        SchemaError: If the text cannot be parsed or is not a mapping
    """
    try:
        if fmt == "toml":
            raw = tomllib.loads(text)
        elif fmt == "yaml":
            raw = yaml.load(text, Loader=_UniqueKeyLoader)
        elif fmt == "json":
            raw = json.loads(text, object_pairs_hook=_reject_duplicates)
        else:
            raise SchemaError(f"Unsupported schema format: {fmt}. Use toml, yaml or json")
    except (tomllib.TOMLDecodeError, yaml.YAMLError, ValueError) as e:
        raise SchemaError(f"Cannot parse {fmt} schema definition: {e}") from e

    if not isinstance(raw, dict):
        raise SchemaError("Schema definition must be a mapping of panels")
    return raw


def _format_for(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix == ".toml":
        return "toml"
    if suffix in [".yaml", ".yml"]:
        return "yaml"
    if suffix == ".json":
        return "json"
    raise SchemaError(f"Unsupported schema file format: {suffix}. Use .toml, .yaml, .yml or .json")


def _split_fields(raw: Dict[str, Any], reserved: set, where: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Separate a node's own fields from its child tables"""
    fields: Dict[str, Any] = {}
    children: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in reserved:
            fields[key] = value
        elif isinstance(value, dict):
            children[key] = value
        else:
            logger.debug(f"Ignoring unsupported field '{key}' on {where}")
    return fields, children


def _validate(model, data: Dict[str, Any], key: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or 'value'}: {err['msg']}" for err in e.errors()
        )
        where = key or "schema"
        raise SchemaError(f"Invalid definition for '{where}': {errors}", key=key or None) from e


def build_schema(raw: Dict[str, Any]) -> Schema:
    """Turn a raw dict-of-dicts definition into a validated Schema"""
    top, raw_panels = _split_fields(raw, SCHEMA_FIELDS, "schema")
    panels: Dict[str, PanelSpec] = {}

    for panel_id, raw_panel in raw_panels.items():
        panel_fields, raw_sections = _split_fields(raw_panel, PANEL_FIELDS, f"panel '{panel_id}'")
        sections: Dict[str, SectionSpec] = {}

        for section_id, raw_section in raw_sections.items():
            section_key = f"{panel_id}.{section_id}"
            section_fields, raw_options = _split_fields(raw_section, SECTION_FIELDS, f"section '{section_key}'")
            options: Dict[str, OptionSpec] = {}

            for option_id, raw_option in raw_options.items():
                option_key = f"{section_key}.{option_id}"
                options[option_id] = _validate(OptionSpec, {**raw_option, "id": option_id}, option_key)

            sections[section_id] = _validate(
                SectionSpec, {**section_fields, "id": section_id, "options": options}, section_key
            )

        panels[panel_id] = _validate(PanelSpec, {**panel_fields, "id": panel_id, "sections": sections}, panel_id)

    return _validate(Schema, {**top, "panels": panels}, "")


class SchemaRegistry:
    """
    Owns one loaded Schema for the lifetime of an invocation.

    Construction validates defaults, choices and visibility predicates; any problem
    is a SchemaError raised before a query can run.
    """

    def __init__(self, schema: Schema):
        self.schema = schema
        self._by_option_id: Dict[str, List[str]] = {}
        self._defaults: Dict[str, TypedValue] = {}

        for key, panel, section, option in self.iter_options():
            self._by_option_id.setdefault(option.id, []).append(key)

        for key, panel, section, option in self.iter_options():
            if option.type in (OptionType.SELECT,) and not option.choices:
                raise SchemaError(f"Option '{key}' of type select declares no choices", key=key)
            raw_default = option.default
            if raw_default is None and option.type is OptionType.BOOLEAN:
                # booleans have no unset state
                raw_default = False
            try:
                self._defaults[key] = coerce(raw_default, option.type, option.constraints)
            except SettingsError as e:
                raise SchemaError(f"Default value of '{key}' is invalid: {e.message}", key=key) from e
            self._check_predicate(option.visible, key, panel.id, section.id)

        for panel in schema.panels.values():
            self._check_predicate(panel.visible, panel.id, panel.id, None)
            for section in panel.sections.values():
                self._check_predicate(section.visible, f"{panel.id}.{section.id}", panel.id, section.id)

        logger.debug(
            f"Loaded schema: {len(schema.panels)} panels, "
            f"{sum(len(p.sections) for p in schema.panels.values())} sections, "
            f"{len(self._defaults)} options"
        )

    @classmethod
    def from_mapping(cls, raw: Dict[str, Any]) -> "SchemaRegistry":
        return cls(build_schema(raw))

    @classmethod
    def from_text(cls, text: str, fmt: str = "toml") -> "SchemaRegistry":
        return cls.from_mapping(parse_definition(text, fmt))

    @classmethod
    def load(cls, path: Union[str, Path]) -> "SchemaRegistry":
        """
        Load the schema definition file.

        Raises:
            SchemaError: If the file is missing, unreadable, unparsable or invalid
        """
        schema_path = Path(path)
        fmt = _format_for(schema_path)
        try:
            text = schema_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SchemaError(f"Cannot read schema definition {schema_path}: {e}") from e
        logger.debug(f"Loading {fmt} schema from {schema_path}")
        return cls.from_text(text, fmt)

    def _check_predicate(self, predicate: Predicate, key: str, panel_id: str, section_id: Optional[str]) -> None:
        for name in predicate.identifiers:
            if self.resolve_identifier(name, panel_id, section_id) is None:
                raise SchemaError(
                    f"Visibility of '{key}' refers to unknown option '{name}'", key=key
                )

    def iter_options(self) -> Iterator[Tuple[str, PanelSpec, SectionSpec, OptionSpec]]:
        """Yield (dotted key, panel, section, option) in declaration order"""
        for panel in self.schema.panels.values():
            for section in panel.sections.values():
                for option in section.options.values():
                    yield f"{panel.id}.{section.id}.{option.id}", panel, section, option

    def option_keys_for_id(self, option_id: str) -> List[str]:
        """Every fully-qualified key whose option id is `option_id`"""
        return list(self._by_option_id.get(option_id, []))

    def default_value(self, key: str) -> TypedValue:
        return self._defaults[key]

    def resolve_identifier(self, name: str, panel_id: Optional[str], section_id: Optional[str]) -> Optional[str]:
        """
        Resolve an identifier used in a visibility predicate to a dotted option key.

        Dotted identifiers are taken as fully-qualified keys. Bare option ids are
        looked up in the current section, then the current panel, then the whole schema.
        """
        if "." in name:
            node = self.lookup(name)
            return name if isinstance(node, OptionSpec) else None

        candidates = self._by_option_id.get(name, [])
        if section_id is not None:
            own = f"{panel_id}.{section_id}.{name}"
            if own in candidates:
                return own
        if panel_id is not None:
            for key in candidates:
                if key.startswith(f"{panel_id}."):
                    return key
        return candidates[0] if candidates else None

    def lookup(self, key: Union[str, DottedKey]) -> Optional[SchemaNode]:
        """
        Walk the tree to the node named by `key`.

        Returns None for a well-formed key that names nothing.

        Raises:
            UnknownKey: If the key itself is malformed
        """
        if not isinstance(key, DottedKey):
            key = DottedKey.parse(key)
        if key.is_root:
            return self.schema

        panel = self.schema.panels.get(key.panel)
        if panel is None or key.section is None:
            return panel
        section = panel.sections.get(key.section)
        if section is None or key.option is None:
            return section
        return section.options.get(key.option)


def load_schema(path: Union[str, Path]) -> Schema:
    """Load and validate a schema definition file"""
    return SchemaRegistry.load(path).schema
