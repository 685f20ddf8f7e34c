"""
Mode renderer: shapes a resolved subtree into an output document.

- classic: bare values, nested by panel/section, visible nodes only
- full: annotated documents for every node, hidden ones flagged `visible: false`
- export: bare values for every option, flattened to `panel.section.option` keys

Documents keep declaration order; canonical key sorting is the serializer's job.
"""

import logging
from enum import Enum
from typing import Any, Dict

from ..query.context import SettingsContext
from ..query.resolver import ResolvedNode, ResolvedOption, ResolvedPanel, ResolvedRoot, ResolvedSection
from ..schema.types import SECRET_MASK, TypedValue, get_kind
from .labels import container_help, container_name, localized, option_ask, option_help

logger = logging.getLogger(__name__)


class RenderMode(str, Enum):
    CLASSIC = "classic"
    FULL = "full"
    EXPORT = "export"


def _leaf(value: TypedValue, typed: bool) -> Any:
    return value if typed else value.to_python()


def _hidden(value: TypedValue, typed: bool, replacement: str) -> Any:
    # an unset secret has nothing to hide
    if not value.is_set:
        return _leaf(value, typed)
    return _leaf(TypedValue(value.option_type, replacement), typed)


class ModeRenderer:
    """
    Renders resolved nodes for one context.

    Args:
        ctx: Invocation context (translator and locale for labels)
        typed: Keep leaf values as TypedValue so the serializer can humanize them
    """

    def __init__(self, ctx: SettingsContext, typed: bool = False):
        self.ctx = ctx
        self.typed = typed

    def render(self, node: ResolvedNode, mode: RenderMode) -> Any:
        mode = RenderMode(mode)
        logger.debug(f"Rendering '{node.key}' in {mode.value} mode")
        if mode is RenderMode.CLASSIC:
            return self.classic(node)
        if mode is RenderMode.FULL:
            return self.full(node)
        return self.export(node)

    # classic

    def classic(self, node: ResolvedNode) -> Any:
        if isinstance(node, ResolvedOption):
            return _leaf(node.value, self.typed)
        if isinstance(node, ResolvedSection):
            return {
                option.id: self._classic_value(option)
                for option in node.options
                if option.visible and option.spec.has_value
            }
        if isinstance(node, ResolvedPanel):
            return {section.id: self.classic(section) for section in node.sections if section.visible}
        return {panel.id: self.classic(panel) for panel in node.panels if panel.visible}

    def _classic_value(self, option: ResolvedOption) -> Any:
        """Secrets are masked in listings; only a directly addressed option shows its value"""
        if option.spec.is_secret:
            return _hidden(option.value, self.typed, SECRET_MASK)
        return _leaf(option.value, self.typed)

    # export

    def export(self, node: ResolvedNode) -> Any:
        if isinstance(node, ResolvedOption):
            return _leaf(node.value, self.typed)
        flat: Dict[str, Any] = {}
        for option in _iter_options(node):
            if option.spec.has_value:
                flat[option.key] = _leaf(option.value, self.typed)
        return flat

    # full

    def full(self, node: ResolvedNode) -> Dict[str, Any]:
        if isinstance(node, ResolvedOption):
            return self._full_option(node)
        if isinstance(node, ResolvedSection):
            return self._full_section(node)
        if isinstance(node, ResolvedPanel):
            return self._full_panel(node)
        return {
            "version": node.schema.version,
            "i18n": node.schema.i18n,
            "panels": {panel.id: self._full_panel(panel) for panel in node.panels},
        }

    def _full_panel(self, panel: ResolvedPanel) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"id": panel.id, "name": container_name(self.ctx, panel.spec, panel.key)}
        help_text = container_help(self.ctx, panel.spec, panel.key)
        if help_text is not None:
            doc["help"] = help_text
        doc["visible"] = panel.visible
        doc["services"] = list(panel.spec.services)
        doc["sections"] = {section.id: self._full_section(section) for section in panel.sections}
        return doc

    def _full_section(self, section: ResolvedSection) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"id": section.id, "name": container_name(self.ctx, section.spec, section.key)}
        help_text = container_help(self.ctx, section.spec, section.key)
        if help_text is not None:
            doc["help"] = help_text
        doc["visible"] = section.visible
        doc["optional"] = section.spec.optional
        doc["services"] = list(section.spec.services)
        doc["options"] = {option.id: self._full_option(option) for option in section.options}
        return doc

    def _full_option(self, option: ResolvedOption) -> Dict[str, Any]:
        spec = option.spec
        # Per-kind fields, then schema extras over them; computed fields win on collisions
        doc: Dict[str, Any] = get_kind(spec.type).full_extra_fields()
        doc.update(spec.extra_fields)
        doc["id"] = spec.id
        doc["ask"] = option_ask(self.ctx, spec)

        if not spec.has_value:
            doc["type"] = spec.type.value
            doc["readonly"] = True
            doc["visible"] = option.visible
            return doc

        help_text = option_help(self.ctx, spec)
        if help_text is not None:
            doc["help"] = help_text
        doc["type"] = spec.type.value

        default = self.ctx.registry.default_value(option.key)
        if spec.is_secret:
            # secrets are blanked in full documents
            doc["value"] = _hidden(option.value, self.typed, "")
            if default.is_set:
                doc["default"] = _hidden(default, self.typed, "")
        else:
            doc["value"] = _leaf(option.value, self.typed)
            if default.is_set:
                doc["default"] = _leaf(default, self.typed)
        if spec.choices is not None:
            doc["choices"] = self._choices(spec.choices)
        if spec.pattern is not None:
            doc["pattern"] = {"regexp": spec.pattern.regexp}
            if spec.pattern.error is not None:
                doc["pattern"]["error"] = localized(self.ctx, spec.pattern.error)
        if spec.min is not None:
            doc["min"] = spec.min
        if spec.max is not None:
            doc["max"] = spec.max
        doc["optional"] = spec.optional
        doc["readonly"] = spec.readonly
        doc["redact"] = spec.is_secret
        doc["visible"] = option.visible
        return doc

    def _choices(self, choices) -> Any:
        if isinstance(choices, dict):
            return {value: localized(self.ctx, label, fallback=value) for value, label in choices.items()}
        return list(choices)


def _iter_options(node: ResolvedNode):
    if isinstance(node, ResolvedOption):
        yield node
    elif isinstance(node, ResolvedSection):
        yield from node.options
    elif isinstance(node, ResolvedPanel):
        for section in node.sections:
            yield from section.options
    elif isinstance(node, ResolvedRoot):
        for panel in node.panels:
            for section in panel.sections:
                yield from section.options


def render(ctx: SettingsContext, node: ResolvedNode, mode: RenderMode, typed: bool = False) -> Any:
    """Render `node` in `mode`; see ModeRenderer"""
    return ModeRenderer(ctx, typed=typed).render(node, mode)
