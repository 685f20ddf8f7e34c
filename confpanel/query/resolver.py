"""
Query resolver: turns a dotted key into a resolved subtree.

A key may name the whole schema (empty key), a panel, a section or an option; the
result always carries every descendant with its merged value and evaluated
visibility. Filtering by visibility is the renderer's job.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from ..errors import UnknownKey
from ..schema.keys import DottedKey
from ..schema.models import OptionSpec, PanelSpec, Schema, SectionSpec
from ..schema.types import TypedValue
from .context import SettingsContext

logger = logging.getLogger(__name__)


@dataclass
class ResolvedOption:
    key: str
    spec: OptionSpec
    value: TypedValue
    visible: bool = True

    @property
    def id(self) -> str:
        return self.spec.id


@dataclass
class ResolvedSection:
    key: str
    spec: SectionSpec
    visible: bool = True
    options: List[ResolvedOption] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.spec.id


@dataclass
class ResolvedPanel:
    key: str
    spec: PanelSpec
    visible: bool = True
    sections: List[ResolvedSection] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.spec.id


@dataclass
class ResolvedRoot:
    schema: Schema
    panels: List[ResolvedPanel] = field(default_factory=list)
    key: str = ""
    visible: bool = True


ResolvedNode = Union[ResolvedRoot, ResolvedPanel, ResolvedSection, ResolvedOption]


class QueryResolver:
    """
    Resolves keys against one SettingsContext.

    Args:
        ctx: Invocation context
        exclude: Dotted keys whose subtrees are left out of multi-node results
    """

    def __init__(self, ctx: SettingsContext, exclude: Sequence[str] = ()):
        self.ctx = ctx
        self.exclude = [DottedKey.parse(key) for key in exclude]

    def _excluded(self, key: str) -> bool:
        dotted = DottedKey.parse(key)
        return any(rule.contains(dotted) for rule in self.exclude)

    def resolve(self, key: str) -> ResolvedNode:
        """
        Resolve `key` to its subtree.

        Raises:
            UnknownKey: If the key is malformed or names no node
        """
        dotted = DottedKey.parse(key)
        node = self.ctx.registry.lookup(dotted)
        if node is None:
            raise UnknownKey(key)

        schema = self.ctx.registry.schema
        logger.debug(f"Resolving '{dotted}' ({type(node).__name__})")

        if isinstance(node, Schema):
            return ResolvedRoot(
                schema=node,
                panels=[
                    self._panel(panel)
                    for panel in node.panels.values()
                    if not self._excluded(panel.id)
                ],
            )

        panel = schema.panels[dotted.panel]
        if isinstance(node, PanelSpec):
            return self._panel(panel)

        panel_visible = self.ctx.is_visible(panel.visible, panel.id, None)
        section = panel.sections[dotted.section]
        if isinstance(node, SectionSpec):
            return self._section(panel, section, panel_visible)

        section_visible = panel_visible and self.ctx.is_visible(section.visible, panel.id, section.id)
        return self._option(panel, section, node, section_visible)

    def _panel(self, panel: PanelSpec) -> ResolvedPanel:
        visible = self.ctx.is_visible(panel.visible, panel.id, None)
        return ResolvedPanel(
            key=panel.id,
            spec=panel,
            visible=visible,
            sections=[
                self._section(panel, section, visible)
                for section in panel.sections.values()
                if not self._excluded(f"{panel.id}.{section.id}")
            ],
        )

    def _section(self, panel: PanelSpec, section: SectionSpec, parent_visible: bool) -> ResolvedSection:
        visible = parent_visible and self.ctx.is_visible(section.visible, panel.id, section.id)
        key = f"{panel.id}.{section.id}"
        return ResolvedSection(
            key=key,
            spec=section,
            visible=visible,
            options=[
                self._option(panel, section, option, visible)
                for option in section.options.values()
                if not self._excluded(f"{key}.{option.id}")
            ],
        )

    def _option(self, panel: PanelSpec, section: SectionSpec, option: OptionSpec, parent_visible: bool) -> ResolvedOption:
        key = f"{panel.id}.{section.id}.{option.id}"
        visible = parent_visible and self.ctx.is_visible(option.visible, panel.id, section.id)
        return ResolvedOption(key=key, spec=option, value=self.ctx.value_of(key), visible=visible)


def resolve(ctx: SettingsContext, key: str, exclude: Sequence[str] = ()) -> ResolvedNode:
    """Resolve `key` against `ctx`; see QueryResolver.resolve"""
    return QueryResolver(ctx, exclude=exclude).resolve(key)
