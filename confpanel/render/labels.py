"""
Label and help text lookup.

Order of precedence for a label field:
1. a locale table in the schema (`ask = {en = "...", fr = "..."}`), picking the active
   locale, then English, then the first entry
2. the injected translator, for `<i18n>_<id>` style message ids it knows
3. the literal schema string
4. the node id (labels only, help has no fallback)
"""

from typing import Dict, Optional, Union

from ..query.context import SettingsContext
from ..schema.models import OptionSpec, PanelSpec, SectionSpec

DEFAULT_LOCALE_FALLBACK = "en"


def value_for_locale(table: Dict[str, str], locale: str) -> str:
    """Pick the best translation out of a locale -> text table"""
    if locale in table:
        return table[locale]
    if DEFAULT_LOCALE_FALLBACK in table:
        return table[DEFAULT_LOCALE_FALLBACK]
    for text in table.values():
        return text
    return ""


def _translated(ctx: SettingsContext, msgid: Optional[str]) -> Optional[str]:
    if msgid is None:
        return None
    text = ctx.translate(msgid, ctx.locale)
    if not text or text == msgid:
        return None
    return text


def localized(
    ctx: SettingsContext,
    field: Optional[Union[str, Dict[str, str]]],
    msgid: Optional[str] = None,
    fallback: Optional[str] = None,
) -> Optional[str]:
    if isinstance(field, dict):
        return value_for_locale(field, ctx.locale)
    translated = _translated(ctx, msgid)
    if translated is not None:
        return translated
    if isinstance(field, str) and field != "":
        return field
    return fallback


def _msgid(ctx: SettingsContext, *parts: str) -> Optional[str]:
    if not ctx.i18n_key:
        return None
    return "_".join((ctx.i18n_key,) + parts)


def option_ask(ctx: SettingsContext, option: OptionSpec) -> str:
    return localized(ctx, option.ask, _msgid(ctx, option.id), fallback=option.id)


def option_help(ctx: SettingsContext, option: OptionSpec) -> Optional[str]:
    return localized(ctx, option.help, _msgid(ctx, option.id, "help"))


def container_name(ctx: SettingsContext, node: Union[PanelSpec, SectionSpec], key: str) -> str:
    return localized(ctx, node.name, _msgid(ctx, *key.split(".")), fallback=node.id)


def container_help(ctx: SettingsContext, node: Union[PanelSpec, SectionSpec], key: str) -> Optional[str]:
    return localized(ctx, node.help, _msgid(ctx, *key.split("."), "help"))
