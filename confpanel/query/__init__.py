"""
Query layer: invocation context and key resolution
"""

from .context import SettingsContext, Translator, identity_translator, merge_values
from .resolver import (
    QueryResolver,
    ResolvedNode,
    ResolvedOption,
    ResolvedPanel,
    ResolvedRoot,
    ResolvedSection,
    resolve,
)

__all__ = [
    "SettingsContext",
    "Translator",
    "identity_translator",
    "merge_values",
    "QueryResolver",
    "ResolvedNode",
    "ResolvedOption",
    "ResolvedPanel",
    "ResolvedRoot",
    "ResolvedSection",
    "resolve",
]
