"""
Schema system: option types, definitions and the registry
"""

from .keys import DottedKey
from .models import OptionSpec, PanelSpec, Schema, SectionSpec
from .predicates import Predicate, compile_predicate
from .registry import SchemaRegistry, load_schema
from .types import NOT_STORED, Constraints, OptionType, TypedValue, coerce, get_kind, merge

__all__ = [
    "DottedKey",
    "OptionSpec",
    "PanelSpec",
    "Schema",
    "SectionSpec",
    "Predicate",
    "compile_predicate",
    "SchemaRegistry",
    "load_schema",
    "NOT_STORED",
    "Constraints",
    "OptionType",
    "TypedValue",
    "coerce",
    "get_kind",
    "merge",
]
