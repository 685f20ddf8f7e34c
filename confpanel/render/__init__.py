"""
Rendering: mode shaping, labels and output serialization
"""

from .labels import value_for_locale
from .modes import ModeRenderer, RenderMode, render
from .serializer import OutputFormat, is_scalar, serialize, to_plain

__all__ = [
    "value_for_locale",
    "ModeRenderer",
    "RenderMode",
    "render",
    "OutputFormat",
    "is_scalar",
    "serialize",
    "to_plain",
]
