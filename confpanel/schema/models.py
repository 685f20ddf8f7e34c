"""
Schema models using Pydantic for validation and type safety.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .predicates import ALWAYS, Predicate, compile_predicate
from .types import Constraints, OptionType, get_kind

# Either a literal string or a locale -> text table, e.g. {"en": "...", "fr": "..."}
LocalizedText = Union[str, Dict[str, str]]


def _visible_predicate(v: Any) -> Predicate:
    if isinstance(v, Predicate):
        return v
    return compile_predicate(v)


class PatternSpec(BaseModel):
    """Regex constraint on string values"""
    model_config = ConfigDict(frozen=True)

    regexp: str = Field(description="Regular expression the whole value must match")
    error: Optional[LocalizedText] = Field(default=None, description="Message shown when it does not")


class OptionSpec(BaseModel):
    """Leaf configurable option"""
    model_config = ConfigDict(frozen=True, extra="allow", arbitrary_types_allowed=True)

    id: str
    type: OptionType
    default: Any = Field(default=None, description="Raw default, validated against type at load")
    ask: Optional[LocalizedText] = None
    help: Optional[LocalizedText] = None
    visible: Predicate = Field(default=ALWAYS, description="Visibility predicate")
    readonly: bool = False
    optional: bool = True
    redact: bool = False
    choices: Optional[Union[List[str], Dict[str, LocalizedText]]] = None
    pattern: Optional[PatternSpec] = None
    min: Optional[int] = None
    max: Optional[int] = None

    @field_validator("visible", mode="before")
    @classmethod
    def validate_visible(cls, v):
        """Compile `visible` into a predicate (syntax errors fail validation)"""
        return _visible_predicate(v)

    @field_validator("pattern", mode="before")
    @classmethod
    def validate_pattern(cls, v):
        """Accept a bare regex string as shorthand for {regexp: ...}"""
        if isinstance(v, str):
            return {"regexp": v}
        return v

    @field_validator("choices", mode="before")
    @classmethod
    def validate_choices(cls, v):
        """Choices are strings; numeric choices are kept as their text"""
        if isinstance(v, (list, tuple)):
            return [str(item) for item in v]
        if isinstance(v, dict):
            return {str(key): label for key, label in v.items()}
        return v

    @property
    def has_value(self) -> bool:
        return get_kind(self.type).has_value

    @property
    def is_secret(self) -> bool:
        return get_kind(self.type).secret or self.redact

    @property
    def choice_values(self) -> Optional[List[str]]:
        if self.choices is None:
            return None
        return list(self.choices)

    @property
    def constraints(self) -> Constraints:
        pattern_error = None
        if self.pattern is not None and self.pattern.error is not None:
            error = self.pattern.error
            if isinstance(error, dict):
                error = error.get("en") or next(iter(error.values()), None)
            pattern_error = error
        return Constraints(
            choices=tuple(self.choice_values) if self.choices is not None else None,
            pattern=self.pattern.regexp if self.pattern is not None else None,
            pattern_error=pattern_error,
            minimum=self.min,
            maximum=self.max,
        )

    @property
    def extra_fields(self) -> Dict[str, Any]:
        """Schema fields outside the known set, surfaced verbatim in full mode"""
        return dict(self.model_extra or {})


class SectionSpec(BaseModel):
    """Ordered group of options"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    name: Optional[LocalizedText] = None
    help: Optional[LocalizedText] = None
    visible: Predicate = Field(default=ALWAYS, description="Visibility predicate")
    optional: bool = True
    services: List[str] = Field(default_factory=list)
    options: Dict[str, OptionSpec] = Field(default_factory=dict)

    @field_validator("visible", mode="before")
    @classmethod
    def validate_visible(cls, v):
        return _visible_predicate(v)


class PanelSpec(BaseModel):
    """Ordered group of sections"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    name: Optional[LocalizedText] = None
    help: Optional[LocalizedText] = None
    visible: Predicate = Field(default=ALWAYS, description="Visibility predicate")
    services: List[str] = Field(default_factory=list)
    sections: Dict[str, SectionSpec] = Field(default_factory=dict)

    @field_validator("visible", mode="before")
    @classmethod
    def validate_visible(cls, v):
        return _visible_predicate(v)


class Schema(BaseModel):
    """Complete ordered schema, immutable once loaded"""
    model_config = ConfigDict(frozen=True)

    version: str = "1.0"
    i18n: Optional[str] = Field(default=None, description="Translation key prefix for labels")
    panels: Dict[str, PanelSpec] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v):
        """Only the 1.0 panel format is understood"""
        if isinstance(v, bool) or str(v) not in ("1", "1.0"):
            raise ValueError(f"Unsupported config panel version: {v!r}. Expected 1.0")
        return "1.0"
