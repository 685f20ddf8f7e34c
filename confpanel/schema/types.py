"""
Type system for option values.

Each option type maps to one OptionKind which owns coercion of raw persisted values,
constraint checks, ordering and human formatting. Kinds register themselves with
@register_kind, the same way pluggable components register by name elsewhere.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from functools import total_ordering
from typing import Any, Callable, Dict, Optional, Tuple, Type

from ..errors import ConstraintViolation, TypeMismatch

logger = logging.getLogger(__name__)

SECRET_MASK = "**************"


class OptionType(str, Enum):
    """Closed set of option types accepted in a schema"""

    # value kinds
    BOOLEAN = "boolean"
    NUMBER = "number"
    RANGE = "range"
    STRING = "string"
    TEXT = "text"
    PATH = "path"
    FILE = "file"
    PASSWORD = "password"
    COLOR = "color"
    EMAIL = "email"
    URL = "url"
    DATE = "date"
    TIME = "time"
    SELECT = "select"
    TAGS = "tags"
    # display-only kinds, they never carry a value
    ALERT = "alert"
    DISPLAY_TEXT = "display_text"
    MARKDOWN = "markdown"
    BUTTON = "button"


class _NotStored:
    def __repr__(self) -> str:
        return "NOT_STORED"


# Marker for "the override store has no entry for this option"
NOT_STORED = _NotStored()


@dataclass(frozen=True)
class Constraints:
    """Validation constraints declared on an option"""

    choices: Optional[Tuple[str, ...]] = None
    pattern: Optional[str] = None
    pattern_error: Optional[str] = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None


@total_ordering
@dataclass(frozen=True, eq=True)
class TypedValue:
    """
    A coerced option value tagged with its option type.

    `value` is None when the option is unset. Tags are held as a tuple.
    Ordering is only defined between values of the same option type.
    """

    option_type: OptionType
    value: Any = None

    @property
    def is_set(self) -> bool:
        return self.value is not None

    def to_python(self) -> Any:
        """Plain JSON/YAML friendly representation"""
        if isinstance(self.value, tuple):
            return list(self.value)
        return self.value

    def humanize(self) -> str:
        return get_kind(self.option_type).humanize(self.value)

    def _order_key(self) -> Tuple:
        if self.value is None:
            return (0,)
        return (1, get_kind(self.option_type).sort_key(self.value))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, TypedValue):
            return NotImplemented
        if other.option_type != self.option_type:
            raise TypeError(
                f"Cannot order '{self.option_type.value}' against '{other.option_type.value}'"
            )
        return self._order_key() < other._order_key()


class OptionKind:
    """Behaviour shared by every option type"""

    has_value = True
    secret = False
    nullable = True

    def __init__(self, option_type: OptionType):
        self.option_type = option_type

    @property
    def name(self) -> str:
        return self.option_type.value

    def parse(self, raw: Any) -> Any:
        """Interpret a non-null raw value, raising TypeMismatch when impossible"""
        raise NotImplementedError

    def check(self, value: Any, constraints: Constraints) -> None:
        """Raise ConstraintViolation when a parsed value breaks a constraint"""

    def sort_key(self, value: Any) -> Any:
        return value

    def humanize(self, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    def full_extra_fields(self) -> Dict[str, Any]:
        """Fields every option of this kind carries in full mode"""
        return {}

    def coerce(self, raw: Any, constraints: Optional[Constraints] = None) -> TypedValue:
        if raw is None:
            if not self.nullable:
                raise TypeMismatch(self.name, raw)
            return TypedValue(self.option_type, None)
        value = self.parse(raw)
        if value is not None:
            self.check(value, constraints or Constraints())
        return TypedValue(self.option_type, value)


# Global registry: option type -> kind instance
_kind_registry: Dict[OptionType, OptionKind] = {}


def register_kind(*option_types: OptionType) -> Callable[[Type[OptionKind]], Type[OptionKind]]:
    """
    Decorator registering an OptionKind class for one or more option types.

    Example:
        @register_kind(OptionType.NUMBER, OptionType.RANGE)
        class IntegerKind(OptionKind):
            ...
    """
    def decorator(cls: Type[OptionKind]) -> Type[OptionKind]:
        for option_type in option_types:
            if option_type in _kind_registry:
                logger.warning(f"Option type '{option_type.value}' is already registered. Overwriting.")
            _kind_registry[option_type] = cls(option_type)
            logger.debug(f"Registered option kind: {option_type.value} -> {cls.__name__}")
        return cls
    return decorator


def get_kind(option_type: OptionType) -> OptionKind:
    try:
        return _kind_registry[OptionType(option_type)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown option type: '{option_type}'") from None


def parse_option_type(name: str) -> OptionType:
    """
    Map a schema `type` string to an OptionType.

    Raises:
        ValueError: If the type is not part of the supported set
    """
    try:
        return OptionType(name)
    except ValueError:
        available = ", ".join(t.value for t in OptionType)
        raise ValueError(f"Unknown option type: '{name}'. Available types: {available}") from None


_TRUE_STRINGS = {"1", "yes", "y", "true", "t", "on"}
_FALSE_STRINGS = {"0", "no", "n", "false", "f", "off"}


@register_kind(OptionType.BOOLEAN)
class BooleanKind(OptionKind):
    nullable = False

    def parse(self, raw: Any) -> bool:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, int) and raw in (0, 1):
            return bool(raw)
        if isinstance(raw, str):
            text = raw.strip().lower()
            if text in _TRUE_STRINGS:
                return True
            if text in _FALSE_STRINGS:
                return False
        raise TypeMismatch(self.name, raw)

    def sort_key(self, value: bool) -> int:
        return int(value)

    def humanize(self, value: Any) -> str:
        return "yes" if value else "no"

    def full_extra_fields(self) -> Dict[str, Any]:
        return {"yes": 1, "no": 0}


_INTEGER_RE = re.compile(r"^[+-]?\d+$")


@register_kind(OptionType.NUMBER, OptionType.RANGE)
class IntegerKind(OptionKind):
    def parse(self, raw: Any) -> Optional[int]:
        if isinstance(raw, bool):
            raise TypeMismatch(self.name, raw)
        if isinstance(raw, int):
            return raw
        if isinstance(raw, float):
            if raw.is_integer():
                return int(raw)
            raise TypeMismatch(self.name, raw)
        if isinstance(raw, str):
            text = raw.strip()
            if text == "":
                return None
            if _INTEGER_RE.match(text):
                return int(text)
        raise TypeMismatch(self.name, raw)

    def check(self, value: int, constraints: Constraints) -> None:
        if constraints.minimum is not None and value < constraints.minimum:
            raise ConstraintViolation(f"Value {value} is lower than the minimum {constraints.minimum}")
        if constraints.maximum is not None and value > constraints.maximum:
            raise ConstraintViolation(f"Value {value} is greater than the maximum {constraints.maximum}")


@register_kind(OptionType.STRING, OptionType.TEXT, OptionType.FILE)
class StringKind(OptionKind):
    def parse(self, raw: Any) -> Optional[str]:
        if isinstance(raw, bool):
            raise TypeMismatch(self.name, raw)
        if isinstance(raw, (int, float)):
            raw = str(raw)
        if not isinstance(raw, str):
            raise TypeMismatch(self.name, raw)
        return raw if raw != "" else None

    def check(self, value: str, constraints: Constraints) -> None:
        if constraints.pattern and not re.match(constraints.pattern, value):
            message = constraints.pattern_error or f"Value {value!r} does not match pattern {constraints.pattern!r}"
            raise ConstraintViolation(message)


@register_kind(OptionType.PASSWORD)
class PasswordKind(StringKind):
    secret = True

    def humanize(self, value: Any) -> str:
        return SECRET_MASK if value is not None else ""


@register_kind(OptionType.PATH)
class PathKind(StringKind):
    """Web paths are normalized to a single leading slash and no trailing slash"""

    def parse(self, raw: Any) -> Optional[str]:
        text = super().parse(raw)
        if text is None:
            return None
        text = "/" + text.strip().strip("/")
        return text


_FORMATS = {
    OptionType.COLOR: re.compile(r"^#[0-9a-fA-F]{3}([0-9a-fA-F]{3})?$"),
    OptionType.EMAIL: re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)+$"),
    OptionType.URL: re.compile(r"^https?://[^\s/$.?#][^\s]*$"),
    OptionType.DATE: re.compile(r"^\d{4}-\d{2}-\d{2}$"),
    OptionType.TIME: re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$"),
}


@register_kind(OptionType.COLOR, OptionType.EMAIL, OptionType.URL, OptionType.DATE, OptionType.TIME)
class FormattedStringKind(StringKind):
    def check(self, value: str, constraints: Constraints) -> None:
        valid = bool(_FORMATS[self.option_type].match(value))
        if valid and self.option_type is OptionType.DATE:
            try:
                date.fromisoformat(value)
            except ValueError:
                valid = False
        if not valid:
            raise ConstraintViolation(f"Value {value!r} is not a valid {self.name}")
        super().check(value, constraints)


@register_kind(OptionType.SELECT)
class SelectKind(StringKind):
    def check(self, value: str, constraints: Constraints) -> None:
        if constraints.choices is not None and value not in constraints.choices:
            choices = ", ".join(constraints.choices)
            raise ConstraintViolation(f"Value {value!r} is not one of the choices: {choices}")


@register_kind(OptionType.TAGS)
class TagsKind(OptionKind):
    def parse(self, raw: Any) -> Optional[Tuple[str, ...]]:
        if isinstance(raw, str):
            items = [item.strip() for item in raw.split(",")]
        elif isinstance(raw, (list, tuple)):
            items = []
            for item in raw:
                if isinstance(item, bool) or not isinstance(item, (str, int, float)):
                    raise TypeMismatch(self.name, raw)
                items.append(str(item).strip())
        else:
            raise TypeMismatch(self.name, raw)
        items = [item for item in items if item != ""]
        return tuple(items) if items else None

    def check(self, value: Tuple[str, ...], constraints: Constraints) -> None:
        for item in value:
            if constraints.choices is not None and item not in constraints.choices:
                choices = ", ".join(constraints.choices)
                raise ConstraintViolation(f"Tag {item!r} is not one of the choices: {choices}")
            if constraints.pattern and not re.match(constraints.pattern, item):
                message = constraints.pattern_error or f"Tag {item!r} does not match pattern {constraints.pattern!r}"
                raise ConstraintViolation(message)

    def humanize(self, value: Any) -> str:
        if value is None:
            return ""
        return ",".join(value)


@register_kind(OptionType.ALERT, OptionType.DISPLAY_TEXT, OptionType.MARKDOWN, OptionType.BUTTON)
class DisplayKind(OptionKind):
    has_value = False

    def parse(self, raw: Any) -> None:
        raise TypeMismatch(f"{self.name} (no value)", raw)


def coerce(raw: Any, option_type: OptionType, constraints: Optional[Constraints] = None) -> TypedValue:
    """
    Coerce a raw persisted value into a TypedValue.

    Args:
        raw: Value as read from the schema or the override store
        option_type: Declared option type
        constraints: Optional range/pattern/choice constraints

    Returns:
        TypedValue of the declared type

    Raises:
        TypeMismatch: If raw cannot be interpreted as option_type
        ConstraintViolation: If the value type-checks but breaks a constraint
    """
    return get_kind(option_type).coerce(raw, constraints)


def merge(default: TypedValue, stored: Any = NOT_STORED, constraints: Optional[Constraints] = None) -> TypedValue:
    """
    Merge a schema default with a stored override.

    The stored value wins when present; an invalid stored value raises instead of
    falling back to the default.
    """
    if stored is NOT_STORED:
        return default
    return coerce(stored, default.option_type, constraints)
