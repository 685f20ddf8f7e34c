"""
Error taxonomy for the settings engine.

Every failure surfaced to callers derives from SettingsError and can be turned into
the structured error object printed by the CLI.
"""

from typing import Any, Dict, Optional


class SettingsError(Exception):
    """Base class for engine-level failures"""

    kind = "SettingsError"

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.key = key

    def with_key(self, key: str) -> "SettingsError":
        """Attach the offending dotted key if none was recorded yet"""
        if self.key is None:
            self.key = key
        return self

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.key is not None:
            payload["key"] = self.key
        return payload

    def __str__(self) -> str:
        if self.key is not None and self.key not in self.message:
            return f"{self.message} (key: {self.key})"
        return self.message


class SchemaError(SettingsError):
    """Malformed schema definition or duplicate ids"""

    kind = "SchemaError"


class PersistenceError(SettingsError):
    """Override store cannot be read or holds unusable entries"""

    kind = "PersistenceError"


class UnknownKey(SettingsError):
    """Requested dotted key does not name any node"""

    kind = "UnknownKey"

    def __init__(self, key: str, reason: Optional[str] = None):
        message = f"Unknown setting key: '{key}'"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, key=key)


class TypeMismatch(SettingsError):
    """Raw value cannot be interpreted as the declared option type"""

    kind = "TypeMismatch"

    def __init__(self, expected: str, got: Any, key: Optional[str] = None):
        self.expected = expected
        self.got = got
        super().__init__(f"Expected a value of type '{expected}', got {got!r}", key=key)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["expected"] = self.expected
        payload["got"] = repr(self.got)
        return payload


class ConstraintViolation(SettingsError):
    """Value has the right type but breaks a range, pattern or choice constraint"""

    kind = "ConstraintViolation"


class FormatMismatch(SettingsError):
    """Requested output format cannot represent the rendered document"""

    kind = "FormatMismatch"
