"""
Dotted keys addressing nodes of the schema tree.

- ``""`` is the whole schema
- ``security`` is a panel
- ``security.webadmin`` is a section of that panel
- ``security.webadmin.webadmin_allowlist_enabled`` is an option of that section
"""

import re
from dataclasses import dataclass
from typing import Optional

from ..errors import UnknownKey

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]+$")

MAX_DEPTH = 3


@dataclass(frozen=True)
class DottedKey:
    panel: Optional[str] = None
    section: Optional[str] = None
    option: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "DottedKey":
        """
        Parse a dotted key.

        Raises:
            UnknownKey: If the key is malformed (empty segment, too deep, bad characters)
        """
        if text is None or text == "":
            return cls()
        parts = text.split(".")
        if len(parts) > MAX_DEPTH:
            raise UnknownKey(text, f"keys have at most {MAX_DEPTH} segments")
        for part in parts:
            if not _SEGMENT_RE.match(part):
                raise UnknownKey(text, "malformed key")
        return cls(*parts)

    @property
    def depth(self) -> int:
        return sum(1 for part in (self.panel, self.section, self.option) if part is not None)

    @property
    def is_root(self) -> bool:
        return self.depth == 0

    @property
    def is_option(self) -> bool:
        return self.depth == MAX_DEPTH

    def contains(self, other: "DottedKey") -> bool:
        """Whether `other` is this node or one of its descendants"""
        for mine, theirs in zip((self.panel, self.section, self.option), (other.panel, other.section, other.option)):
            if mine is None:
                return True
            if mine != theirs:
                return False
        return True

    def __str__(self) -> str:
        return ".".join(part for part in (self.panel, self.section, self.option) if part is not None)
