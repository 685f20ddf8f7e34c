"""
Visibility predicates.

A `visible` field is either a literal boolean or a small expression over other
option values, e.g. `smtp_relay_enabled && smtp_relay_port != 25`. Expressions are
compiled once at schema load and evaluated against the merged values of each query.
"""

import operator
import re
from typing import Any, Callable, List, Set, Tuple, Union

_TOKEN_RE = re.compile(
    r"""\s*(?:
        (?P<number>-?\d+)
        |(?P<string>"[^"]*"|'[^']*')
        |(?P<op>==|!=|<=|>=|&&|\|\||[<>!()])
        |(?P<name>[A-Za-z_][A-Za-z0-9_.\-]*)
    )""",
    re.VERBOSE,
)

_KEYWORDS = {"true": True, "false": False, "null": None, "none": None}

_COMPARISONS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

Node = Tuple[Any, ...]


def _tokenize(source: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    source = source.rstrip()
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if not match or match.end() == pos:
            raise ValueError(f"Invalid character at position {pos} in predicate {source!r}")
        kind = match.lastgroup
        text = match.group(kind)
        if kind == "name" and text.lower() in ("and", "or", "not"):
            kind, text = "op", {"and": "&&", "or": "||", "not": "!"}[text.lower()]
        tokens.append((kind, text))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive descent: or -> and -> not -> comparison -> atom"""

    def __init__(self, source: str):
        self.source = source
        self.tokens = _tokenize(source)
        self.pos = 0

    def _peek(self) -> Tuple[str, str]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return ("end", "")

    def _take(self) -> Tuple[str, str]:
        token = self._peek()
        self.pos += 1
        return token

    def _fail(self, message: str) -> ValueError:
        return ValueError(f"{message} in predicate {self.source!r}")

    def parse(self) -> Node:
        if not self.tokens:
            raise self._fail("Empty expression")
        node = self._or()
        if self._peek()[0] != "end":
            raise self._fail(f"Unexpected token {self._peek()[1]!r}")
        return node

    def _or(self) -> Node:
        node = self._and()
        while self._peek() == ("op", "||"):
            self._take()
            node = ("or", node, self._and())
        return node

    def _and(self) -> Node:
        node = self._not()
        while self._peek() == ("op", "&&"):
            self._take()
            node = ("and", node, self._not())
        return node

    def _not(self) -> Node:
        if self._peek() == ("op", "!"):
            self._take()
            return ("not", self._not())
        return self._comparison()

    def _comparison(self) -> Node:
        node = self._atom()
        kind, text = self._peek()
        if kind == "op" and text in _COMPARISONS:
            self._take()
            node = ("cmp", text, node, self._atom())
        return node

    def _atom(self) -> Node:
        kind, text = self._take()
        if kind == "number":
            return ("lit", int(text))
        if kind == "string":
            return ("lit", text[1:-1])
        if kind == "name":
            if text.lower() in _KEYWORDS:
                return ("lit", _KEYWORDS[text.lower()])
            return ("name", text)
        if (kind, text) == ("op", "("):
            node = self._or()
            if self._take() != ("op", ")"):
                raise self._fail("Missing closing parenthesis")
            return node
        if kind == "end":
            raise self._fail("Unexpected end of expression")
        raise self._fail(f"Unexpected token {text!r}")


def _compare(op: str, left: Any, right: Any) -> bool:
    if isinstance(left, bool) != isinstance(right, bool) and left is not None and right is not None:
        # "1" / 1 style comparisons against booleans
        left, right = bool(left), bool(right)
    try:
        return bool(_COMPARISONS[op](left, right))
    except TypeError:
        return False


class Predicate:
    """Compiled visibility predicate"""

    def __init__(self, source: Union[bool, str], tree: Node):
        self.source = source
        self._tree = tree

    @property
    def is_constant(self) -> bool:
        return self._tree[0] == "lit"

    @property
    def identifiers(self) -> Set[str]:
        names: Set[str] = set()

        def walk(node: Node) -> None:
            if node[0] == "name":
                names.add(node[1])
            elif node[0] == "cmp":
                walk(node[2])
                walk(node[3])
            elif node[0] != "lit":
                for child in node[1:]:
                    walk(child)

        walk(self._tree)
        return names

    def evaluate(self, lookup: Callable[[str], Any]) -> bool:
        """
        Evaluate against current values.

        Args:
            lookup: Returns the plain value of an identifier
        """
        return bool(self._eval(self._tree, lookup))

    def _eval(self, node: Node, lookup: Callable[[str], Any]) -> Any:
        tag = node[0]
        if tag == "lit":
            return node[1]
        if tag == "name":
            return lookup(node[1])
        if tag == "not":
            return not self._eval(node[1], lookup)
        if tag == "and":
            return bool(self._eval(node[1], lookup)) and bool(self._eval(node[2], lookup))
        if tag == "or":
            return bool(self._eval(node[1], lookup)) or bool(self._eval(node[2], lookup))
        return _compare(node[1], self._eval(node[2], lookup), self._eval(node[3], lookup))

    def __repr__(self) -> str:
        return f"Predicate({self.source!r})"


ALWAYS = Predicate(True, ("lit", True))


def compile_predicate(source: Union[bool, str, None]) -> Predicate:
    """
    Compile a `visible` field.

    Raises:
        ValueError: On syntax errors or unsupported field types
    """
    if source is None or source is True:
        return ALWAYS
    if source is False:
        return Predicate(False, ("lit", False))
    if not isinstance(source, str):
        raise ValueError(f"Visibility must be a boolean or an expression, got {source!r}")
    return Predicate(source, _Parser(source).parse())
