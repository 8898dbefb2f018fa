"""Filter expressions over TAG and NUMERIC fields.

The syntax is the RediSearch query subset the retriever emits::

    *                                   match everything
    @type:{breakfast}                   tag membership
    @dietaryRestrictions:{vegan | keto} any of several tags
    @calories:[200 600]                 inclusive numeric range, ``-inf``/``+inf`` allowed
    (a | b) c                           grouping, OR with ``|``, AND by juxtaposition
    -@tags:{fried}                      negation

``tag_clause``/``range_clause``/``combine`` produce expressions; ``compile_filter`` turns one back into
a predicate for backends that evaluate filters themselves.
"""

from __future__ import annotations

import math
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from wellcoach.core.errors import QuerySyntaxError

from .schema import IndexSpec
from .store import MATCH_ALL

Predicate = Callable[[Dict[str, Any]], bool]

_TAG_SPECIAL = re.compile(r"([^A-Za-z0-9_])")
_FIELD_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def escape_tag(value: str) -> str:
    return _TAG_SPECIAL.sub(r"\\\1", value.strip())


def _format_bound(value: Optional[float], default: str) -> str:
    if value is None:
        return default
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def tag_clause(field: str, values: Iterable[str]) -> Optional[str]:
    cleaned: List[str] = []
    for value in values:
        if value is None or not str(value).strip():
            continue
        escaped = escape_tag(str(value))
        if escaped not in cleaned:
            cleaned.append(escaped)
    if not cleaned:
        return None
    return f"@{field}:{{{' | '.join(cleaned)}}}"


def range_clause(field: str, low: Optional[float] = None, high: Optional[float] = None) -> Optional[str]:
    if low is None and high is None:
        return None
    return f"@{field}:[{_format_bound(low, '-inf')} {_format_bound(high, '+inf')}]"


def combine(clauses: Iterable[Optional[str]]) -> str:
    parts = [clause for clause in clauses if clause]
    if not parts:
        return MATCH_ALL
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _tag_values(value: Any) -> set:
    if value is None:
        return set()
    if isinstance(value, str):
        items: Sequence[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        items = [value]
    return {str(item).strip().lower() for item in items if str(item).strip()}


def _numeric_value(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class _FilterParser:
    def __init__(self, text: str, spec: Optional[IndexSpec]):
        self.text = text
        self.spec = spec
        self.pos = 0

    def error(self, message: str) -> QuerySyntaxError:
        return QuerySyntaxError(f"Syntax error at offset {self.pos} near {self.text[self.pos:self.pos + 16]!r}: {message}")

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def expect(self, char: str) -> None:
        self.skip_ws()
        if self.peek() != char:
            raise self.error(f"expected {char!r}")
        self.pos += 1

    def parse(self) -> Predicate:
        self.skip_ws()
        if not self.text.strip():
            raise self.error("empty expression")
        node = self.union()
        self.skip_ws()
        if self.pos != len(self.text):
            raise self.error("unexpected input")
        return node

    def union(self) -> Predicate:
        options = [self.intersection()]
        self.skip_ws()
        while self.peek() == "|":
            self.pos += 1
            options.append(self.intersection())
            self.skip_ws()
        if len(options) == 1:
            return options[0]
        return lambda doc: any(option(doc) for option in options)

    def intersection(self) -> Predicate:
        terms: List[Predicate] = []
        while True:
            self.skip_ws()
            if self.peek() in ("", ")", "|"):
                break
            terms.append(self.term())
        if not terms:
            raise self.error("expected a clause")
        if len(terms) == 1:
            return terms[0]
        return lambda doc: all(term(doc) for term in terms)

    def term(self) -> Predicate:
        char = self.peek()
        if char == "-":
            self.pos += 1
            inner = self.term()
            return lambda doc: not inner(doc)
        if char == "(":
            self.pos += 1
            node = self.union()
            self.expect(")")
            return node
        if char == "*":
            self.pos += 1
            return lambda doc: True
        if char == "@":
            return self.field_clause()
        raise self.error("expected '@field', '(' or '*'")

    def field_clause(self) -> Predicate:
        self.pos += 1
        match = _FIELD_NAME.match(self.text, self.pos)
        if not match:
            raise self.error("expected field name")
        name = match.group(0)
        self.pos = match.end()
        self.expect(":")
        self.skip_ws()
        field_spec = self.spec.get_field(name) if self.spec else None
        if self.spec is not None and field_spec is None:
            raise self.error(f"unknown field '{name}'")
        if self.peek() == "{":
            if field_spec is not None and field_spec.kind != "TAG":
                raise self.error(f"field '{name}' is not a TAG field")
            return self.tag_set(name)
        if self.peek() == "[":
            if field_spec is not None and field_spec.kind != "NUMERIC":
                raise self.error(f"field '{name}' is not a NUMERIC field")
            return self.numeric_range(name)
        raise self.error("expected '{' or '['")

    def tag_set(self, name: str) -> Predicate:
        self.pos += 1
        values: List[str] = []
        current: List[str] = []
        while True:
            if self.pos >= len(self.text):
                raise self.error("unterminated tag set")
            char = self.text[self.pos]
            if char == "\\":
                if self.pos + 1 >= len(self.text):
                    raise self.error("dangling escape")
                current.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            if char in "|}":
                value = "".join(current).strip()
                if not value:
                    raise self.error("empty tag value")
                values.append(value.lower())
                current = []
                self.pos += 1
                if char == "}":
                    break
                continue
            current.append(char)
            self.pos += 1
        wanted = set(values)
        return lambda doc: bool(_tag_values(doc.get(name)) & wanted)

    def numeric_bound(self, token: str) -> tuple:
        exclusive = token.startswith("(")
        raw = token[1:] if exclusive else token
        lowered = raw.lower()
        if lowered in ("inf", "+inf"):
            return math.inf, exclusive
        if lowered == "-inf":
            return -math.inf, exclusive
        try:
            return float(raw), exclusive
        except ValueError:
            raise self.error(f"invalid numeric bound {token!r}") from None

    def numeric_range(self, name: str) -> Predicate:
        self.pos += 1
        end = self.text.find("]", self.pos)
        if end < 0:
            raise self.error("unterminated numeric range")
        tokens = self.text[self.pos:end].split()
        if len(tokens) != 2:
            raise self.error("numeric range needs exactly two bounds")
        low, low_exclusive = self.numeric_bound(tokens[0])
        high, high_exclusive = self.numeric_bound(tokens[1])
        self.pos = end + 1

        def predicate(doc: Dict[str, Any]) -> bool:
            value = _numeric_value(doc.get(name))
            if value is None:
                return False
            above = value > low if low_exclusive else value >= low
            below = value < high if high_exclusive else value <= high
            return above and below

        return predicate


def compile_filter(expression: str, spec: Optional[IndexSpec] = None) -> Predicate:
    """Parse ``expression`` into a document predicate.

    Raises ``QuerySyntaxError`` for malformed input, and for fields unknown to
    ``spec`` or used with the wrong clause type when a spec is given.
    """
    if expression is None:
        raise QuerySyntaxError("Filter expression is required; use '*' to match everything")
    return _FilterParser(expression, spec).parse()
