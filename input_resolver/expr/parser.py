"""
Parsing utilities for `<block.path>` references and `{{ENV}}` tokens embedded
in strings as well as recursive discovery of tokens inside arbitrary JSON
values.

Angle brackets are common in free text and code (`x < 5 && 8 > b`), so a
bracketed candidate only becomes a reference when its interior parses as
`HEAD[.PATH]`. Anything else stays literal text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import re
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from input_resolver.schema.models import JSONValue

TOKEN_PATTERN = re.compile(r"\{\{(?P<env>[A-Za-z_][A-Za-z0-9_]*)\}\}|<(?P<ref>[^<>]+)>")

_HEAD_CHARS = re.compile(r"^[A-Za-z0-9_\- ]+$")
_SEGMENT_PATTERN = re.compile(r"^(?P<key>[A-Za-z0-9_\-]+)(?P<indices>(?:\[\d+\])*)$")
_INDEX_PATTERN = re.compile(r"\[(\d+)\]")
_WHITESPACE = re.compile(r"\s+")

CONTEXT_PROPERTIES = frozenset({"currentItem", "index", "items"})


class ReferenceSyntaxError(ValueError):
    """Raised when a bracketed candidate is not a well-formed reference."""


class ReferenceKind(str, Enum):
    variable = "variable"
    loop = "loop"
    parallel = "parallel"
    start = "start"
    block = "block"


@dataclass(frozen=True)
class PathSegment:
    pass


@dataclass(frozen=True)
class PropertySegment(PathSegment):
    key: str


@dataclass(frozen=True)
class IndexSegment(PathSegment):
    index: int


@dataclass(frozen=True)
class ReferenceExpr:
    raw: str
    head: str
    segments: Sequence[PathSegment]
    kind: ReferenceKind

    @property
    def placeholder(self) -> str:
        return f"<{self.raw}>"

    @property
    def property_name(self) -> Optional[str]:
        """First path key, e.g. the variable name or `currentItem`."""
        if self.segments and isinstance(self.segments[0], PropertySegment):
            return self.segments[0].key
        return None

    @property
    def path(self) -> str:
        return self.raw.partition(".")[2]


@dataclass(frozen=True)
class TemplateLiteral:
    text: str


@dataclass(frozen=True)
class TemplateReference:
    placeholder: str
    reference: ReferenceExpr


@dataclass(frozen=True)
class EnvironmentToken:
    placeholder: str
    name: str


TemplateToken = Union[TemplateLiteral, TemplateReference, EnvironmentToken]


def normalize_name(name: str) -> str:
    """Whitespace-stripped, lowercased form used for name matching."""
    return _WHITESPACE.sub("", name).lower()


def parse_reference_string(expr: str) -> ReferenceExpr:
    if not expr or expr != expr.strip():
        raise ReferenceSyntaxError(f"Reference '{expr}' has surrounding whitespace")

    head, dot, rest = expr.partition(".")
    if not _HEAD_CHARS.match(head) or "  " in head:
        raise ReferenceSyntaxError(f"Invalid reference head '{head}'")

    segments: List[PathSegment] = []
    if dot:
        for part in rest.split("."):
            match = _SEGMENT_PATTERN.match(part)
            if match is None:
                raise ReferenceSyntaxError(f"Invalid path segment '{part}' in '{expr}'")
            segments.append(PropertySegment(match.group("key")))
            for index in _INDEX_PATTERN.findall(match.group("indices")):
                segments.append(IndexSegment(int(index)))

    return ReferenceExpr(
        raw=expr,
        head=head,
        segments=tuple(segments),
        kind=_classify(head, segments),
    )


def _classify(head: str, segments: Sequence[PathSegment]) -> ReferenceKind:
    lowered = head.lower()
    first = segments[0].key if segments and isinstance(segments[0], PropertySegment) else None

    if lowered == "variable" and first is not None:
        return ReferenceKind.variable
    # `<Loop.results>` on a block named "Loop" stays a block reference
    if lowered == "loop" and first in CONTEXT_PROPERTIES:
        return ReferenceKind.loop
    if lowered == "parallel" and first in CONTEXT_PROPERTIES:
        return ReferenceKind.parallel
    if lowered == "start":
        return ReferenceKind.start
    return ReferenceKind.block


def try_parse_reference(expr: str) -> Optional[ReferenceExpr]:
    try:
        return parse_reference_string(expr)
    except ReferenceSyntaxError:
        return None


def parse_template(text: str) -> List[TemplateToken]:
    tokens: List[TemplateToken] = []
    literal: List[str] = []
    cursor = 0
    scan = 0

    def flush_literal() -> None:
        if literal:
            tokens.append(TemplateLiteral("".join(literal)))
            literal.clear()

    while True:
        match = TOKEN_PATTERN.search(text, scan)
        if match is None:
            break
        start, end = match.span()

        if match.group("env") is not None:
            token: TemplateToken = EnvironmentToken(placeholder=match.group(0), name=match.group("env"))
        else:
            reference = try_parse_reference(match.group("ref"))
            if reference is None:
                # Not a reference; rescan from the next character so a
                # `{{ENV}}` or `<ref>` inside the rejected span is still found.
                scan = start + 1
                continue
            token = TemplateReference(placeholder=match.group(0), reference=reference)

        if start > cursor:
            literal.append(text[cursor:start])
        flush_literal()
        tokens.append(token)
        cursor = end
        scan = end

    if cursor < len(text):
        literal.append(text[cursor:])
    flush_literal()
    if not tokens:
        tokens.append(TemplateLiteral(text))
    return tokens


def sole_token(text: str) -> Optional[Union[TemplateReference, EnvironmentToken]]:
    """Return the token when the trimmed text consists of exactly one token."""
    tokens = parse_template(text.strip())
    if len(tokens) == 1 and not isinstance(tokens[0], TemplateLiteral):
        return tokens[0]
    return None


def iterate_value_tokens(value: JSONValue) -> Iterator[TemplateToken]:
    if isinstance(value, str):
        for token in parse_template(value):
            if not isinstance(token, TemplateLiteral):
                yield token
        return
    if isinstance(value, list):
        for item in value:
            yield from iterate_value_tokens(item)
        return
    if isinstance(value, dict):
        for item in value.values():
            yield from iterate_value_tokens(item)


def iterate_value_references(value: JSONValue) -> Iterator[ReferenceExpr]:
    for token in iterate_value_tokens(value):
        if isinstance(token, TemplateReference):
            yield token.reference


def collect_unique_references(values: Iterable[JSONValue]) -> List[ReferenceExpr]:
    """
    Collect references from a set of values while preserving discovery order and
    avoiding duplicates.
    """

    seen: set[str] = set()
    ordered: List[ReferenceExpr] = []
    for value in values:
        for ref in iterate_value_references(value):
            if ref.raw in seen:
                continue
            seen.add(ref.raw)
            ordered.append(ref)
    return ordered
