from __future__ import annotations

import pytest

from input_resolver.expr.parser import (
    EnvironmentToken,
    IndexSegment,
    PropertySegment,
    ReferenceKind,
    ReferenceSyntaxError,
    TemplateLiteral,
    TemplateReference,
    collect_unique_references,
    normalize_name,
    parse_reference_string,
    parse_template,
    sole_token,
)


def test_parse_reference_with_property_and_index_segments() -> None:
    ref = parse_reference_string("function-block.result.rows[2].id")

    assert ref.head == "function-block"
    assert ref.kind == ReferenceKind.block
    assert list(ref.segments) == [
        PropertySegment("result"),
        PropertySegment("rows"),
        IndexSegment(2),
        PropertySegment("id"),
    ]
    assert ref.path == "result.rows[2].id"


@pytest.mark.parametrize(
    ("expr", "kind"),
    [
        ("variable.myVar", ReferenceKind.variable),
        ("loop.currentItem", ReferenceKind.loop),
        ("loop.index", ReferenceKind.loop),
        ("parallel.items", ReferenceKind.parallel),
        ("start.input", ReferenceKind.start),
        ("Start", ReferenceKind.start),
        ("Agent Block.content", ReferenceKind.block),
        # A block named "Loop" with ordinary outputs stays a block reference
        ("Loop.results", ReferenceKind.block),
        ("variable", ReferenceKind.block),
    ],
)
def test_reference_classification(expr: str, kind: ReferenceKind) -> None:
    assert parse_reference_string(expr).kind == kind


@pytest.mark.parametrize(
    "expr",
    [" 5 && 8 ", "5 + 3", "a.b c", "x..y", "block.", " start.input", "a  b.c", "a.b[x]"],
)
def test_invalid_references_are_rejected(expr: str) -> None:
    with pytest.raises(ReferenceSyntaxError):
        parse_reference_string(expr)


def test_parse_template_splits_literals_references_and_env_tokens() -> None:
    tokens = parse_template("Key {{API_KEY}} for <start.input>!")

    assert tokens[0] == TemplateLiteral("Key ")
    assert tokens[1] == EnvironmentToken(placeholder="{{API_KEY}}", name="API_KEY")
    assert tokens[2] == TemplateLiteral(" for ")
    assert isinstance(tokens[3], TemplateReference)
    assert tokens[3].reference.raw == "start.input"
    assert tokens[4] == TemplateLiteral("!")


def test_parse_template_keeps_comparisons_as_literal_text() -> None:
    text = "if (x < 5 && 8 > y) { return <block.value> }"

    tokens = parse_template(text)

    references = [t for t in tokens if isinstance(t, TemplateReference)]
    assert [t.reference.raw for t in references] == ["block.value"]
    assert "".join(t.text if isinstance(t, TemplateLiteral) else t.placeholder for t in tokens) == text


def test_parse_template_finds_tokens_inside_rejected_candidates() -> None:
    tokens = parse_template("a < {{TOKEN}} >")

    assert [t for t in tokens if isinstance(t, EnvironmentToken)] == [
        EnvironmentToken(placeholder="{{TOKEN}}", name="TOKEN")
    ]


def test_plain_text_is_a_single_literal() -> None:
    assert parse_template("no references here") == [TemplateLiteral("no references here")]
    assert parse_template("") == [TemplateLiteral("")]


def test_sole_token_ignores_surrounding_whitespace() -> None:
    token = sole_token("  <variable.count>\n")

    assert isinstance(token, TemplateReference)
    assert token.reference.property_name == "count"
    assert sole_token("value: <variable.count>") is None
    assert sole_token("<a.b><c.d>") is None


def test_collect_unique_references_walks_nested_values() -> None:
    value = {
        "rows": [{"cells": {"Value": "<start.input>"}}, {"cells": {"Value": "<agent.content> <start.input>"}}],
        "count": 3,
    }

    refs = collect_unique_references([value])

    assert [ref.raw for ref in refs] == ["start.input", "agent.content"]


def test_normalize_name_strips_whitespace_and_case() -> None:
    assert normalize_name("Agent Block") == "agentblock"
    assert normalize_name(" My\tVar ") == "myvar"
