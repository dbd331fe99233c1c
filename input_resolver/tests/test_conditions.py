from __future__ import annotations

from typing import Any, Dict, List

import pytest

from input_resolver.expr.conditions import (
    And,
    Equals,
    Not,
    OneOf,
    condition_from_dict,
    evaluate_condition,
    filter_conditional_inputs,
    strict_equals,
)
from input_resolver.registry.block_registry import (
    BlockTypeDefinition,
    BlockTypeNotFoundError,
    BlockTypeRegistry,
    SubBlockConfig,
    default_block_registry,
)
from input_resolver.runtime.resolver import InputResolver
from input_resolver.schema.models import Block, ExecutionContext, Workflow


def _sub_blocks(*entries: Dict[str, Any]) -> List[SubBlockConfig]:
    return [SubBlockConfig.model_validate(entry) for entry in entries]


def _resolve_with(definition: BlockTypeDefinition, params: Dict[str, Any]) -> Dict[str, Any]:
    registry = BlockTypeRegistry()
    registry.register(definition)
    block = Block.model_validate(
        {"id": "test-block", "metadata": {"id": definition.type, "name": "Test Block"}, "config": {"params": params}}
    )
    workflow = Workflow(blocks=[block])
    return InputResolver(workflow, block_registry=registry).resolve_inputs(block, ExecutionContext())


def test_condition_from_dict_builds_tagged_variants() -> None:
    assert condition_from_dict({"field": "operation", "value": "search"}) == Equals(field="operation", value="search")
    assert condition_from_dict({"field": "operation", "value": ["a", "b"]}) == OneOf(field="operation", values=["a", "b"])
    assert condition_from_dict({"field": "operation", "value": "create", "not": True}) == Not(
        condition=Equals(field="operation", value="create")
    )
    assert condition_from_dict(
        {"field": "operation", "value": "update", "and": {"field": "enabled", "value": True}}
    ) == And(conditions=[Equals(field="operation", value="update"), Equals(field="enabled", value=True)])


def test_condition_from_dict_rejects_nested_and() -> None:
    with pytest.raises(ValueError):
        condition_from_dict(
            {"field": "a", "value": 1, "and": {"field": "b", "value": 2, "and": {"field": "c", "value": 3}}}
        )


def test_strict_equality_does_not_mix_booleans_and_numbers() -> None:
    assert strict_equals(True, True)
    assert strict_equals(1, 1.0)
    assert not strict_equals(True, 1)
    assert not strict_equals(0, False)
    assert not strict_equals("1", 1)


def test_evaluate_condition_variants() -> None:
    values = {"operation": "update", "enabled": True}

    assert evaluate_condition(Equals(field="operation", value="update"), values)
    assert evaluate_condition(OneOf(field="operation", values=["create", "update"]), values)
    assert evaluate_condition(Not(condition=Equals(field="operation", value="create")), values)
    assert not evaluate_condition(
        And(conditions=[Equals(field="operation", value="update"), Equals(field="enabled", value=1)]),
        values,
    )


def test_filter_keeps_undeclared_and_unconditional_fields() -> None:
    sub_blocks = _sub_blocks(
        {"id": "operation", "type": "dropdown"},
        {"id": "alwaysVisible", "type": "short-input"},
        {"id": "conditionalField", "type": "short-input", "condition": {"field": "operation", "value": "search"}},
    )
    values = {"operation": "upload", "alwaysVisible": "always here", "conditionalField": "x", "extra": 1}

    assert filter_conditional_inputs(values, sub_blocks) == {
        "operation": "upload",
        "alwaysVisible": "always here",
        "extra": 1,
    }


def test_knowledge_block_upload_chunk_drops_search_fields() -> None:
    result = _resolve_with(
        default_block_registry().get("knowledge"),
        {
            "operation": "upload_chunk",
            "query": "<start.docName>",
            "knowledgeBaseIds": "kb-1",
            "documentId": "doc-1",
            "content": "chunk content",
        },
    )

    assert result == {"operation": "upload_chunk", "documentId": "doc-1", "content": "chunk content"}


def test_knowledge_block_search_drops_upload_fields() -> None:
    result = _resolve_with(
        default_block_registry().get("knowledge"),
        {
            "operation": "search",
            "query": "search query",
            "knowledgeBaseIds": "kb-1",
            "documentId": "doc-1",
            "content": "chunk content",
        },
    )

    assert result == {"operation": "search", "query": "search query", "knowledgeBaseIds": "kb-1"}


@pytest.mark.parametrize(
    ("operation", "kept"),
    [("upload_chunk", True), ("create_document", True), ("search", False)],
)
def test_duplicate_declarations_keep_field_when_any_applies(operation: str, kept: bool) -> None:
    result = _resolve_with(
        default_block_registry().get("knowledge"),
        {"operation": operation, "content": "some content"},
    )

    assert ("content" in result) is kept


def test_array_conditions_match_any_value() -> None:
    definition = BlockTypeDefinition(
        type="test-block",
        sub_blocks=_sub_blocks(
            {"id": "operation", "type": "dropdown"},
            {"id": "data", "condition": {"field": "operation", "value": ["create", "update"]}},
            {"id": "id", "condition": {"field": "operation", "value": ["update", "delete"]}},
        ),
    )

    assert _resolve_with(definition, {"operation": "update", "data": "some data", "id": "item-1"}) == {
        "operation": "update",
        "data": "some data",
        "id": "item-1",
    }
    assert _resolve_with(definition, {"operation": "delete", "data": "some data", "id": "item-1"}) == {
        "operation": "delete",
        "id": "item-1",
    }


def test_negated_and_compound_conditions() -> None:
    definition = BlockTypeDefinition(
        type="test-block",
        sub_blocks=_sub_blocks(
            {"id": "operation"},
            {"id": "enabled", "type": "switch"},
            {"id": "confirmationField", "condition": {"field": "operation", "value": "create", "not": True}},
            {
                "id": "specialField",
                "condition": {"field": "operation", "value": "update", "and": {"field": "enabled", "value": True}},
            },
        ),
    )

    result = _resolve_with(
        definition,
        {"operation": "update", "enabled": True, "confirmationField": "confirmed", "specialField": "special"},
    )
    assert result == {
        "operation": "update",
        "enabled": True,
        "confirmationField": "confirmed",
        "specialField": "special",
    }

    disabled = _resolve_with(definition, {"operation": "update", "enabled": 1, "specialField": "special"})
    assert "specialField" not in disabled


def test_block_type_without_sub_blocks_is_not_filtered() -> None:
    result = _resolve_with(BlockTypeDefinition(type="simple-block"), {"param1": "value1", "param2": "value2"})

    assert result == {"param1": "value1", "param2": "value2"}


def test_unregistered_block_type_is_not_filtered() -> None:
    block = Block.model_validate(
        {"id": "unknown-block", "metadata": {"id": "unknown-type", "name": "Unknown Block"}, "config": {"params": {"a": "1"}}}
    )
    resolver = InputResolver(Workflow(blocks=[block]), block_registry=BlockTypeRegistry())

    assert resolver.resolve_inputs(block, ExecutionContext()) == {"a": "1"}


def test_registry_lookup() -> None:
    registry = default_block_registry()

    assert registry.get("function").code_context is True
    assert registry.get("condition").passthrough_fields == frozenset({"conditions"})
    assert "api" in registry
    assert registry.maybe_get("unknown-type") is None
    with pytest.raises(BlockTypeNotFoundError):
        registry.get("unknown-type")
