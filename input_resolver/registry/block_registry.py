"""
In-memory registry of block-type policies.

The resolver consults this registry to decide how a block's parameters are
treated: whether references are formatted as code literals, which fields are
passed through untouched, which fields may receive `{{ENV}}` secrets, what a
bare `<block>` reference means and which parameters are conditionally visible.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, MutableMapping, Optional

from pydantic import ConfigDict, field_validator

from input_resolver.expr.conditions import Condition, condition_from_dict
from input_resolver.schema.models import STARTER_BLOCK_TYPE, StrictModel


class SubBlockConfig(StrictModel):
    """Declared parameter of a block type, as authored in the block catalog."""

    # Catalog entries carry UI details (options, placeholders, ...)
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    type: str = ""
    title: Optional[str] = None
    condition: Optional[Condition] = None

    @field_validator("condition", mode="before")
    @classmethod
    def _parse_declarative_condition(cls, value: Any) -> Any:
        if isinstance(value, dict) and "kind" not in value:
            return condition_from_dict(value)
        return value


@dataclass
class BlockTypeDefinition:
    type: str
    code_context: bool = False
    passthrough_fields: FrozenSet[str] = frozenset()
    env_fields: FrozenSet[str] = frozenset()
    # Output field a bare `<block>` reference resolves to; None means the whole output
    primary_output: Optional[str] = None
    sub_blocks: List[SubBlockConfig] = field(default_factory=list)


class BlockTypeNotFoundError(KeyError):
    """Raised when attempting to access an unknown block type."""


class BlockTypeRegistry:
    """
    Stores block-type definitions keyed by their type tag.
    """

    def __init__(self, initial: MutableMapping[str, BlockTypeDefinition] | None = None) -> None:
        self._types: Dict[str, BlockTypeDefinition] = dict(initial or {})

    def register(self, definition: BlockTypeDefinition) -> None:
        self._types[definition.type] = definition

    def register_many(self, definitions: Iterable[BlockTypeDefinition]) -> None:
        for definition in definitions:
            self.register(definition)

    def get(self, block_type: str) -> BlockTypeDefinition:
        try:
            return self._types[block_type]
        except KeyError as exc:
            raise BlockTypeNotFoundError(f"Block type '{block_type}' is not registered") from exc

    def maybe_get(self, block_type: str) -> Optional[BlockTypeDefinition]:
        return self._types.get(block_type)

    def __contains__(self, block_type: object) -> bool:
        return block_type in self._types


def _sub_blocks(*entries: Dict[str, Any]) -> List[SubBlockConfig]:
    return [SubBlockConfig.model_validate(entry) for entry in entries]


def default_block_registry() -> BlockTypeRegistry:
    """Registry preloaded with the built-in block types."""

    registry = BlockTypeRegistry()
    registry.register_many(
        [
            BlockTypeDefinition(type=STARTER_BLOCK_TYPE, primary_output="input"),
            BlockTypeDefinition(type="function", code_context=True, primary_output="result"),
            BlockTypeDefinition(
                type="condition",
                code_context=True,
                # Condition expressions are resolved by the condition handler itself
                passthrough_fields=frozenset({"conditions"}),
            ),
            BlockTypeDefinition(
                type="api",
                env_fields=frozenset({"url", "headers"}),
                primary_output="data",
            ),
            BlockTypeDefinition(type="agent", primary_output="content"),
            BlockTypeDefinition(type="router", primary_output="content"),
            BlockTypeDefinition(type="response", primary_output="data"),
            BlockTypeDefinition(type="loop", primary_output="results"),
            BlockTypeDefinition(type="parallel", primary_output="results"),
            BlockTypeDefinition(
                type="knowledge",
                sub_blocks=_sub_blocks(
                    {"id": "operation", "type": "dropdown"},
                    {
                        "id": "knowledgeBaseIds",
                        "type": "knowledge-base-selector",
                        "condition": {"field": "operation", "value": "search"},
                    },
                    {
                        "id": "query",
                        "type": "short-input",
                        "condition": {"field": "operation", "value": "search"},
                    },
                    {
                        "id": "topK",
                        "type": "short-input",
                        "condition": {"field": "operation", "value": "search"},
                    },
                    {
                        "id": "documentId",
                        "type": "document-selector",
                        "condition": {"field": "operation", "value": "upload_chunk"},
                    },
                    {
                        "id": "content",
                        "title": "Chunk Content",
                        "type": "long-input",
                        "condition": {"field": "operation", "value": "upload_chunk"},
                    },
                    {
                        "id": "name",
                        "type": "short-input",
                        "condition": {"field": "operation", "value": "create_document"},
                    },
                    {
                        "id": "content",
                        "title": "Document Content",
                        "type": "long-input",
                        "condition": {"field": "operation", "value": "create_document"},
                    },
                ),
            ),
        ]
    )
    return registry
