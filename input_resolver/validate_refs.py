"""
Static check of block-output references across a whole workflow.

Runs before execution so that every disabled or unconnected reference is
reported at once instead of failing block by block at run time.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from input_resolver.errors import InputResolutionError, ReferenceValidationError
from input_resolver.expr.parser import ReferenceKind, collect_unique_references
from input_resolver.registry.block_registry import BlockTypeRegistry
from input_resolver.runtime.resolver import InputResolver
from input_resolver.schema.models import Block, Workflow


def validate_references(
    workflow: Workflow,
    accessible_blocks: Optional[Mapping[str, Iterable[str]]] = None,
    block_registry: Optional[BlockTypeRegistry] = None,
) -> None:
    resolver = InputResolver(
        workflow,
        accessible_blocks=accessible_blocks,
        block_registry=block_registry,
    )
    errors: List[str] = []

    for block in workflow.blocks:
        # Disabled blocks never run, so their own parameters are not checked
        if not block.enabled:
            continue
        _validate_block(block, resolver, errors)

    if errors:
        raise ReferenceValidationError(errors)


def _validate_block(block: Block, resolver: InputResolver, errors: List[str]) -> None:
    definition = resolver.block_registry.maybe_get(block.type)
    passthrough = definition.passthrough_fields if definition else frozenset()
    code_context = definition is not None and definition.code_context

    for name, value in block.config.params.items():
        if name in passthrough:
            continue
        _validate_value_references(
            block,
            value,
            resolver,
            errors,
            context=f"{block.name}.{name}",
            code_context=code_context,
        )


def _validate_value_references(
    block: Block,
    value: Any,
    resolver: InputResolver,
    errors: List[str],
    *,
    context: str,
    code_context: bool,
) -> None:
    for ref in collect_unique_references([value]):
        if ref.kind not in (ReferenceKind.block, ReferenceKind.start):
            continue

        if ref.kind == ReferenceKind.start:
            target = resolver.workflow.starter_block()
        else:
            target = resolver.find_block(ref.head)

        try:
            if target is None:
                if ref.kind == ReferenceKind.block and ref.segments and code_context:
                    raise resolver.gate.deny_unknown(block, ref.head)
                continue
            resolver.gate.check(target, block, ref.head)
        except InputResolutionError as exc:
            errors.append(f"{context}: {exc}")
