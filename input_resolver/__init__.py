"""
Public entrypoint for resolving a workflow block's raw parameters into the
concrete inputs it executes with.
"""

from __future__ import annotations

from typing import Any, Dict

from input_resolver.errors import (
    DisabledBlockReference,
    EnvironmentVariableNotFound,
    InputResolutionError,
    InvalidReferencePath,
    InvalidVariableValue,
    ReferenceValidationError,
    UnconnectedBlockReference,
    VariableCoercionError,
)
from input_resolver.registry.block_registry import (
    BlockTypeDefinition,
    BlockTypeRegistry,
    SubBlockConfig,
    default_block_registry,
)
from input_resolver.registry.variable_store import VariableStore, rename_variable_references
from input_resolver.runtime.resolver import InputResolver
from input_resolver.schema.models import Block, ExecutionContext, Workflow
from input_resolver.validate_refs import validate_references


def resolve_inputs(
    workflow: Workflow,
    block: Block,
    context: ExecutionContext,
    **options: Any,
) -> Dict[str, Any]:
    """
    Resolve `block`'s inputs in one call.

    `options` are forwarded to InputResolver (environment_variables,
    workflow_variables, accessible_blocks, block_registry, settings).
    """

    return InputResolver(workflow, **options).resolve_inputs(block, context)


__all__ = [
    "BlockTypeDefinition",
    "BlockTypeRegistry",
    "DisabledBlockReference",
    "EnvironmentVariableNotFound",
    "InputResolutionError",
    "InputResolver",
    "InvalidReferencePath",
    "InvalidVariableValue",
    "ReferenceValidationError",
    "SubBlockConfig",
    "UnconnectedBlockReference",
    "VariableCoercionError",
    "VariableStore",
    "default_block_registry",
    "rename_variable_references",
    "resolve_inputs",
    "validate_references",
]
