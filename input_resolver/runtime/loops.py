"""
Resolution of `<loop.*>` and `<parallel.*>` references against the iteration
state recorded in the execution context.
"""

from __future__ import annotations

import json
from typing import Any, List, Mapping, Optional, Union

from input_resolver.expr.parser import ReferenceExpr, ReferenceKind
from input_resolver.runtime.values import MISSING, walk_path
from input_resolver.schema.models import ExecutionContext, LoopConfig, ParallelConfig, Workflow
from shared.logger import get_logger

logger = get_logger(__name__)

Container = Union[LoopConfig, ParallelConfig]


def find_container(workflow: Workflow, kind: ReferenceKind, block_id: str) -> Optional[Container]:
    """Return the single loop or parallel containing `block_id`, if exactly one does."""
    containers: Mapping[str, Container] = (
        workflow.loops if kind == ReferenceKind.loop else workflow.parallels
    )
    members: List[Container] = [c for c in containers.values() if block_id in c.nodes]
    if len(members) > 1:
        logger.warning(
            "Block '%s' belongs to %d %ss (%s); leaving %s references unresolved",
            block_id,
            len(members),
            kind.value,
            ", ".join(sorted(c.id for c in members)),
            kind.value,
        )
        return None
    if not members:
        logger.debug("Block '%s' is not inside a %s", block_id, kind.value)
        return None
    return members[0]


def parse_collection(raw: Any) -> Any:
    """Normalize a static collection (list, object or JSON text); MISSING when absent."""
    if raw is None:
        return MISSING
    if isinstance(raw, (list, dict)):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return MISSING
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            logger.debug("Collection '%s' is not valid JSON", raw)
            return MISSING
        if isinstance(parsed, (list, dict)):
            return parsed
    return MISSING


def _item_at(collection: Any, index: int) -> Any:
    if isinstance(collection, list):
        return collection[index] if index < len(collection) else MISSING
    if isinstance(collection, dict):
        entries = list(collection.items())
        if index < len(entries):
            key, value = entries[index]
            return [key, value]
    return MISSING


def resolve_context_reference(
    reference: ReferenceExpr,
    container: Container,
    context: ExecutionContext,
) -> Any:
    """
    Resolve `index`, `items` or `currentItem[.path]` for the enclosing loop or
    parallel. Returns MISSING when the value is not available.
    """

    if reference.kind == ReferenceKind.loop:
        iterations = context.loop_iterations
        snapshots = context.loop_items
        collections = context.loop_collections
        static = container.for_each_items if isinstance(container, LoopConfig) else None
    else:
        iterations = context.parallel_iterations
        snapshots = context.parallel_items
        collections = context.parallel_collections
        static = container.distribution if isinstance(container, ParallelConfig) else None

    # Iteration counters are incremented when an iteration starts
    index = max(iterations.get(container.id, 0) - 1, 0)
    prop = reference.property_name

    if prop == "index":
        return index

    # Editor contexts keep the live collection under `<id>_items` beside the item
    if container.id in collections:
        collection = collections[container.id]
    elif f"{container.id}_items" in snapshots:
        collection = snapshots[f"{container.id}_items"]
    else:
        collection = parse_collection(static)

    if prop == "items":
        return collection

    if container.id in snapshots:
        item = snapshots[container.id]
    else:
        item = _item_at(collection, index)
    if item is MISSING:
        return MISSING
    return walk_path(item, reference.segments[1:], reference.raw)
