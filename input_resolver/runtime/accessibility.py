from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Set

from input_resolver.errors import DisabledBlockReference, UnconnectedBlockReference
from input_resolver.schema.models import Block, Workflow


class AccessibilityGate:
    """
    Decides whether one block may read another block's outputs.

    `accessible_blocks` maps a block id to the ids it may reference and is
    computed elsewhere from the workflow graph. Without a map every target
    except the starter block is denied.
    """

    def __init__(
        self,
        workflow: Workflow,
        accessible_blocks: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        self.workflow = workflow
        self._accessible: Optional[Dict[str, Set[str]]] = None
        if accessible_blocks is not None:
            self._accessible = {
                block_id: set(targets) for block_id, targets in accessible_blocks.items()
            }

    def accessible_from(self, block_id: str) -> Set[str]:
        if self._accessible is None:
            return set()
        return self._accessible.get(block_id, set())

    def available_names(self, block_id: str) -> List[str]:
        """Display names of every block `block_id` may read, the starter included."""
        accessible = set(self.accessible_from(block_id))
        starter = self.workflow.starter_block()
        if starter is not None:
            accessible.add(starter.id)
        return sorted(
            block.name for block in self.workflow.blocks if block.id in accessible
        )

    def check(self, target: Block, referencing: Block, reference: str) -> None:
        """Raise when `referencing` may not read `target`; `reference` is the head as written."""
        if not target.enabled:
            raise DisabledBlockReference(target.name, referencing.name)
        if target.is_starter:
            return
        if target.id not in self.accessible_from(referencing.id):
            raise UnconnectedBlockReference(reference, self.available_names(referencing.id))

    def deny_unknown(self, referencing: Block, reference: str) -> UnconnectedBlockReference:
        return UnconnectedBlockReference(reference, self.available_names(referencing.id))
