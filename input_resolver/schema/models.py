"""
Pydantic models describing serialized workflows, variables and the
execution snapshot handed to the resolver.

Field aliases follow the camelCase wire format produced by the workflow
editor; snake_case names are accepted as well.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# -----------------------------
# JSON-ish values
# -----------------------------
JSONPrimitive = Union[str, int, float, bool, None]
JSONValue = Union[JSONPrimitive, Dict[str, Any], List[Any]]

STARTER_BLOCK_TYPE = "starter"


class StrictModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        validate_assignment=True,
    )


# -----------------------------
# Blocks
# -----------------------------
class InputType(str, Enum):
    string = "string"
    number = "number"
    boolean = "boolean"
    json = "json"
    plain = "plain"


class Position(StrictModel):
    x: float = 0
    y: float = 0


class BlockMetadata(StrictModel):
    # Block-type tag (e.g. "function", "api", "starter")
    id: str = Field(min_length=1)
    name: str = ""


class BlockConfig(StrictModel):
    tool: str = ""
    params: Dict[str, Any] = Field(default_factory=dict)


class Block(StrictModel):
    id: str = Field(min_length=1)
    metadata: BlockMetadata
    config: BlockConfig = Field(default_factory=BlockConfig)
    inputs: Dict[str, InputType] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    position: Optional[Position] = None
    enabled: bool = True

    @property
    def type(self) -> str:
        return self.metadata.id

    @property
    def name(self) -> str:
        return self.metadata.name or self.id

    @property
    def is_starter(self) -> bool:
        return self.metadata.id == STARTER_BLOCK_TYPE


class Connection(StrictModel):
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")


# -----------------------------
# Loops and parallels
# -----------------------------
class LoopType(str, Enum):
    for_ = "for"
    for_each = "forEach"


class LoopConfig(StrictModel):
    id: str = Field(min_length=1)
    nodes: List[str] = Field(default_factory=list)
    iterations: int = 5
    loop_type: LoopType = Field(default=LoopType.for_, alias="loopType")
    # list, object, or JSON text describing the collection
    for_each_items: Any = Field(default=None, alias="forEachItems")


class ParallelConfig(StrictModel):
    id: str = Field(min_length=1)
    nodes: List[str] = Field(default_factory=list)
    distribution: Any = None
    count: Optional[int] = None
    parallel_type: Optional[str] = Field(default=None, alias="parallelType")


class Workflow(StrictModel):
    version: str = Field(default="1.0")
    blocks: List[Block] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    loops: Dict[str, LoopConfig] = Field(default_factory=dict)
    parallels: Dict[str, ParallelConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_unique_block_ids(self) -> "Workflow":
        seen: Set[str] = set()
        for block in self.blocks:
            if block.id in seen:
                raise ValueError(f"Duplicate block id '{block.id}'")
            seen.add(block.id)
        return self

    def get_block(self, block_id: str) -> Optional[Block]:
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def starter_block(self) -> Optional[Block]:
        for block in self.blocks:
            if block.is_starter:
                return block
        return None


# -----------------------------
# Variables
# -----------------------------
class VariableType(str, Enum):
    plain = "plain"
    # Deprecated alias, migrated to "plain" on write
    string = "string"
    number = "number"
    boolean = "boolean"
    object = "object"
    array = "array"


class Variable(StrictModel):
    id: str = Field(min_length=1)
    workflow_id: str = Field(alias="workflowId")
    name: str = ""
    type: VariableType = VariableType.plain
    # Stored verbatim; never rewritten by validation
    value: Any = ""
    validation_error: Optional[str] = Field(default=None, alias="validationError")


# -----------------------------
# Execution snapshot
# -----------------------------
class BlockState(StrictModel):
    output: Dict[str, Any] = Field(default_factory=dict)
    executed: bool = True
    execution_time: float = Field(default=0, alias="executionTime")


class ExecutionContext(StrictModel):
    """
    Snapshot of a workflow run as seen by the resolver.

    Owned and mutated by the orchestration loop between block executions;
    the resolver only reads it.
    """

    # Orchestrators attach their own bookkeeping (logs, decisions, ...)
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    workflow_id: str = Field(default="", alias="workflowId")
    workflow: Optional[Workflow] = None
    block_states: Dict[str, BlockState] = Field(default_factory=dict, alias="blockStates")
    active_execution_path: Set[str] = Field(default_factory=set, alias="activeExecutionPath")
    executed_blocks: Set[str] = Field(default_factory=set, alias="executedBlocks")
    environment_variables: Dict[str, str] = Field(default_factory=dict, alias="environmentVariables")

    loop_iterations: Dict[str, int] = Field(default_factory=dict, alias="loopIterations")
    loop_items: Dict[str, Any] = Field(default_factory=dict, alias="loopItems")
    loop_collections: Dict[str, Any] = Field(default_factory=dict, alias="loopCollections")
    completed_loops: Set[str] = Field(default_factory=set, alias="completedLoops")

    parallel_iterations: Dict[str, int] = Field(default_factory=dict, alias="parallelIterations")
    parallel_items: Dict[str, Any] = Field(default_factory=dict, alias="parallelItems")
    parallel_collections: Dict[str, Any] = Field(default_factory=dict, alias="parallelCollections")

    def has_executed(self, block_id: str) -> bool:
        if block_id in self.executed_blocks:
            return True
        state = self.block_states.get(block_id)
        return state is not None and state.executed

    def is_active(self, block_id: str) -> bool:
        return block_id in self.active_execution_path

    def output_of(self, block_id: str) -> Dict[str, Any]:
        state = self.block_states.get(block_id)
        return state.output if state is not None else {}
