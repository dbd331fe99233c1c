from __future__ import annotations

from typing import Any, Dict, Optional

import pytest

from input_resolver.errors import ReferenceValidationError
from input_resolver.schema.models import Block, Workflow
from input_resolver.validate_refs import validate_references


def _block(block_id: str, block_type: str, name: str, params: Optional[Dict[str, Any]] = None, enabled: bool = True) -> Block:
    return Block.model_validate(
        {
            "id": block_id,
            "metadata": {"id": block_type, "name": name},
            "config": {"tool": block_type, "params": params or {}},
            "enabled": enabled,
        }
    )


def _workflow(*blocks: Block) -> Workflow:
    return Workflow(blocks=[_block("starter-1", "starter", "Start"), *blocks])


def test_valid_workflow_passes() -> None:
    workflow = _workflow(
        _block("agent-1", "agent", "Agent", {"prompt": "Answer <start.input>"}),
        _block("function-1", "function", "Function", {"code": "return <agent-1.content> + <variable.x>"}),
    )

    validate_references(workflow, {"agent-1": ["starter-1"], "function-1": ["agent-1", "starter-1"]})


def test_all_problems_are_reported_together() -> None:
    workflow = _workflow(
        _block("agent-1", "agent", "Agent"),
        _block("off-1", "agent", "Switched Off", enabled=False),
        _block(
            "function-1",
            "function",
            "Function",
            {"code": "<agent-1.content> <off-1.content>", "other": "<ghost.value>"},
        ),
    )

    with pytest.raises(ReferenceValidationError) as excinfo:
        validate_references(workflow, {"function-1": ["starter-1", "off-1"]})

    problems = excinfo.value.problems
    assert len(problems) == 3
    assert problems[0].startswith('Function.code: Block "agent-1" is not connected to this block')
    assert problems[1] == (
        'Function.code: Block "Switched Off" is disabled, and block "Function" cannot reference its outputs.'
    )
    assert problems[2].startswith('Function.other: Block "ghost" is not connected')


def test_disabled_blocks_and_passthrough_fields_are_skipped() -> None:
    workflow = _workflow(
        _block("agent-1", "agent", "Agent"),
        _block("off-1", "function", "Switched Off", {"code": "<agent-1.content>"}, enabled=False),
        _block("condition-1", "condition", "Condition", {"conditions": "<agent-1.content> === 1"}),
    )

    validate_references(workflow, {})


def test_without_accessibility_map_only_starter_is_allowed() -> None:
    workflow = _workflow(_block("agent-1", "agent", "Agent", {"prompt": "<Start.input> <starter-1.input>"}))

    validate_references(workflow)


def test_unknown_dotted_head_only_fails_inside_code() -> None:
    workflow = _workflow(
        _block("response-1", "response", "Response", {"text": "Returns List<java.util.String>"}),
        _block("function-1", "function", "Function", {"code": "return <java.util.String>"}),
    )

    with pytest.raises(ReferenceValidationError) as excinfo:
        validate_references(workflow, {})

    assert len(excinfo.value.problems) == 1
    assert excinfo.value.problems[0].startswith('Function.code: Block "java" is not connected')
    assert excinfo.value.problems[0].endswith("Available connected blocks: Start")
