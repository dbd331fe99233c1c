"""
In-memory store of workflow variables.

Values are kept exactly as written; type checks only record a
`validation_error` for the editor to display.
"""

from __future__ import annotations

import json
import re
import uuid
from typing import Any, Dict, Iterator, List, Mapping, Optional

from input_resolver.errors import InvalidVariableValue
from input_resolver.expr.parser import normalize_name
from input_resolver.schema.models import Variable, VariableType
from shared.logger import get_logger

logger = get_logger(__name__)

_DEFAULT_NAME = re.compile(r"^variable(\d+)$")


def validate_variable(variable: Variable) -> Optional[str]:
    """Return a message describing why the value does not fit the declared type, if it doesn't."""
    value = variable.value

    if variable.type == VariableType.number:
        if isinstance(value, bool):
            return "Not a valid number"
        if isinstance(value, (int, float)):
            return None
        text = str(value).strip()
        # An empty value counts as zero in the editor
        if not text:
            return None
        try:
            float(text)
        except ValueError:
            return "Not a valid number"
        return None

    if variable.type == VariableType.boolean:
        if isinstance(value, bool):
            return None
        if str(value).strip().lower() not in ("true", "false"):
            return 'Expected "true" or "false"'
        return None

    if variable.type == VariableType.object:
        if isinstance(value, dict):
            return None
        text = str(value).strip()
        if not (text.startswith("{") and text.endswith("}")):
            return "Not a valid object format"
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.debug("Object parsing error for variable '%s': %s", variable.name, exc.msg)
            return "Invalid object syntax"
        if not isinstance(parsed, dict):
            return "Not a valid object"
        return None

    if variable.type == VariableType.array:
        if isinstance(value, list):
            return None
        try:
            parsed = json.loads(str(value))
        except json.JSONDecodeError:
            return "Invalid JSON array syntax"
        if not isinstance(parsed, list):
            return "Not a valid JSON array"
        return None

    return None


def rename_variable_references(value: Any, old_name: str, new_name: str) -> Any:
    """
    Rewrite `<variable.old>` references to `<variable.new>` anywhere in a
    parameter tree. Names are compared without whitespace and case.
    """

    old = normalize_name(old_name)
    replacement = f"<variable.{normalize_name(new_name)}>"
    pattern = re.compile(rf"<variable\.{re.escape(old)}>", re.IGNORECASE)

    def rewrite(item: Any) -> Any:
        if isinstance(item, str):
            return pattern.sub(replacement, item)
        if isinstance(item, list):
            return [rewrite(entry) for entry in item]
        if isinstance(item, dict):
            return {key: rewrite(entry) for key, entry in item.items()}
        return item

    return rewrite(value)


class VariableStore:
    """
    Keeps variables keyed by id and applies the write-time rules: default
    naming, per-workflow unique names, migration of the legacy `string` type
    and advisory validation.
    """

    def __init__(self, variables: Optional[Mapping[str, Variable]] = None, *, strict: bool = False) -> None:
        self._variables: Dict[str, Variable] = dict(variables or {})
        self.strict = strict

    def __contains__(self, variable_id: object) -> bool:
        return variable_id in self._variables

    def __iter__(self) -> Iterator[Variable]:
        return iter(list(self._variables.values()))

    def __len__(self) -> int:
        return len(self._variables)

    def get(self, variable_id: str) -> Optional[Variable]:
        return self._variables.get(variable_id)

    def as_mapping(self) -> Dict[str, Variable]:
        return dict(self._variables)

    def by_workflow(self, workflow_id: str) -> List[Variable]:
        return [v for v in self._variables.values() if v.workflow_id == workflow_id]

    def add(
        self,
        workflow_id: str,
        *,
        name: str = "",
        type: VariableType = VariableType.plain,
        value: Any = "",
        variable_id: Optional[str] = None,
    ) -> Variable:
        siblings = self.by_workflow(workflow_id)

        if not name or _DEFAULT_NAME.match(name):
            numbers = [
                int(match.group(1))
                for match in (_DEFAULT_NAME.match(v.name) for v in siblings)
                if match is not None
            ]
            name = f"variable{max(numbers) + 1 if numbers else 1}"

        variable = Variable(
            id=variable_id or str(uuid.uuid4()),
            workflow_id=workflow_id,
            name=self._unique_name(name, siblings),
            type=_migrate_type(type),
            value="" if value is None else value,
        )
        variable.validation_error = self._check(variable)
        self._variables[variable.id] = variable
        logger.debug("Added variable '%s' to workflow '%s'", variable.name, workflow_id)
        return variable

    def update(
        self,
        variable_id: str,
        *,
        name: Optional[str] = None,
        type: Optional[VariableType] = None,
        value: Any = None,
    ) -> Optional[Variable]:
        """
        Apply a partial update. Returns the renamed/retyped variable, or None
        when the id is unknown. Pass `value=""` to clear a value.
        """

        current = self._variables.get(variable_id)
        if current is None:
            return None

        changes: Dict[str, Any] = {}
        if name is not None:
            siblings = [v for v in self.by_workflow(current.workflow_id) if v.id != variable_id]
            # Blank names are a transient editing state and skip the uniqueness check
            changes["name"] = self._unique_name(name, siblings) if name.strip() else name
        if type is not None:
            changes["type"] = _migrate_type(type)
        if value is not None:
            changes["value"] = value

        updated = current.model_copy(update=changes)
        updated.validation_error = None
        if type is not None or value is not None:
            updated.validation_error = self._check(updated)
        self._variables[variable_id] = updated
        return updated

    def delete(self, variable_id: str) -> bool:
        return self._variables.pop(variable_id, None) is not None

    def duplicate(self, variable_id: str, *, new_id: Optional[str] = None) -> Optional[Variable]:
        source = self._variables.get(variable_id)
        if source is None:
            return None

        siblings = self.by_workflow(source.workflow_id)
        base = f"{source.name} (copy)"
        copy = Variable(
            id=new_id or str(uuid.uuid4()),
            workflow_id=source.workflow_id,
            name=self._unique_name(base, siblings),
            type=source.type,
            value=source.value,
        )
        self._variables[copy.id] = copy
        return copy

    @staticmethod
    def _unique_name(name: str, siblings: List[Variable]) -> str:
        taken = {v.name for v in siblings}
        candidate = name
        index = 1
        while candidate in taken:
            candidate = f"{name} ({index})"
            index += 1
        return candidate

    def _check(self, variable: Variable) -> Optional[str]:
        error = validate_variable(variable)
        if error and self.strict:
            raise InvalidVariableValue(variable.name, error)
        return error


def _migrate_type(declared: VariableType) -> VariableType:
    return VariableType.plain if declared == VariableType.string else declared
