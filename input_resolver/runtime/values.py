from __future__ import annotations

import json
import math
from typing import Any, Mapping, Sequence

from input_resolver.errors import InvalidReferencePath, VariableCoercionError
from input_resolver.expr.parser import IndexSegment, PathSegment, PropertySegment
from input_resolver.schema.models import Variable, VariableType


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def walk_path(value: Any, segments: Sequence[PathSegment], raw: str) -> Any:
    """
    Follow `segments` into `value`.

    Returns MISSING when a key or index along the way does not exist. Raises
    InvalidReferencePath when a segment tries to step into a scalar.
    """

    current = value
    for segment in segments:
        if current is None:
            return MISSING
        if isinstance(segment, PropertySegment):
            current = _step(current, segment.key, raw)
        elif isinstance(segment, IndexSegment):
            current = _step(current, segment.index, raw)
        else:
            raise InvalidReferencePath(f"Unsupported segment type {type(segment)!r} in '{raw}'")
        if current is MISSING:
            return MISSING
    return current


def _step(current: Any, key: Any, raw: str) -> Any:
    if isinstance(current, Mapping):
        lookup = str(key)
        return current[lookup] if lookup in current else MISSING
    if isinstance(current, (list, tuple)):
        if isinstance(key, int):
            index = key
        elif isinstance(key, str) and key.isdigit():
            index = int(key)
        else:
            raise InvalidReferencePath(
                f"Cannot access property '{key}' on a list while resolving '<{raw}>'"
            )
        return current[index] if index < len(current) else MISSING
    raise InvalidReferencePath(
        f"Cannot access '{key}' on {type(current).__name__} value while resolving '<{raw}>'"
    )


def coerce_variable(variable: Variable) -> Any:
    """
    Convert a variable's stored value into a native value of its declared type.

    Stored values are usually text typed by a person in the editor; already
    native values of the right shape are returned unchanged.
    """

    value = variable.value
    declared = variable.type

    if declared in (VariableType.plain, VariableType.string):
        return value

    if declared == VariableType.number:
        if _is_number(value):
            return value
        if isinstance(value, str):
            value_str = value.strip()
            if value_str == "":
                raise _variable_error(variable, "must be a valid number")
            try:
                return int(value_str, 10)
            except ValueError:
                pass
            try:
                parsed = float(value_str)
            except ValueError as exc:
                raise _variable_error(variable, f"'{value}' is not a valid number") from exc
            if not math.isfinite(parsed):
                raise _variable_error(variable, f"'{value}' is not a valid number")
            return parsed
        raise _variable_error(variable, "must be a number")

    if declared == VariableType.boolean:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
        raise _variable_error(variable, f"'{value}' is not a valid boolean literal")

    if declared == VariableType.object:
        if isinstance(value, dict):
            return value
        if isinstance(value, str):
            return _parse_json_literal(value, dict, variable)
        raise _variable_error(variable, "must be an object")

    if declared == VariableType.array:
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            return _parse_json_literal(value, list, variable)
        raise _variable_error(variable, "must be an array")

    return value


def _parse_json_literal(value: str, expected_type: type, variable: Variable) -> Any:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as exc:
        raise _variable_error(variable, f"invalid JSON literal: {exc.msg}") from exc

    if not isinstance(parsed, expected_type):
        type_name = "object" if expected_type is dict else "array"
        raise _variable_error(variable, f"JSON literal must decode to an {type_name}")
    return parsed


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _variable_error(variable: Variable, detail: str) -> VariableCoercionError:
    return VariableCoercionError(f"Variable '{variable.name}' {detail}")
