"""
Declarative visibility conditions attached to block sub-fields.

A block type may declare that a parameter only applies when a sibling
parameter has a given value (`{"field": "operation", "value": "search"}`).
After resolution the inputs whose conditions do not hold are dropped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any, Dict, List, Literal, Mapping, Sequence, Union

from pydantic import Field, TypeAdapter

from input_resolver.schema.models import StrictModel

if TYPE_CHECKING:
    from input_resolver.registry.block_registry import SubBlockConfig


class Equals(StrictModel):
    kind: Literal["equals"] = "equals"
    field: str
    value: Any = None


class OneOf(StrictModel):
    kind: Literal["one_of"] = "one_of"
    field: str
    values: List[Any] = Field(default_factory=list)


class Not(StrictModel):
    kind: Literal["not"] = "not"
    condition: Annotated[Union[Equals, OneOf], Field(discriminator="kind")]


Comparison = Annotated[Union[Equals, OneOf, Not], Field(discriminator="kind")]


class And(StrictModel):
    kind: Literal["and"] = "and"
    conditions: List[Comparison] = Field(min_length=1)


Condition = Annotated[Union[Equals, OneOf, Not, And], Field(discriminator="kind")]

_CONDITION_ADAPTER: TypeAdapter = TypeAdapter(Condition)


def _comparison_from_dict(raw: Mapping[str, Any]) -> Union[Equals, OneOf, Not]:
    field = raw.get("field")
    if not isinstance(field, str) or not field:
        raise ValueError(f"Condition is missing a 'field': {dict(raw)!r}")

    value = raw.get("value")
    base: Union[Equals, OneOf]
    if isinstance(value, list):
        base = OneOf(field=field, values=value)
    else:
        base = Equals(field=field, value=value)
    return Not(condition=base) if raw.get("not") else base


def condition_from_dict(raw: Mapping[str, Any]) -> Union[Equals, OneOf, Not, And]:
    """
    Build a condition from the declarative form
    `{"field", "value", "not"?, "and"?: {"field", "value", "not"?}}`.

    A list `value` means "one of". `and` nests a single comparison; deeper
    nesting is not supported.
    """

    if "kind" in raw:
        return _CONDITION_ADAPTER.validate_python(dict(raw))

    primary = _comparison_from_dict(raw)
    extra = raw.get("and")
    if extra is None:
        return primary
    if not isinstance(extra, Mapping):
        raise ValueError(f"Condition 'and' must be an object, got {type(extra).__name__}")
    if "and" in extra:
        raise ValueError("Nested 'and' conditions are not supported")
    return And(conditions=[primary, _comparison_from_dict(extra)])


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without bool/number coercion (`True` never equals `1`)."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    return left == right


def evaluate_condition(condition: Condition, values: Mapping[str, Any]) -> bool:
    if isinstance(condition, Equals):
        return strict_equals(values.get(condition.field), condition.value)
    if isinstance(condition, OneOf):
        actual = values.get(condition.field)
        return any(strict_equals(actual, candidate) for candidate in condition.values)
    if isinstance(condition, Not):
        return not evaluate_condition(condition.condition, values)
    if isinstance(condition, And):
        return all(evaluate_condition(part, values) for part in condition.conditions)
    raise TypeError(f"Unsupported condition type: {type(condition).__name__}")


def filter_conditional_inputs(
    values: Dict[str, Any],
    sub_blocks: Sequence["SubBlockConfig"],
) -> Dict[str, Any]:
    """
    Drop inputs whose declared sub-fields all carry a condition that does not
    hold against the resolved sibling values.

    Several declarations may share an id (one per operation); the input is
    kept when any of them applies.
    """

    declared: Dict[str, List["SubBlockConfig"]] = {}
    for sub_block in sub_blocks:
        declared.setdefault(sub_block.id, []).append(sub_block)

    filtered: Dict[str, Any] = {}
    for name, value in values.items():
        configs = declared.get(name)
        if not configs or any(
            config.condition is None or evaluate_condition(config.condition, values)
            for config in configs
        ):
            filtered[name] = value
    return filtered
