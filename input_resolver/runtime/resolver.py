"""
Resolution of a block's raw parameters into concrete input values.

Every string in a block's parameter tree may embed `<block.path>`,
`<variable.name>`, `<loop.*>`/`<parallel.*>` references and `{{ENV}}`
tokens. The resolver checks that each block reference is allowed from the
block's position in the graph, reads the referenced value from the
execution snapshot and formats it for the consuming block.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Union

from input_resolver.errors import EnvironmentVariableNotFound
from input_resolver.expr.conditions import filter_conditional_inputs
from input_resolver.expr.parser import (
    EnvironmentToken,
    ReferenceExpr,
    ReferenceKind,
    TemplateLiteral,
    TemplateReference,
    normalize_name,
    parse_template,
    sole_token,
)
from input_resolver.registry.block_registry import (
    BlockTypeDefinition,
    BlockTypeRegistry,
    default_block_registry,
)
from input_resolver.runtime.accessibility import AccessibilityGate
from input_resolver.runtime.formatting import to_code_literal, to_text
from input_resolver.runtime.loops import find_container, resolve_context_reference
from input_resolver.runtime.values import MISSING, coerce_variable, walk_path
from input_resolver.schema.models import (
    Block,
    ExecutionContext,
    InputType,
    Variable,
    Workflow,
)
from shared.config import ResolverConfig, config
from shared.logger import get_logger

logger = get_logger(__name__)

ALL_KINDS: FrozenSet[ReferenceKind] = frozenset(ReferenceKind)
BLOCK_KINDS: FrozenSet[ReferenceKind] = frozenset({ReferenceKind.block, ReferenceKind.start})
# Kinds whose string values are quoted when spliced into code
QUOTED_KINDS: FrozenSet[ReferenceKind] = frozenset(
    {ReferenceKind.block, ReferenceKind.start, ReferenceKind.loop, ReferenceKind.parallel}
)


@dataclass(frozen=True)
class _ResolutionScope:
    block: Block
    context: ExecutionContext
    definition: Optional[BlockTypeDefinition]
    environment: Mapping[str, str]

    @property
    def code_context(self) -> bool:
        return self.definition is not None and self.definition.code_context


@dataclass(frozen=True)
class _Resolved:
    value: Any
    kind: ReferenceKind


class InputResolver:
    """
    Resolves block inputs for one workflow.

    The resolver holds no per-call state, so a single instance can serve
    concurrent resolutions of independent blocks.
    """

    def __init__(
        self,
        workflow: Workflow,
        environment_variables: Optional[Mapping[str, str]] = None,
        workflow_variables: Optional[Mapping[str, Union[Variable, Mapping[str, Any]]]] = None,
        *,
        accessible_blocks: Optional[Mapping[str, Any]] = None,
        block_registry: Optional[BlockTypeRegistry] = None,
        settings: Optional[ResolverConfig] = None,
    ) -> None:
        self.workflow = workflow
        self.environment_variables: Dict[str, str] = dict(environment_variables or {})
        self.workflow_variables: Dict[str, Variable] = {
            key: value if isinstance(value, Variable) else Variable.model_validate(value)
            for key, value in (workflow_variables or {}).items()
        }
        self.block_registry = block_registry or default_block_registry()
        self.settings = settings or config
        self.gate = AccessibilityGate(workflow, accessible_blocks)

        self._by_id: Dict[str, Block] = {block.id: block for block in workflow.blocks}
        self._by_name: Dict[str, Block] = {}
        self._by_normalized: Dict[str, Block] = {}
        for block in workflow.blocks:
            if block.metadata.name:
                self._by_name.setdefault(block.metadata.name, block)
                self._by_normalized.setdefault(normalize_name(block.metadata.name), block)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    def resolve_inputs(self, block: Block, context: ExecutionContext) -> Dict[str, Any]:
        """Resolve every parameter of `block` and drop conditionally hidden ones."""
        scope = self._scope(block, context)
        definition = scope.definition
        passthrough = definition.passthrough_fields if definition else frozenset()

        resolved: Dict[str, Any] = {}
        for name, raw in block.config.params.items():
            if name in passthrough:
                resolved[name] = raw
                continue
            secret = self._is_secret_field(name, definition)
            value = self._resolve_value(raw, scope, secret=secret)
            resolved[name] = self._apply_declared_type(block, name, value)

        if definition is not None and definition.sub_blocks:
            resolved = filter_conditional_inputs(resolved, definition.sub_blocks)
        return resolved

    def resolve_block_references(self, text: str, context: ExecutionContext, block: Block) -> str:
        """Replace only block-output references in `text`, always as text splices."""
        scope = self._scope(block, context)
        return self._render(text, scope, secret=False, kinds=BLOCK_KINDS, resolve_env=False, structural=False)

    def resolve_variable_references(
        self,
        text: str,
        block: Block,
        context: Optional[ExecutionContext] = None,
    ) -> str:
        """Replace only `<variable.*>` references in `text`."""
        scope = self._scope(block, context or ExecutionContext())
        return self._render(
            text,
            scope,
            secret=False,
            kinds=frozenset({ReferenceKind.variable}),
            resolve_env=False,
            structural=False,
        )

    def resolve_env_variables(
        self,
        value: Any,
        force: bool = False,
        context: Optional[ExecutionContext] = None,
    ) -> Any:
        """
        Substitute `{{ENV}}` tokens in `value`.

        A string consisting of a single token is always substituted; embedded
        tokens only when `force` is set.
        """
        environment = self._environment(context)
        return self._map_strings(
            value,
            lambda text: self._render_env_only(text, environment, secret=force),
        )

    # ------------------------------------------------------------------
    # Tree walking
    # ------------------------------------------------------------------
    def _scope(self, block: Block, context: ExecutionContext) -> _ResolutionScope:
        return _ResolutionScope(
            block=block,
            context=context,
            definition=self.block_registry.maybe_get(block.type),
            environment=self._environment(context),
        )

    def _environment(self, context: Optional[ExecutionContext]) -> Dict[str, str]:
        merged = dict(self.environment_variables)
        if context is not None:
            merged.update(context.environment_variables)
        return merged

    def _is_secret_field(self, name: str, definition: Optional[BlockTypeDefinition]) -> bool:
        if definition is not None and name in definition.env_fields:
            return True
        return self.settings.is_secret_field(name)

    def _resolve_value(self, value: Any, scope: _ResolutionScope, *, secret: bool) -> Any:
        return self._map_strings(
            value,
            lambda text: self._render(text, scope, secret=secret),
        )

    def _map_strings(self, value: Any, render: Callable[[str], Any]) -> Any:
        if isinstance(value, str):
            return render(value)
        if isinstance(value, list):
            return [self._map_strings(item, render) for item in value]
        if isinstance(value, dict):
            return {key: self._map_strings(item, render) for key, item in value.items()}
        return value

    def _apply_declared_type(self, block: Block, name: str, value: Any) -> Any:
        if (
            self.settings.parse_json_inputs
            and block.inputs.get(name) == InputType.json
            and isinstance(value, str)
        ):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                logger.debug("Input '%s' of block '%s' is not valid JSON; keeping text", name, block.id)
        return value

    # ------------------------------------------------------------------
    # String rendering
    # ------------------------------------------------------------------
    def _render(
        self,
        text: str,
        scope: _ResolutionScope,
        *,
        secret: bool,
        kinds: FrozenSet[ReferenceKind] = ALL_KINDS,
        resolve_env: bool = True,
        structural: bool = True,
    ) -> Any:
        if structural:
            token = sole_token(text)
            if isinstance(token, EnvironmentToken) and resolve_env:
                return self._env_value(token, scope.environment, default=text)
            if isinstance(token, TemplateReference) and token.reference.kind in kinds:
                resolved = self._resolve_reference(token.reference, scope)
                if resolved is None:
                    return text
                if scope.code_context and resolved.kind in BLOCK_KINDS:
                    return to_code_literal(resolved.value)
                return resolved.value

        pieces: List[str] = []
        for token in parse_template(text):
            if isinstance(token, TemplateLiteral):
                pieces.append(token.text)
            elif isinstance(token, EnvironmentToken):
                if resolve_env and secret:
                    pieces.append(self._env_value(token, scope.environment, default=token.placeholder))
                else:
                    pieces.append(token.placeholder)
            elif token.reference.kind not in kinds:
                pieces.append(token.placeholder)
            else:
                resolved = self._resolve_reference(token.reference, scope)
                if resolved is None:
                    pieces.append(token.placeholder)
                elif scope.code_context and resolved.kind in QUOTED_KINDS:
                    pieces.append(to_code_literal(resolved.value))
                else:
                    pieces.append(to_text(resolved.value))
        return "".join(pieces)

    def _render_env_only(self, text: str, environment: Mapping[str, str], *, secret: bool) -> Any:
        token = sole_token(text)
        if isinstance(token, EnvironmentToken):
            return self._env_value(token, environment, default=text)
        if not secret:
            return text

        pieces: List[str] = []
        for token in parse_template(text):
            if isinstance(token, EnvironmentToken):
                pieces.append(self._env_value(token, environment, default=token.placeholder))
            elif isinstance(token, TemplateLiteral):
                pieces.append(token.text)
            else:
                pieces.append(token.placeholder)
        return "".join(pieces)

    def _env_value(self, token: EnvironmentToken, environment: Mapping[str, str], *, default: str) -> str:
        if token.name in environment:
            return environment[token.name]
        if self.settings.strict_environment_variables:
            raise EnvironmentVariableNotFound(token.name)
        logger.warning("Environment variable '%s' is not defined; leaving token in place", token.name)
        return default

    # ------------------------------------------------------------------
    # Reference resolution
    # ------------------------------------------------------------------
    def _resolve_reference(self, reference: ReferenceExpr, scope: _ResolutionScope) -> Optional[_Resolved]:
        """Resolve a reference, or return None when it should stay literal text."""
        if reference.kind == ReferenceKind.variable:
            return self._resolve_variable(reference, scope)
        if reference.kind in (ReferenceKind.loop, ReferenceKind.parallel):
            return self._resolve_iteration(reference, scope)
        return self._resolve_block_output(reference, scope)

    def _resolve_variable(self, reference: ReferenceExpr, scope: _ResolutionScope) -> Optional[_Resolved]:
        variable = self.find_variable(reference.property_name or "", scope.context.workflow_id)
        if variable is None:
            logger.debug("No variable matches '%s'; leaving it unresolved", reference.placeholder)
            return None
        value = walk_path(coerce_variable(variable), reference.segments[1:], reference.raw)
        return _Resolved("" if value is MISSING else value, reference.kind)

    def find_variable(self, name: str, workflow_id: str = "") -> Optional[Variable]:
        """Look up a variable by whitespace- and case-insensitive name."""
        wanted = normalize_name(name)
        for variable in self.workflow_variables.values():
            if workflow_id and variable.workflow_id and variable.workflow_id != workflow_id:
                continue
            if normalize_name(variable.name) == wanted:
                return variable
        return None

    def _resolve_iteration(self, reference: ReferenceExpr, scope: _ResolutionScope) -> Optional[_Resolved]:
        container = find_container(self.workflow, reference.kind, scope.block.id)
        if container is None:
            return None
        value = resolve_context_reference(reference, container, scope.context)
        return _Resolved("" if value is MISSING else value, reference.kind)

    def find_block(self, head: str) -> Optional[Block]:
        """Match a reference head against block id, display name, then normalized name."""
        if head in self._by_id:
            return self._by_id[head]
        if head in self._by_name:
            return self._by_name[head]
        return self._by_normalized.get(normalize_name(head))

    def _resolve_block_output(self, reference: ReferenceExpr, scope: _ResolutionScope) -> Optional[_Resolved]:
        if reference.kind == ReferenceKind.start:
            target = self.workflow.starter_block()
        else:
            target = self.find_block(reference.head)

        if target is None:
            # Outside code, `List<java.util.String>` is ordinary prose
            if reference.kind == ReferenceKind.block and reference.segments and scope.code_context:
                raise self.gate.deny_unknown(scope.block, reference.head)
            logger.debug("'%s' does not name a block; leaving it as text", reference.placeholder)
            return None

        self.gate.check(target, scope.block, reference.head)

        context = scope.context
        if not context.has_executed(target.id) or not context.is_active(target.id):
            logger.debug(
                "Block '%s' has not produced output on the active path; '%s' resolves to ''",
                target.id,
                reference.placeholder,
            )
            return _Resolved("", reference.kind)

        output = context.output_of(target.id)
        if reference.segments:
            value = walk_path(output, reference.segments, reference.raw)
        else:
            definition = self.block_registry.maybe_get(target.type)
            primary = definition.primary_output if definition else None
            value = output if primary is None else output.get(primary, MISSING)
        return _Resolved("" if value is MISSING else value, reference.kind)
