"""
Shared exception hierarchy for block input resolution.
"""

from __future__ import annotations

from typing import Sequence


class InputResolutionError(Exception):
    """Base class for all errors raised while resolving block inputs."""


class DisabledBlockReference(InputResolutionError):
    """Raised when a block references the output of a disabled block."""

    def __init__(self, block_name: str, referencing_block: str) -> None:
        self.block_name = block_name
        self.referencing_block = referencing_block
        super().__init__(
            f'Block "{block_name}" is disabled, and block "{referencing_block}" '
            "cannot reference its outputs."
        )


class UnconnectedBlockReference(InputResolutionError):
    """Raised when a referenced block is outside the referencing block's accessibility set."""

    def __init__(self, reference: str, available: Sequence[str]) -> None:
        self.reference = reference
        self.available = list(available)
        listing = ", ".join(self.available) if self.available else "none"
        super().__init__(
            f'Block "{reference}" is not connected to this block. '
            f"Available connected blocks: {listing}"
        )


class InvalidReferencePath(InputResolutionError):
    """Raised when a reference path walks into a value that has no fields."""


class VariableCoercionError(InputResolutionError):
    """Raised when a referenced variable's stored text does not match its declared type."""


class EnvironmentVariableNotFound(InputResolutionError):
    """Raised when a required {{ENV}} substitution has no matching environment variable."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Environment variable "{name}" was not found.')


class ReferenceValidationError(InputResolutionError):
    """Raised by the static validator with every problem found in a workflow."""

    def __init__(self, problems: Sequence[str]) -> None:
        self.problems = list(problems)
        super().__init__("\n".join(self.problems))


class InvalidVariableValue(ValueError):
    """Raised on strict variable writes when the value does not match the declared type."""

    def __init__(self, variable_name: str, detail: str) -> None:
        self.variable_name = variable_name
        self.detail = detail
        super().__init__(f"Variable '{variable_name}': {detail}")
