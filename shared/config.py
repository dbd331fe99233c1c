"""
Type-safe configuration for the input resolver using Pydantic Settings.

This module provides a centralized, type-safe configuration system
that loads from environment variables and .env files.

Usage:
    from shared.config import config

    if config.parse_json_inputs:
        ...
"""
import re
from typing import List, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_NAME_PARTS = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")


def _name_parts(name: str) -> Tuple[str, ...]:
    """Split `apiKey`, `API_KEY` or `x-api-key` into lowercase words."""
    return tuple(part.lower() for part in _NAME_PARTS.findall(name))


class ResolverConfig(BaseSettings):
    """
    Central configuration for block input resolution.

    All configuration is loaded from environment variables or .env file.
    Provides type safety and validation at startup.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ============================================================================
    # Logging
    # ============================================================================

    log_level: str = Field(default="INFO", description="Log level for resolver loggers (DEBUG, INFO, ...)")

    # ============================================================================
    # Environment variable substitution
    # ============================================================================

    secret_field_markers: List[str] = Field(
        default_factory=lambda: ["apikey", "api_key", "secret", "token", "password"],
        description="Words that mark a parameter as secret-bearing, matched against the words of "
        "the field name (`accessToken` matches `token`, `maxTokens` does not). "
        "{{ENV}} tokens embedded in such fields are substituted.",
    )
    strict_environment_variables: bool = Field(
        default=True,
        description="If True, a required {{ENV}} substitution with no matching variable raises. "
        "If False, the token is left verbatim.",
    )

    # ============================================================================
    # Input post-processing
    # ============================================================================

    parse_json_inputs: bool = Field(
        default=True,
        description="Parse resolved text of parameters declared as 'json' into structured values",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @field_validator("secret_field_markers")
    @classmethod
    def _normalize_markers(cls, value: List[str]) -> List[str]:
        return [marker.strip().lower() for marker in value if marker and marker.strip()]

    def is_secret_field(self, field_name: str) -> bool:
        """
        Check if a parameter name looks like it carries a credential.

        A marker matches a run of whole words in the field name, so `api_key`
        matches `apiKey` and `X-API-Key` but `token` does not match `maxTokens`.
        """
        words = _name_parts(field_name)
        markers = {"".join(_name_parts(marker)) for marker in self.secret_field_markers}
        for start in range(len(words)):
            for end in range(start + 1, len(words) + 1):
                if "".join(words[start:end]) in markers:
                    return True
        return False


# ============================================================================
# Global Config Instance
# ============================================================================

config = ResolverConfig()
