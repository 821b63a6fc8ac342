"""Tool definition models for the agent tool registry."""

import re
from enum import Enum
from typing import NewType

from pydantic import BaseModel, Field, field_validator

ToolName = NewType("ToolName", str)

_TOOL_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_\-]{0,63}$")


def normalize_tool_name(name: str) -> ToolName:
    """Validate a tool name and return its registry key.

    Tool identity is case-insensitive, so the key is the lower-cased,
    whitespace-trimmed name.

    Args:
        name: Raw tool name

    Returns:
        Normalized tool name

    Raises:
        ValueError: If the name is empty or contains invalid characters
    """
    key = name.strip().lower()
    if not _TOOL_NAME_PATTERN.match(key):
        raise ValueError(f"Invalid tool name: {name!r}")
    return ToolName(key)


class ToolCategory(str, Enum):
    """Tool families, registered under different conditions."""

    REASONING = "reasoning"
    SANDBOX = "sandbox"
    LOCAL = "local"
    CUSTOM = "custom"


class ToolDefinition(BaseModel):
    """Metadata for a registered tool."""

    name: str = Field(description="Unique, case-insensitive tool name")
    description: str = Field(description="Tool description shown to the model")
    category: ToolCategory = Field(
        default=ToolCategory.CUSTOM,
        description="Tool family",
    )
    parameters: dict[str, str] = Field(
        default_factory=lambda: {"input": "string"},
        description="Parameter shape, name to type hint",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Normalize tool name to its registry key."""
        return normalize_tool_name(v)
