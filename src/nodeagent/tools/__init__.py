"""Agent tools: base interface, registry and built-in tool families."""

from .base import (
    NO_SANDBOX,
    FunctionTool,
    LocalSandbox,
    RemoteSandbox,
    SandboxDelegate,
    SandboxUnavailable,
    Tool,
    ToolContext,
    build_tool_context,
    has_sandbox,
)
from .registration import (
    create_default_registry,
    register_local_tools,
    register_reasoning_tools,
    register_sandbox_tools,
)
from .registry import ToolRegistry, clean_tool_input

__all__ = [
    "Tool",
    "FunctionTool",
    "ToolContext",
    "LocalSandbox",
    "RemoteSandbox",
    "SandboxUnavailable",
    "SandboxDelegate",
    "NO_SANDBOX",
    "build_tool_context",
    "has_sandbox",
    "ToolRegistry",
    "clean_tool_input",
    "register_reasoning_tools",
    "register_sandbox_tools",
    "register_local_tools",
    "create_default_registry",
]
