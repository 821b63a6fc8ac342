"""Tool registration helpers.

Each helper registers one tool family into a ToolRegistry. Registration is
idempotent: re-registering a family replaces the existing instances.
"""

import structlog

from ..config.settings import get_settings
from ..security.scanner import ThreatScanner
from .builtin import (
    CalculatorTool,
    DeleteFileTool,
    ListFilesTool,
    LocalFindTool,
    LocalListDirTool,
    LocalReadFileTool,
    LocalShellTool,
    ReadFileTool,
    RunPythonTool,
    SearchTool,
    ShellTool,
    ThinkTool,
    WriteFileTool,
)
from .registry import ToolRegistry

logger = structlog.get_logger()


def register_reasoning_tools(registry: ToolRegistry) -> None:
    """Register think, search and calculate."""
    for tool in (ThinkTool(), SearchTool(), CalculatorTool()):
        registry.register(tool)
    logger.debug("reasoning_tools_registered", count=3)


def register_sandbox_tools(registry: ToolRegistry, scanner: ThreatScanner | None = None) -> None:
    """Register the workspace sandbox tools.

    Args:
        registry: Target registry
        scanner: Scanner used by the shell tool to vet commands
    """
    tools = [
        WriteFileTool(),
        ReadFileTool(),
        ListFilesTool(),
        DeleteFileTool(),
        ShellTool(scanner=scanner),
        RunPythonTool(),
    ]
    for tool in tools:
        registry.register(tool)
    logger.debug("sandbox_tools_registered", count=len(tools))


def register_local_tools(registry: ToolRegistry) -> None:
    """Register the unsandboxed host filesystem tools."""
    tools = [LocalReadFileTool(), LocalListDirTool(), LocalShellTool(), LocalFindTool()]
    for tool in tools:
        registry.register(tool)
    logger.debug("local_tools_registered", count=len(tools))


def create_default_registry(
    local_tools_enabled: bool | None = None,
    sandbox_tools_enabled: bool = False,
    scanner: ThreatScanner | None = None,
) -> ToolRegistry:
    """Build a registry with the startup tool set.

    Reasoning tools are always present. Local tools follow the
    ``local_tools_enabled`` setting unless overridden. Sandbox tools are
    normally added later, once a run supplies a sandbox context.

    Args:
        local_tools_enabled: Override for the local tools setting
        sandbox_tools_enabled: Register sandbox tools immediately
        scanner: Scanner handed to the shell tool

    Returns:
        Populated ToolRegistry
    """
    if local_tools_enabled is None:
        local_tools_enabled = get_settings().local_tools_enabled

    registry = ToolRegistry()
    register_reasoning_tools(registry)
    if local_tools_enabled:
        register_local_tools(registry)
    if sandbox_tools_enabled:
        register_sandbox_tools(registry, scanner=scanner)

    logger.info("tool_registry_created", total_tools=len(registry))
    return registry
