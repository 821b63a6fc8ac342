"""Built-in tool implementations.

Three families: reasoning tools (always available), sandbox tools (need a
workspace sandbox) and local tools (unsandboxed host access).
"""

from .local_tools import (
    LOCAL_TOOLS,
    LocalFindTool,
    LocalListDirTool,
    LocalReadFileTool,
    LocalShellTool,
)
from .reasoning_tools import REASONING_TOOLS, CalculatorTool, SearchTool, ThinkTool
from .sandbox_tools import (
    SANDBOX_NOT_AVAILABLE,
    SANDBOX_TOOLS,
    DeleteFileTool,
    ListFilesTool,
    ReadFileTool,
    RunPythonTool,
    ShellTool,
    WriteFileTool,
    resolve_backend,
)

__all__ = [
    # Reasoning tools
    "ThinkTool",
    "SearchTool",
    "CalculatorTool",
    "REASONING_TOOLS",
    # Sandbox tools
    "WriteFileTool",
    "ReadFileTool",
    "ListFilesTool",
    "DeleteFileTool",
    "ShellTool",
    "RunPythonTool",
    "SANDBOX_TOOLS",
    "SANDBOX_NOT_AVAILABLE",
    "resolve_backend",
    # Local tools
    "LocalReadFileTool",
    "LocalListDirTool",
    "LocalShellTool",
    "LocalFindTool",
    "LOCAL_TOOLS",
]
