"""Sandbox tools: file CRUD, shell and Python execution inside a workspace sandbox.

Each tool resolves the execution context once into a backend bound to the
workspace (local SandboxStore or remote delegate) and formats results the same
way in both modes.
"""

from __future__ import annotations

import shlex
from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol

from ...config.settings import get_settings
from ...models.sandbox import ExecutionResult, ListResult, ReadResult, SandboxResult
from ...models.tool_integration import ToolCategory, ToolDefinition
from ...security.scanner import ThreatScanner, get_default_scanner
from ..base import LocalSandbox, RemoteSandbox, SandboxDelegate, Tool, ToolContext

if TYPE_CHECKING:
    from ...services.sandbox_store import SandboxStore

SANDBOX_NOT_AVAILABLE = "Error: Sandbox not available"


class SandboxBackend(Protocol):
    """Workspace-bound view of a sandbox."""

    async def write_file(self, path: str, content: str) -> SandboxResult: ...

    async def read_file(self, path: str) -> ReadResult: ...

    async def list_files(self, path: str) -> ListResult: ...

    async def delete_file(self, path: str) -> SandboxResult: ...

    async def execute(self, command: str, timeout_ms: int) -> ExecutionResult: ...


class LocalSandboxBackend:
    """Backend calling a SandboxStore on this node."""

    def __init__(self, store: SandboxStore, workspace_id: str) -> None:
        self.store = store
        self.workspace_id = workspace_id

    async def write_file(self, path: str, content: str) -> SandboxResult:
        return await self.store.write_file(self.workspace_id, path, content)

    async def read_file(self, path: str) -> ReadResult:
        return await self.store.read_file(self.workspace_id, path)

    async def list_files(self, path: str) -> ListResult:
        return await self.store.list_files(self.workspace_id, path)

    async def delete_file(self, path: str) -> SandboxResult:
        return await self.store.delete_file(self.workspace_id, path)

    async def execute(self, command: str, timeout_ms: int) -> ExecutionResult:
        return await self.store.execute(self.workspace_id, command, timeout_ms)


class RemoteSandboxBackend:
    """Backend forwarding to a remote node through a delegate."""

    def __init__(self, delegate: SandboxDelegate, node_id: str, workspace_id: str) -> None:
        self.delegate = delegate
        self.node_id = node_id
        self.workspace_id = workspace_id

    async def write_file(self, path: str, content: str) -> SandboxResult:
        return await self.delegate.write_file(self.node_id, self.workspace_id, path, content)

    async def read_file(self, path: str) -> ReadResult:
        return await self.delegate.read_file(self.node_id, self.workspace_id, path)

    async def list_files(self, path: str) -> ListResult:
        return await self.delegate.list_files(self.node_id, self.workspace_id, path)

    async def delete_file(self, path: str) -> SandboxResult:
        return await self.delegate.delete_file(self.node_id, self.workspace_id, path)

    async def execute(self, command: str, timeout_ms: int) -> ExecutionResult:
        return await self.delegate.execute(self.node_id, self.workspace_id, command, timeout_ms)


def resolve_backend(context: ToolContext) -> SandboxBackend | None:
    """Map a context variant to a backend; None when no sandbox is reachable."""
    if isinstance(context, LocalSandbox):
        return LocalSandboxBackend(context.sandbox, context.workspace_id)
    if isinstance(context, RemoteSandbox):
        return RemoteSandboxBackend(context.delegate, context.node_id, context.workspace_id)
    return None


class SandboxTool(Tool):
    """Base class for tools that need a workspace sandbox."""

    def __init__(self, name: str, description: str, parameter: str):
        super().__init__(
            ToolDefinition(
                name=name,
                description=description,
                category=ToolCategory.SANDBOX,
                parameters={"input": parameter},
            )
        )

    async def execute(self, input: str, context: ToolContext) -> str:
        backend = resolve_backend(context)
        if backend is None:
            return SANDBOX_NOT_AVAILABLE
        return await self.run(input, backend)

    @abstractmethod
    async def run(self, input: str, backend: SandboxBackend) -> str:
        """Execute against a resolved backend."""


class WriteFileTool(SandboxTool):
    """Write ``path|content`` into the sandbox."""

    def __init__(self):
        super().__init__(
            "write_file",
            "Write content to a file in the workspace sandbox. "
            "Input format: path|content (e.g., \"code/hello.py|print('hello')\")",
            "string (path|content)",
        )

    async def run(self, input: str, backend: SandboxBackend) -> str:
        path, sep, content = input.partition("|")
        if not sep:
            return "Error: Invalid format. Use: path|content (e.g., \"code/hello.py|print('hello')\")"
        path = path.strip()

        result = await backend.write_file(path, content)
        if result.success:
            return f"File written successfully: {path}"
        return f"Error writing file: {result.error}"


class ReadFileTool(SandboxTool):
    """Read a sandbox file."""

    def __init__(self):
        super().__init__(
            "read_file",
            "Read content from a file in the workspace sandbox",
            "string (file path)",
        )

    async def run(self, input: str, backend: SandboxBackend) -> str:
        result = await backend.read_file(input.strip())
        if result.success and result.content is not None:
            return f"File content:\n{result.content}"
        return f"Error reading file: {result.error}"


class ListFilesTool(SandboxTool):
    """List a sandbox directory."""

    def __init__(self):
        super().__init__(
            "list_files",
            'List files in a directory within the workspace sandbox. Use "." for root.',
            "string (directory path)",
        )

    async def run(self, input: str, backend: SandboxBackend) -> str:
        result = await backend.list_files(input.strip() or ".")
        if not result.success or result.files is None:
            return f"Error listing files: {result.error}"
        if not result.files:
            return "Directory is empty"
        return "\n".join(
            f"{'[DIR]' if f.is_directory else '[FILE]'} {f.name} ({f.size} bytes)"
            for f in result.files
        )


class DeleteFileTool(SandboxTool):
    """Delete a sandbox file or directory."""

    def __init__(self):
        super().__init__(
            "delete_file",
            "Delete a file or directory from the workspace sandbox",
            "string (file path)",
        )

    async def run(self, input: str, backend: SandboxBackend) -> str:
        path = input.strip()
        result = await backend.delete_file(path)
        if result.success:
            return f"Deleted: {path}"
        return f"Error deleting: {result.error}"


class ShellTool(SandboxTool):
    """Run a shell command in the sandbox.

    The command is scanned for threats before dispatch, independently of any
    agent-level gating, because the tool can be used outside an agent run.
    """

    def __init__(self, scanner: ThreatScanner | None = None, timeout_ms: int | None = None):
        super().__init__(
            "shell",
            "Execute a shell command in the workspace sandbox. Commands run in the sandbox directory.",
            "string (command)",
        )
        self.scanner = scanner or get_default_scanner()
        self.timeout_ms = timeout_ms or get_settings().shell_tool_timeout_ms

    async def run(self, input: str, backend: SandboxBackend) -> str:
        command = input.strip()

        scan = self.scanner.scan(command)
        if scan.is_blocking:
            self.logger.warning("shell_command_blocked", command=command[:100], summary=scan.summary)
            return f"Command blocked for security: {scan.summary}"

        result = await backend.execute(command, self.timeout_ms)

        output = ""
        if result.stdout:
            output += f"stdout:\n{result.stdout}\n"
        if result.stderr:
            output += f"stderr:\n{result.stderr}\n"
        output += f"Exit code: {result.exit_code}"
        if not result.success and result.error:
            output += f"\nError: {result.error}"
        return output


class RunPythonTool(SandboxTool):
    """Run a sandbox Python script or inline code."""

    def __init__(self, timeout_ms: int | None = None, python_executable: str | None = None):
        super().__init__(
            "run_python",
            "Execute a Python script in the workspace sandbox. Input is the script path or inline code.",
            "string (script path or code)",
        )
        settings = get_settings()
        self.timeout_ms = timeout_ms or settings.python_tool_timeout_ms
        self.python_executable = python_executable or settings.python_executable

    def build_command(self, source: str) -> str:
        """Command line for a script path or inline code."""
        if source.endswith(".py") and "\n" not in source:
            return f"{self.python_executable} {shlex.quote(source)}"
        return f"{self.python_executable} -c {shlex.quote(source)}"

    async def run(self, input: str, backend: SandboxBackend) -> str:
        result = await backend.execute(self.build_command(input.strip()), self.timeout_ms)

        output = result.stdout
        if result.stderr:
            output += f"\nstderr: {result.stderr}"
        if result.exit_code != 0:
            output += f"\nExit code: {result.exit_code}"
        if result.error:
            output += f"\nError: {result.error}"
        return output or "Script completed with no output"


SANDBOX_TOOLS = (WriteFileTool, ReadFileTool, ListFilesTool, DeleteFileTool, ShellTool, RunPythonTool)
