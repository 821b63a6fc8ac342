"""Local tools operating on the unsandboxed host filesystem.

These tools bypass the workspace jail. They are meant for trusted local
operation; gating them is the caller's responsibility.
"""

import asyncio
import fnmatch
import os

from ...config.settings import get_settings
from ...models.tool_integration import ToolCategory, ToolDefinition
from ...services.process_runner import kill_process_tree, read_bounded, spawn_shell
from ..base import Tool, ToolContext


def _local_definition(name: str, description: str, parameter: str) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=description,
        category=ToolCategory.LOCAL,
        parameters={"input": parameter},
    )


class LocalReadFileTool(Tool):
    """Read any file by absolute path, truncating large content."""

    def __init__(self, max_bytes: int | None = None):
        super().__init__(
            _local_definition(
                "local_read_file",
                "Read content from any file on the local filesystem. "
                "Use absolute paths like /home/user/project/file.txt",
                "string (absolute file path)",
            )
        )
        self.max_bytes = max_bytes or get_settings().local_read_max_bytes

    async def execute(self, input: str, context: ToolContext) -> str:
        path = input.strip()
        try:
            if not os.path.exists(path):
                return f"Error: File not found: {path}"
            if os.path.isdir(path):
                return f"Error: Path is a directory, use local_list_dir instead: {path}"

            with open(path, encoding="utf-8", errors="replace") as f:
                content = f.read(self.max_bytes + 1)
        except OSError as e:
            return f"Error reading file: {e}"

        if len(content) > self.max_bytes:
            limit_kb = self.max_bytes // 1000
            return (
                f"File content (truncated to {limit_kb}KB):\n"
                f"{content[: self.max_bytes]}\n...[truncated]"
            )
        return f"File content:\n{content}"


class LocalListDirTool(Tool):
    """List a directory by absolute path."""

    def __init__(self):
        super().__init__(
            _local_definition(
                "local_list_dir",
                "List files and directories at an absolute path. Example: /home/user/project",
                "string (absolute directory path)",
            )
        )

    async def execute(self, input: str, context: ToolContext) -> str:
        path = input.strip()
        try:
            if not os.path.exists(path):
                return f"Error: Directory not found: {path}"
            if not os.path.isdir(path):
                return f"Error: Path is a file, not a directory: {path}"

            lines = []
            with os.scandir(path) as entries:
                for entry in sorted(entries, key=lambda e: e.name):
                    if entry.is_dir():
                        lines.append(f"[DIR]  {entry.name}")
                    else:
                        lines.append(f"[FILE] {entry.name} ({entry.stat().st_size} bytes)")
        except OSError as e:
            return f"Error listing directory: {e}"

        return "\n".join(lines) if lines else "Directory is empty"


class LocalShellTool(Tool):
    """Run a shell command on the host with a timeout and output cap.

    The whole process group is killed on timeout or once either stream
    exceeds the cap; the partial output is returned with a marker.
    """

    def __init__(self, timeout_seconds: int | None = None, max_output_bytes: int | None = None):
        super().__init__(
            _local_definition(
                "local_shell",
                "Execute a shell command on the local system. "
                "Use for running commands like ls, cat, grep, find, etc.",
                "string (command)",
            )
        )
        settings = get_settings()
        self.timeout_seconds = timeout_seconds or settings.local_shell_timeout_seconds
        self.max_output_bytes = max_output_bytes or settings.local_shell_max_output_bytes

    async def execute(self, input: str, context: ToolContext) -> str:
        command = input.strip()
        self.logger.info("local_shell_command", command=command[:100])

        try:
            process = await spawn_shell(command)
        except OSError as e:
            return f"Error executing command: {e}"

        try:
            (stdout, stdout_over), (stderr, stderr_over), _ = await asyncio.wait_for(
                asyncio.gather(
                    read_bounded(process, process.stdout, self.max_output_bytes),
                    read_bounded(process, process.stderr, self.max_output_bytes),
                    process.wait(),
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            kill_process_tree(process)
            await process.wait()
            self.logger.warning("local_shell_timeout", timeout=self.timeout_seconds)
            return f"Error executing command: timed out after {self.timeout_seconds} seconds"

        if stdout_over or stderr_over:
            self.logger.warning("local_shell_output_exceeded", max_bytes=self.max_output_bytes)
            return f"{stdout or stderr}\n...[output truncated at {self.max_output_bytes} bytes]"

        if process.returncode != 0:
            return f"{stdout}\nstderr: {stderr}\nExit code: {process.returncode}"
        return stdout or stderr or "Command completed with no output"


class LocalFindTool(Tool):
    """Find files under a directory whose name matches a glob."""

    def __init__(self, max_results: int | None = None):
        super().__init__(
            _local_definition(
                "local_find",
                "Find files matching a pattern in a directory. "
                'Input format: directory|pattern (e.g., "/home/user/project|*.ts")',
                "string (directory|pattern)",
            )
        )
        self.max_results = max_results or get_settings().local_find_max_results

    def _find(self, directory: str, pattern: str) -> list[str]:
        matches: list[str] = []
        for root, dirs, files in os.walk(directory):
            dirs.sort()
            for name in sorted(files):
                if fnmatch.fnmatch(name, pattern):
                    matches.append(os.path.join(root, name))
                    if len(matches) >= self.max_results:
                        return matches
        return matches

    async def execute(self, input: str, context: ToolContext) -> str:
        directory, sep, pattern = input.partition("|")
        directory, pattern = directory.strip(), pattern.strip()
        if not sep or not directory or not pattern:
            return 'Error: Invalid format. Use: directory|pattern (e.g., "/home/user/project|*.ts")'

        try:
            matches = await asyncio.to_thread(self._find, directory, pattern)
        except OSError as e:
            return f"Error: {e}"

        return "\n".join(matches) if matches else "No files found matching pattern"


LOCAL_TOOLS = (LocalReadFileTool, LocalListDirTool, LocalShellTool, LocalFindTool)
