"""Tests for the unsandboxed local tools."""

import asyncio
import os
import sys
from pathlib import Path

import pytest

from nodeagent.tools.base import NO_SANDBOX
from nodeagent.tools.builtin.local_tools import (
    LocalFindTool,
    LocalListDirTool,
    LocalReadFileTool,
    LocalShellTool,
)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.ts").write_text("export {}")
    (tmp_path / "src" / "util.ts").write_text("export const x = 1")
    (tmp_path / "README.md").write_text("# project")
    return tmp_path


@pytest.mark.asyncio
class TestLocalReadFileTool:
    """Reading host files."""

    async def test_reads_file(self, project: Path) -> None:
        result = await LocalReadFileTool().execute(str(project / "README.md"), NO_SANDBOX)

        assert result == "File content:\n# project"

    async def test_truncates_large_file(self, tmp_path: Path) -> None:
        big = tmp_path / "big.txt"
        big.write_text("a" * 3000)

        result = await LocalReadFileTool(max_bytes=2000).execute(str(big), NO_SANDBOX)

        assert result == f"File content (truncated to 2KB):\n{'a' * 2000}\n...[truncated]"

    async def test_missing_file(self, tmp_path: Path) -> None:
        path = str(tmp_path / "nope.txt")

        assert await LocalReadFileTool().execute(path, NO_SANDBOX) == f"Error: File not found: {path}"

    async def test_directory(self, project: Path) -> None:
        result = await LocalReadFileTool().execute(str(project), NO_SANDBOX)

        assert result == f"Error: Path is a directory, use local_list_dir instead: {project}"


@pytest.mark.asyncio
class TestLocalListDirTool:
    """Listing host directories."""

    async def test_lists_sorted(self, project: Path) -> None:
        result = await LocalListDirTool().execute(str(project), NO_SANDBOX)

        assert result.splitlines() == ["[FILE] README.md (9 bytes)", "[DIR]  src"]

    async def test_empty(self, tmp_path: Path) -> None:
        assert await LocalListDirTool().execute(str(tmp_path), NO_SANDBOX) == "Directory is empty"

    async def test_not_found_and_file(self, project: Path) -> None:
        missing = str(project / "missing")
        readme = str(project / "README.md")

        assert await LocalListDirTool().execute(missing, NO_SANDBOX) == f"Error: Directory not found: {missing}"
        assert await LocalListDirTool().execute(readme, NO_SANDBOX) == (
            f"Error: Path is a file, not a directory: {readme}"
        )


@pytest.mark.asyncio
class TestLocalShellTool:
    """Host shell execution."""

    async def test_stdout(self) -> None:
        assert await LocalShellTool().execute("echo local", NO_SANDBOX) == "local\n"

    async def test_stderr_only(self) -> None:
        assert await LocalShellTool().execute("echo warn >&2", NO_SANDBOX) == "warn\n"

    async def test_no_output(self) -> None:
        assert await LocalShellTool().execute("true", NO_SANDBOX) == "Command completed with no output"

    async def test_nonzero_exit(self) -> None:
        result = await LocalShellTool().execute("echo out; echo err >&2; exit 2", NO_SANDBOX)

        assert result == "out\n\nstderr: err\n\nExit code: 2"

    async def test_output_truncated(self) -> None:
        command = f'{sys.executable} -c "print(\'x\' * 5000)"'

        result = await LocalShellTool(max_output_bytes=100).execute(command, NO_SANDBOX)

        assert result == "x" * 100 + "\n...[output truncated at 100 bytes]"

    async def test_process_stopped_past_output_cap(self, tmp_path: Path) -> None:
        marker = tmp_path / "finished.txt"
        script = (
            "import pathlib, sys; "
            "sys.stdout.write('x' * (3 * 1024 * 1024)); sys.stdout.flush(); "
            f"pathlib.Path({str(marker)!r}).write_text('done')"
        )
        command = f"{sys.executable} -c \"{script}\""

        result = await LocalShellTool(max_output_bytes=1024).execute(command, NO_SANDBOX)
        await asyncio.sleep(0.5)

        assert result == "x" * 1024 + "\n...[output truncated at 1024 bytes]"
        assert not marker.exists()

    @pytest.mark.slow
    async def test_timeout(self) -> None:
        result = await LocalShellTool(timeout_seconds=1).execute("sleep 5", NO_SANDBOX)

        assert result == "Error executing command: timed out after 1 seconds"

    @pytest.mark.slow
    async def test_timeout_kills_background_children(self, tmp_path: Path) -> None:
        marker = tmp_path / "late.txt"

        result = await LocalShellTool(timeout_seconds=1).execute(
            f"(sleep 2; touch {marker}) & sleep 5", NO_SANDBOX
        )
        await asyncio.sleep(2)

        assert result == "Error executing command: timed out after 1 seconds"
        assert not marker.exists()


@pytest.mark.asyncio
class TestLocalFindTool:
    """Glob search below a directory."""

    async def test_finds_matches(self, project: Path) -> None:
        result = await LocalFindTool().execute(f"{project}|*.ts", NO_SANDBOX)

        assert result.splitlines() == [
            os.path.join(project, "src", "app.ts"),
            os.path.join(project, "src", "util.ts"),
        ]

    async def test_respects_max_results(self, project: Path) -> None:
        result = await LocalFindTool(max_results=1).execute(f"{project}|*.ts", NO_SANDBOX)

        assert result == os.path.join(project, "src", "app.ts")

    async def test_no_matches(self, project: Path) -> None:
        result = await LocalFindTool().execute(f"{project}|*.rs", NO_SANDBOX)

        assert result == "No files found matching pattern"

    @pytest.mark.parametrize("raw", ["/tmp", "|*.ts", "/tmp|"])
    async def test_invalid_format(self, raw: str) -> None:
        result = await LocalFindTool().execute(raw, NO_SANDBOX)

        assert result.startswith("Error: Invalid format. Use: directory|pattern")
