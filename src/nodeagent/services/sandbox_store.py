"""Per-workspace sandbox storage and gated command execution.

Each workspace gets an isolated subtree ``<base>/<workspace_id>/sandbox`` with a
fixed ``code/output/data`` layout and a metadata record next to it. Every
operation validates the workspace id and relative path before touching the
filesystem, and returns a structured result instead of raising.

Quota enforcement walks the whole tree before every write. It is advisory and
assumes a single writer per workspace; there is no cross-call locking.
"""

import asyncio
import contextlib
import json
import os
import posixpath
import re
import shutil
import tempfile
from datetime import UTC, datetime
from pathlib import Path

import structlog
from pydantic import ValidationError

from ..config.settings import get_settings
from ..exceptions import SandboxValidationError
from ..models.sandbox import (
    ExecutionResult,
    FileInfo,
    ListResult,
    ReadResult,
    SandboxMeta,
    SandboxResult,
    SyncResult,
)
from .content_store import ContentStore
from .process_runner import kill_process_tree, read_bounded, spawn_shell

logger = structlog.get_logger()

SANDBOX_SUBDIRS = ("code", "output", "data")
META_FILENAME = ".sandbox-meta.json"
MANIFEST_FILENAME = "sandbox-manifest.json"

_WORKSPACE_ID_PATTERN = re.compile(r"[A-Za-z0-9_\-]{1,64}")

BLOCKED_PATH_PATTERNS = (
    re.compile(r"\.\.[/\\]"),
    re.compile(r"^[/\\]"),
    re.compile(r"^[a-zA-Z]:[/\\]"),
)

ALLOWED_EXTENSIONS = frozenset(
    {
        # Code
        ".py", ".js", ".ts", ".jsx", ".tsx", ".mjs", ".cjs",
        ".go", ".rs", ".rb", ".php", ".java", ".kt", ".scala",
        ".c", ".cpp", ".h", ".hpp", ".cs", ".swift", ".m",
        ".sh", ".bash", ".zsh", ".ps1", ".bat", ".cmd",
        # Config
        ".json", ".yaml", ".yml", ".toml", ".ini", ".env", ".xml",
        # Web
        ".html", ".css", ".scss", ".less",
        # Data and text
        ".txt", ".md", ".csv", ".log",
        # Build
        ".dockerfile", ".makefile", ".gradle",
    }
)

ALLOWED_BASENAMES = frozenset(
    {"makefile", "dockerfile", "jenkinsfile", "vagrantfile", "readme", "license"}
)

BLOCKED_COMMAND_PATTERNS = (
    re.compile(r"rm\s+(-rf?|--force)?\s*/(?!\s)"),
    re.compile(r"sudo\s", re.IGNORECASE),
    re.compile(r"su\s+-?\s*$"),
    re.compile(r"chmod\s+777"),
    re.compile(r"curl\s+.*\|\s*(ba)?sh", re.IGNORECASE),
    re.compile(r"wget\s+.*\|\s*(ba)?sh", re.IGNORECASE),
    re.compile(r"mkfs\."),
    re.compile(r"fdisk\s"),
    re.compile(r"dd\s+if="),
    re.compile(r">\s*/dev/sd"),
    re.compile(r"format\s+[a-z]:", re.IGNORECASE),
    re.compile(r"del\s+/[sfq]", re.IGNORECASE),
    re.compile(r"rmdir\s+/s", re.IGNORECASE),
    re.compile(r"reg\s+(delete|add)", re.IGNORECASE),
    re.compile(r"net\s+user", re.IGNORECASE),
    re.compile(r"powershell.*-enc", re.IGNORECASE),
)


class SandboxStore:
    """Directory jail providing validated file CRUD and command execution.

    Attributes:
        base_path: Directory holding one subdirectory per workspace
        max_size_bytes: Quota applied before every write
        content_store: Optional content-addressed store used by sync
    """

    def __init__(
        self,
        base_path: Path | str | None = None,
        max_size_bytes: int | None = None,
        content_store: ContentStore | None = None,
        max_read_bytes: int | None = None,
        output_buffer_bytes: int | None = None,
    ) -> None:
        """
        Initialize sandbox store.

        Args:
            base_path: Root directory for workspace sandboxes
            max_size_bytes: Per-workspace quota in bytes
            content_store: Content-addressed store for sync operations
            max_read_bytes: Largest file read_file will return
            output_buffer_bytes: Per-stream output cap for execute
        """
        settings = get_settings()
        self.base_path = Path(base_path or settings.sandbox_base_path)
        self.max_size_bytes = max_size_bytes or settings.sandbox_max_size_bytes
        self.max_read_bytes = max_read_bytes or settings.sandbox_max_read_mb * 1024 * 1024
        self.output_buffer_bytes = (
            output_buffer_bytes or settings.sandbox_output_buffer_mb * 1024 * 1024
        )
        self.default_timeout_ms = settings.sandbox_default_timeout_ms
        self.content_store = content_store
        self.logger = logger.bind(component="sandbox_store")

    # ------------------------------------------------------------------
    # Paths and validation
    # ------------------------------------------------------------------

    def sandbox_path(self, workspace_id: str) -> Path:
        """Root directory of a workspace sandbox."""
        return self.base_path / workspace_id / "sandbox"

    def _meta_path(self, workspace_id: str) -> Path:
        return self.base_path / workspace_id / META_FILENAME

    def update_base_path(self, base_path: Path | str) -> None:
        """Move future operations to a new storage root."""
        self.base_path = Path(base_path)
        self.logger.info("sandbox_base_path_updated", base_path=str(self.base_path))

    async def close(self) -> None:
        """Close the content store client, if any."""
        if self.content_store is not None:
            await self.content_store.close()

    @staticmethod
    def _validate_workspace_id(workspace_id: str) -> None:
        if not isinstance(workspace_id, str) or not _WORKSPACE_ID_PATTERN.fullmatch(workspace_id):
            raise SandboxValidationError("Invalid workspace ID")

    @staticmethod
    def _validate_path(relative_path: str) -> str:
        """Validate a sandbox-relative path and return its normalized form."""
        if "\x00" in relative_path:
            raise SandboxValidationError("Path traversal or absolute path not allowed")
        for pattern in BLOCKED_PATH_PATTERNS:
            if pattern.search(relative_path):
                raise SandboxValidationError("Path traversal or absolute path not allowed")
        if ".." in re.split(r"[/\\]", relative_path):
            raise SandboxValidationError("Path traversal or absolute path not allowed")

        normalized = posixpath.normpath(relative_path.replace("\\", "/") or ".")
        if normalized.startswith(".."):
            raise SandboxValidationError("Path would escape sandbox")
        return normalized

    @staticmethod
    def _validate_extension(relative_path: str) -> None:
        basename = posixpath.basename(relative_path.replace("\\", "/"))
        extension = os.path.splitext(basename)[1].lower()
        if not extension:
            if basename.lower() in ALLOWED_BASENAMES:
                return
        elif extension in ALLOWED_EXTENSIONS:
            return
        raise SandboxValidationError(f"File extension not allowed: {extension}")

    @staticmethod
    def _validate_command(command: str) -> None:
        for pattern in BLOCKED_COMMAND_PATTERNS:
            if pattern.search(command):
                raise SandboxValidationError(
                    f"Command blocked for security: matches pattern {pattern.pattern}"
                )

    @staticmethod
    def _ensure_contained(path: Path, root: Path) -> None:
        """Reject paths whose real location is outside the real sandbox root."""
        if not path.resolve().is_relative_to(root.resolve()):
            raise SandboxValidationError("Path traversal detected")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create(self, workspace_id: str) -> SandboxResult:
        """
        Create the sandbox layout and a fresh metadata record.

        Args:
            workspace_id: Workspace identifier

        Returns:
            SandboxResult with the sandbox path on success
        """
        try:
            self._validate_workspace_id(workspace_id)
        except SandboxValidationError as e:
            return SandboxResult(success=False, error=str(e))

        sandbox = self.sandbox_path(workspace_id)
        try:
            for subdir in ("", *SANDBOX_SUBDIRS):
                (sandbox / subdir).mkdir(parents=True, exist_ok=True)
            self._write_meta(SandboxMeta(workspace_id=workspace_id))
        except OSError as e:
            self.logger.error("sandbox_create_failed", workspace_id=workspace_id, error=str(e))
            return SandboxResult(success=False, error=str(e))

        self.logger.info("sandbox_created", workspace_id=workspace_id, path=str(sandbox))
        return SandboxResult(success=True, path=str(sandbox))

    async def ensure(self, workspace_id: str) -> SandboxResult:
        """Create the sandbox if it does not exist yet. Idempotent."""
        try:
            self._validate_workspace_id(workspace_id)
        except SandboxValidationError as e:
            return SandboxResult(success=False, error=str(e))

        sandbox = self.sandbox_path(workspace_id)
        if sandbox.exists():
            return SandboxResult(success=True, path=str(sandbox))
        return await self.create(workspace_id)

    async def delete_sandbox(self, workspace_id: str) -> SandboxResult:
        """Tear down a workspace sandbox together with its metadata."""
        try:
            self._validate_workspace_id(workspace_id)
        except SandboxValidationError as e:
            return SandboxResult(success=False, error=str(e))

        workspace_dir = self.base_path / workspace_id
        try:
            if workspace_dir.exists():
                shutil.rmtree(workspace_dir)
                self.logger.info("sandbox_deleted", workspace_id=workspace_id)
        except OSError as e:
            self.logger.error("sandbox_delete_failed", workspace_id=workspace_id, error=str(e))
            return SandboxResult(success=False, error=str(e))
        return SandboxResult(success=True)

    async def get_meta(self, workspace_id: str) -> SandboxMeta | None:
        """Load the metadata record, or None if missing or unreadable."""
        try:
            self._validate_workspace_id(workspace_id)
        except SandboxValidationError:
            return None

        meta_path = self._meta_path(workspace_id)
        if not meta_path.exists():
            return None
        try:
            return SandboxMeta.model_validate_json(meta_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            self.logger.warning("sandbox_meta_unreadable", workspace_id=workspace_id, error=str(e))
            return None

    def _write_meta(self, meta: SandboxMeta) -> None:
        self._meta_path(meta.workspace_id).write_text(
            meta.model_dump_json(by_alias=True, indent=2),
            encoding="utf-8",
        )

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    async def write_file(self, workspace_id: str, relative_path: str, content: str) -> SandboxResult:
        """
        Write a text file inside the sandbox.

        The write is refused before anything touches disk if the workspace id,
        path or extension is invalid, or if the quota would be exceeded.

        Args:
            workspace_id: Workspace identifier
            relative_path: Destination relative to the sandbox root
            content: UTF-8 text content

        Returns:
            SandboxResult with the relative path on success
        """
        try:
            self._validate_workspace_id(workspace_id)
            self._validate_path(relative_path)
            self._validate_extension(relative_path)
        except SandboxValidationError as e:
            return SandboxResult(success=False, error=str(e))

        ensured = await self.ensure(workspace_id)
        if not ensured.success:
            return ensured

        sandbox = self.sandbox_path(workspace_id)
        full_path = sandbox / relative_path
        data = content.encode("utf-8")

        try:
            current_size = await self.get_size(workspace_id)
            if current_size + len(data) > self.max_size_bytes:
                limit_mb = self.max_size_bytes // (1024 * 1024)
                return SandboxResult(
                    success=False,
                    error=f"Sandbox size limit exceeded (max {limit_mb}MB)",
                )

            self._ensure_contained(full_path, sandbox)
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(data)
        except SandboxValidationError as e:
            return SandboxResult(success=False, error=str(e))
        except OSError as e:
            self.logger.error("sandbox_write_failed", workspace_id=workspace_id, error=str(e))
            return SandboxResult(success=False, error=str(e))

        self.logger.info(
            "sandbox_file_written",
            workspace_id=workspace_id,
            path=relative_path,
            size_bytes=len(data),
        )
        return SandboxResult(success=True, path=relative_path)

    async def read_file(self, workspace_id: str, relative_path: str) -> ReadResult:
        """Read a text file from the sandbox."""
        try:
            self._validate_workspace_id(workspace_id)
            self._validate_path(relative_path)
        except SandboxValidationError as e:
            return ReadResult(success=False, error=str(e))

        sandbox = self.sandbox_path(workspace_id)
        full_path = sandbox / relative_path

        try:
            if not full_path.exists():
                return ReadResult(success=False, error="File not found")
            self._ensure_contained(full_path, sandbox)
            if full_path.is_dir():
                return ReadResult(success=False, error="Path is a directory, not a file")

            size = full_path.stat().st_size
            if size > self.max_read_bytes:
                limit_mb = self.max_read_bytes // (1024 * 1024)
                return ReadResult(success=False, error=f"File too large to read (max {limit_mb}MB)")

            content = full_path.read_bytes().decode("utf-8", errors="replace")
        except SandboxValidationError as e:
            self.logger.warning("sandbox_escape_attempt", workspace_id=workspace_id, path=relative_path)
            return ReadResult(success=False, error=str(e))
        except OSError as e:
            self.logger.error("sandbox_read_failed", workspace_id=workspace_id, error=str(e))
            return ReadResult(success=False, error=str(e))

        return ReadResult(success=True, path=relative_path, content=content)

    async def list_files(self, workspace_id: str, relative_path: str = ".") -> ListResult:
        """
        List a sandbox directory, directories first and then by name.

        A missing directory yields an empty listing rather than an error.
        """
        try:
            self._validate_workspace_id(workspace_id)
            normalized = self._validate_path(relative_path or ".")
        except SandboxValidationError as e:
            return ListResult(success=False, error=str(e))

        sandbox = self.sandbox_path(workspace_id)
        full_path = sandbox / normalized

        try:
            if not full_path.exists():
                return ListResult(success=True, path=normalized, files=[])
            self._ensure_contained(full_path, sandbox)
            if not full_path.is_dir():
                return ListResult(success=False, error="Path is not a directory")

            files: list[FileInfo] = []
            with os.scandir(full_path) as entries:
                for entry in entries:
                    stats = entry.stat(follow_symlinks=False)
                    entry_path = posixpath.normpath(posixpath.join(normalized, entry.name))
                    files.append(
                        FileInfo(
                            name=entry.name,
                            path=entry_path,
                            is_directory=entry.is_dir(follow_symlinks=False),
                            size=stats.st_size,
                            modified_at=datetime.fromtimestamp(stats.st_mtime, UTC),
                        )
                    )
        except SandboxValidationError as e:
            return ListResult(success=False, error=str(e))
        except OSError as e:
            self.logger.error("sandbox_list_failed", workspace_id=workspace_id, error=str(e))
            return ListResult(success=False, error=str(e))

        files.sort(key=lambda f: (not f.is_directory, f.name))
        return ListResult(success=True, path=normalized, files=files)

    async def list_files_recursive(self, workspace_id: str, relative_path: str = ".") -> list[FileInfo]:
        """Flatten the sandbox tree below a directory, parents before children."""
        result = await self.list_files(workspace_id, relative_path)
        if not result.success or not result.files:
            return []

        all_files: list[FileInfo] = []
        for info in result.files:
            all_files.append(info)
            if info.is_directory:
                all_files.extend(await self.list_files_recursive(workspace_id, info.path))
        return all_files

    async def delete_file(self, workspace_id: str, relative_path: str) -> SandboxResult:
        """Delete a file or directory. The sandbox root directories are protected."""
        try:
            self._validate_workspace_id(workspace_id)
            normalized = self._validate_path(relative_path)
        except SandboxValidationError as e:
            return SandboxResult(success=False, error=str(e))

        if normalized in (*SANDBOX_SUBDIRS, ".", ""):
            return SandboxResult(success=False, error="Cannot delete root sandbox directories")

        sandbox = self.sandbox_path(workspace_id)
        full_path = sandbox / normalized

        try:
            if not full_path.exists():
                return SandboxResult(success=False, error="File not found")
            self._ensure_contained(full_path, sandbox)
            if full_path.is_dir():
                shutil.rmtree(full_path)
            else:
                full_path.unlink()
        except SandboxValidationError as e:
            self.logger.warning("sandbox_escape_attempt", workspace_id=workspace_id, path=relative_path)
            return SandboxResult(success=False, error=str(e))
        except OSError as e:
            self.logger.error("sandbox_delete_failed", workspace_id=workspace_id, error=str(e))
            return SandboxResult(success=False, error=str(e))

        self.logger.info("sandbox_file_deleted", workspace_id=workspace_id, path=normalized)
        return SandboxResult(success=True, path=normalized)

    async def get_size(self, workspace_id: str) -> int:
        """
        Total size of sandbox files in bytes.

        Errors during the walk are ignored, so the total may be partial.
        """
        try:
            self._validate_workspace_id(workspace_id)
        except SandboxValidationError:
            return 0

        sandbox = self.sandbox_path(workspace_id)
        if not sandbox.exists():
            return 0

        total = 0
        for dirpath, _dirnames, filenames in os.walk(sandbox):
            for filename in filenames:
                with contextlib.suppress(OSError):
                    total += os.lstat(os.path.join(dirpath, filename)).st_size
        return total

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        workspace_id: str,
        command: str,
        timeout_ms: int | None = None,
    ) -> ExecutionResult:
        """
        Run a shell command with the sandbox root as working directory.

        HOME and temp directories are redirected into the sandbox. Each output
        stream is capped at ``output_buffer_bytes`` and the process is killed
        when the cap or the timeout is exceeded.

        Args:
            workspace_id: Workspace identifier
            command: Shell command line
            timeout_ms: Wall-clock limit in milliseconds

        Returns:
            ExecutionResult; a non-zero exit is success=False, not an error
        """
        try:
            self._validate_workspace_id(workspace_id)
            self._validate_command(command)
        except SandboxValidationError as e:
            self.logger.warning("command_blocked", workspace_id=workspace_id, command=command[:100])
            return ExecutionResult(success=False, exit_code=-1, error=str(e))

        ensured = await self.ensure(workspace_id)
        if not ensured.success:
            return ExecutionResult(success=False, exit_code=-1, error=ensured.error)

        sandbox = self.sandbox_path(workspace_id)
        output_dir = str(sandbox / "output")
        env = {
            **os.environ,
            "HOME": str(sandbox),
            "USERPROFILE": str(sandbox),
            "TMPDIR": output_dir,
            "TEMP": output_dir,
            "TMP": output_dir,
        }
        timeout = (timeout_ms or self.default_timeout_ms) / 1000

        self.logger.info(
            "sandbox_command_start",
            workspace_id=workspace_id,
            command=command[:100],
            timeout_seconds=timeout,
        )

        try:
            process = await spawn_shell(command, cwd=str(sandbox), env=env)
        except OSError as e:
            self.logger.error("sandbox_command_spawn_failed", workspace_id=workspace_id, error=str(e))
            return ExecutionResult(success=False, exit_code=-1, error=str(e))

        try:
            (stdout, stdout_over), (stderr, stderr_over), _ = await asyncio.wait_for(
                asyncio.gather(
                    read_bounded(process, process.stdout, self.output_buffer_bytes),
                    read_bounded(process, process.stderr, self.output_buffer_bytes),
                    process.wait(),
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            kill_process_tree(process)
            await process.wait()
            self.logger.warning(
                "sandbox_command_timeout",
                workspace_id=workspace_id,
                timeout_seconds=timeout,
            )
            return ExecutionResult(
                success=False,
                exit_code=process.returncode if process.returncode is not None else -1,
                error="Command timed out",
            )

        exit_code = process.returncode if process.returncode is not None else -1
        overflowed = [name for name, over in (("stdout", stdout_over), ("stderr", stderr_over)) if over]
        if overflowed:
            limit_mb = self.output_buffer_bytes // (1024 * 1024)
            return ExecutionResult(
                success=False,
                stdout=stdout,
                stderr=stderr,
                exit_code=exit_code,
                error=f"Output exceeded buffer limit (max {limit_mb}MB on {', '.join(overflowed)})",
            )

        self.logger.info("sandbox_command_completed", workspace_id=workspace_id, exit_code=exit_code)
        return ExecutionResult(
            success=exit_code == 0,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
        )

    # ------------------------------------------------------------------
    # Content-addressed sync
    # ------------------------------------------------------------------

    async def sync_out(self, workspace_id: str) -> SyncResult:
        """
        Store every sandbox file in the content store and pin a manifest.

        Symlinks are skipped so that nothing outside the sandbox is uploaded.

        Returns:
            SyncResult carrying the manifest content id
        """
        if self.content_store is None:
            return SyncResult(success=False, error="IPFS not configured")
        try:
            self._validate_workspace_id(workspace_id)
        except SandboxValidationError as e:
            return SyncResult(success=False, error=str(e))

        sandbox = self.sandbox_path(workspace_id)
        if not sandbox.exists():
            return SyncResult(success=False, error="Sandbox not found")

        try:
            manifest: dict[str, str] = {}
            for info in await self.list_files_recursive(workspace_id):
                if info.is_directory:
                    continue
                file_path = sandbox / info.path
                if file_path.is_symlink():
                    self.logger.warning(
                        "sandbox_sync_symlink_skipped", workspace_id=workspace_id, path=info.path
                    )
                    continue
                manifest[info.path] = await self.content_store.add(file_path)

            manifest_content = json.dumps(
                {
                    "workspaceId": workspace_id,
                    "syncedAt": datetime.now(UTC).isoformat(),
                    "files": manifest,
                },
                indent=2,
            )
            manifest_cid = await self.content_store.add_content(
                manifest_content.encode("utf-8"),
                MANIFEST_FILENAME,
            )
            await self.content_store.pin(manifest_cid)

            meta = await self.get_meta(workspace_id) or SandboxMeta(workspace_id=workspace_id)
            meta.last_sync_content_id = manifest_cid
            meta.total_size_bytes = await self.get_size(workspace_id)
            self._write_meta(meta)
        except Exception as e:
            self.logger.error("sandbox_sync_out_failed", workspace_id=workspace_id, error=str(e))
            return SyncResult(success=False, error=str(e))

        self.logger.info(
            "sandbox_synced_out",
            workspace_id=workspace_id,
            content_id=manifest_cid,
            file_count=len(manifest),
        )
        return SyncResult(success=True, content_id=manifest_cid)

    async def sync_in(self, workspace_id: str, manifest_cid: str) -> SyncResult:
        """Replay a stored manifest into a freshly ensured sandbox."""
        if self.content_store is None:
            return SyncResult(success=False, error="IPFS not configured")
        try:
            self._validate_workspace_id(workspace_id)
        except SandboxValidationError as e:
            return SyncResult(success=False, error=str(e))

        try:
            with tempfile.TemporaryDirectory(prefix="nodeagent-manifest-") as tmpdir:
                manifest_path = Path(tmpdir) / MANIFEST_FILENAME
                await self.content_store.get(manifest_cid, manifest_path)
                manifest = json.loads(manifest_path.read_text(encoding="utf-8"))

            ensured = await self.ensure(workspace_id)
            if not ensured.success:
                return SyncResult(success=False, error=ensured.error)
            sandbox = self.sandbox_path(workspace_id)

            files: dict[str, str] = manifest.get("files", {})
            for relative_path, cid in files.items():
                normalized = self._validate_path(relative_path)
                full_path = sandbox / normalized
                self._ensure_contained(full_path, sandbox)
                full_path.parent.mkdir(parents=True, exist_ok=True)
                await self.content_store.get(cid, full_path)
        except Exception as e:
            self.logger.error("sandbox_sync_in_failed", workspace_id=workspace_id, error=str(e))
            return SyncResult(success=False, error=str(e))

        self.logger.info(
            "sandbox_synced_in",
            workspace_id=workspace_id,
            content_id=manifest_cid,
            file_count=len(files),
        )
        return SyncResult(success=True, content_id=manifest_cid)
