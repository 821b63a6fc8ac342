"""Sandbox models for per-workspace file storage and command execution."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class SandboxMeta(BaseModel):
    """Metadata record stored alongside a workspace sandbox.

    Serialized with camelCase keys so that the on-disk record stays readable
    by other node components.
    """

    model_config = ConfigDict(populate_by_name=True)

    workspace_id: str = Field(alias="workspaceId", description="Workspace identifier")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        alias="createdAt",
        description="Sandbox creation timestamp",
    )
    last_sync_content_id: str | None = Field(
        default=None,
        alias="lastSyncCid",
        description="Content id of the last synced manifest",
    )
    total_size_bytes: int = Field(
        default=0,
        ge=0,
        alias="totalSize",
        description="Sandbox size recorded at last sync",
    )

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        """Serialize timestamp to ISO format."""
        return value.isoformat()


class FileInfo(BaseModel):
    """Directory entry produced by listing a sandbox directory."""

    name: str = Field(description="Entry basename")
    path: str = Field(description="Path relative to the sandbox root, '/' separated")
    is_directory: bool = Field(description="Whether the entry is a directory")
    size: int = Field(ge=0, description="Size in bytes as reported by stat")
    modified_at: datetime = Field(description="Last modification time")


class ExecutionResult(BaseModel):
    """Result of one command invocation inside a sandbox.

    A non-zero exit is reported with success=False and captured output. A
    timeout or a refused command sets ``error``.
    """

    success: bool = Field(description="True when the command exited with code 0")
    stdout: str = Field(default="", description="Captured standard output")
    stderr: str = Field(default="", description="Captured standard error")
    exit_code: int = Field(default=-1, description="Process exit code, -1 if never run")
    error: str | None = Field(default=None, description="Failure reason, if any")


class SandboxResult(BaseModel):
    """Outcome of a sandbox file operation."""

    success: bool = Field(description="Whether the operation succeeded")
    error: str | None = Field(default=None, description="Failure reason")
    path: str | None = Field(default=None, description="Path the operation acted on")


class ReadResult(SandboxResult):
    """Outcome of reading a sandbox file."""

    content: str | None = Field(default=None, description="File content")


class ListResult(SandboxResult):
    """Outcome of listing a sandbox directory."""

    files: list[FileInfo] | None = Field(default=None, description="Directory entries")


class SyncResult(SandboxResult):
    """Outcome of a content-addressed sync."""

    content_id: str | None = Field(default=None, description="Manifest content id")
