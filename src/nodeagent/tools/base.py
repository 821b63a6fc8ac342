"""Base tool interface and execution context variants.

Every tool honours the same contract: ``execute(input, context) -> str``. The
context tells sandbox tools where the workspace sandbox lives. It is one of
three variants:

- ``LocalSandbox``: the sandbox is on this node and reached through a SandboxStore
- ``RemoteSandbox``: the sandbox is on another node and reached through a delegate
- ``SandboxUnavailable``: no sandbox; sandbox tools answer with an error text
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import structlog

from ..models.sandbox import ExecutionResult, ListResult, ReadResult, SandboxResult
from ..models.tool_integration import ToolCategory, ToolDefinition

if TYPE_CHECKING:
    from ..services.sandbox_store import SandboxStore

logger = structlog.get_logger()


class SandboxDelegate(Protocol):
    """Facade over a remote node's sandbox.

    Each call returns the same result shapes as the matching SandboxStore
    method so tool output is identical in both modes.
    """

    async def write_file(
        self, node_id: str, workspace_id: str, path: str, content: str
    ) -> SandboxResult: ...

    async def read_file(self, node_id: str, workspace_id: str, path: str) -> ReadResult: ...

    async def list_files(self, node_id: str, workspace_id: str, path: str) -> ListResult: ...

    async def delete_file(self, node_id: str, workspace_id: str, path: str) -> SandboxResult: ...

    async def execute(
        self, node_id: str, workspace_id: str, command: str, timeout_ms: int
    ) -> ExecutionResult: ...


@dataclass(frozen=True)
class LocalSandbox:
    """Sandbox hosted by this node."""

    workspace_id: str
    sandbox: SandboxStore


@dataclass(frozen=True)
class RemoteSandbox:
    """Sandbox hosted by another node, reached through a delegate."""

    workspace_id: str
    node_id: str
    delegate: SandboxDelegate


@dataclass(frozen=True)
class SandboxUnavailable:
    """No sandbox is reachable for this execution."""

    workspace_id: str | None = None


ToolContext = LocalSandbox | RemoteSandbox | SandboxUnavailable

NO_SANDBOX = SandboxUnavailable()


def build_tool_context(
    workspace_id: str | None,
    sandbox: SandboxStore | None = None,
    node_id: str | None = None,
    delegate: SandboxDelegate | None = None,
) -> ToolContext:
    """
    Build the context variant from optional handles.

    A direct sandbox handle wins over a remote one. Remote mode needs both a
    node id and a delegate.

    Args:
        workspace_id: Workspace the run operates on
        sandbox: Local SandboxStore
        node_id: Remote node hosting the sandbox
        delegate: Remote sandbox facade

    Returns:
        ToolContext variant
    """
    if workspace_id and sandbox is not None:
        return LocalSandbox(workspace_id=workspace_id, sandbox=sandbox)
    if workspace_id and node_id and delegate is not None:
        return RemoteSandbox(workspace_id=workspace_id, node_id=node_id, delegate=delegate)
    return SandboxUnavailable(workspace_id=workspace_id)


def has_sandbox(context: ToolContext | None) -> bool:
    """Whether the context can back sandbox tools."""
    return isinstance(context, (LocalSandbox, RemoteSandbox))


class Tool(ABC):
    """Abstract base class for all agent tools.

    Implementations receive the cleaned input string and the execution
    context and return text. They should report failures as text; anything
    they raise is converted to an error observation by the registry.

    Attributes:
        metadata: ToolDefinition with name, description and category

    Example:
        ```python
        class EchoTool(Tool):
            def __init__(self):
                super().__init__(
                    ToolDefinition(name="echo", description="Echo the input")
                )

            async def execute(self, input: str, context: ToolContext) -> str:
                return input
        ```
    """

    def __init__(self, metadata: ToolDefinition):
        """Initialize tool with metadata definition.

        Args:
            metadata: ToolDefinition containing tool configuration
        """
        self.metadata = metadata
        self.logger = logger.bind(
            tool_name=metadata.name,
            category=metadata.category.value,
        )

    @property
    def name(self) -> str:
        """Registry key of this tool."""
        return self.metadata.name

    @property
    def description(self) -> str:
        """Description shown to the model."""
        return self.metadata.description

    @abstractmethod
    async def execute(self, input: str, context: ToolContext) -> str:
        """Execute the tool.

        Args:
            input: Trimmed, unquoted tool input
            context: Execution context variant for this run

        Returns:
            Observation text
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


ToolHandler = Callable[[str, ToolContext], Awaitable[str]]


class FunctionTool(Tool):
    """Tool backed by a plain async function."""

    def __init__(
        self,
        name: str,
        description: str,
        handler: ToolHandler,
        category: ToolCategory = ToolCategory.CUSTOM,
        parameters: dict[str, str] | None = None,
    ):
        super().__init__(
            ToolDefinition(
                name=name,
                description=description,
                category=category,
                parameters=parameters or {"input": "string"},
            )
        )
        self._handler = handler

    async def execute(self, input: str, context: ToolContext) -> str:
        return await self._handler(input, context)
