"""Tool registry for name-based tool dispatch.

This module implements the ToolRegistry class that maps lower-cased tool names
to Tool instances and dispatches agent tool calls.

The registry provides:
- Case-insensitive, last-write-wins registration
- Category indexing for reasoning, sandbox and local tool families
- Dispatch that never raises: unknown tools and tool failures become text
"""

from collections import defaultdict
from typing import Any

import structlog

from ..exceptions import ToolRegistrationError
from ..models.tool_integration import ToolCategory, ToolName, normalize_tool_name
from .base import NO_SANDBOX, Tool, ToolContext

logger = structlog.get_logger()

FINISH_TOOL_DESCRIPTION = "- finish: provide final answer"
FALLBACK_TOOL_DESCRIPTIONS = "- think: reason about the problem\n" + FINISH_TOOL_DESCRIPTION


def clean_tool_input(raw_input: str) -> str:
    """Trim input and strip one layer of matching single or double quotes."""
    cleaned = raw_input.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in ("'", '"'):
        cleaned = cleaned[1:-1]
    return cleaned


class ToolRegistry:
    """Registry mapping tool names to Tool instances.

    Registration is the only mutation path. During a run the registry is read
    only, so concurrent runs can share one instance; each run passes its own
    ToolContext to dispatch().

    Attributes:
        _tools: Dictionary mapping tool name to Tool instances, in registration order
        _categories: Dictionary mapping ToolCategory to lists of tool names

    Example:
        ```python
        registry = ToolRegistry()
        register_reasoning_tools(registry)

        observation = await registry.dispatch("calculate", "2 + 2")
        ```
    """

    def __init__(self):
        """Initialize empty tool registry with indexes."""
        self._tools: dict[ToolName, Tool] = {}
        self._categories: dict[ToolCategory, list[ToolName]] = defaultdict(list)
        self.logger = logger.bind(component="tool_registry")

    def register(self, tool: Tool) -> None:
        """Register a tool in the registry.

        If a tool with the same name already exists, it is replaced.

        Args:
            tool: Tool instance to register

        Raises:
            ToolRegistrationError: If tool or its metadata is missing or the name is invalid
        """
        if tool is None or tool.metadata is None:
            raise ToolRegistrationError("Tool and tool metadata cannot be None")

        try:
            name = normalize_tool_name(tool.metadata.name)
        except ValueError as e:
            raise ToolRegistrationError(str(e)) from e

        category = tool.metadata.category

        if name in self._tools:
            old_category = self._tools[name].metadata.category
            if name in self._categories[old_category]:
                self._categories[old_category].remove(name)
            self.logger.debug("tool_replaced", tool_name=name)

        self._tools[name] = tool
        self._categories[category].append(name)

        self.logger.debug("tool_registered", tool_name=name, category=category.value)

    def get(self, name: str) -> Tool | None:
        """Get a tool by name (case-insensitive).

        Args:
            name: Tool name

        Returns:
            Tool instance if found, None otherwise
        """
        try:
            return self._tools.get(normalize_tool_name(name))
        except ValueError:
            return None

    async def dispatch(
        self,
        name: str,
        raw_input: str,
        context: ToolContext = NO_SANDBOX,
    ) -> str:
        """Execute a tool by name and return its observation text.

        Unknown tools yield a text beginning with "not found" that lists the
        available tools, so an agent loop can recover by trying another tool.
        Exceptions raised by the tool are converted into an error text.

        A run's tool allow-list is not consulted here. It only filters the
        descriptions shown to the model (see ``describe``), so it is advisory:
        any registered tool the model names is still dispatched.

        Args:
            name: Tool name as produced by the model
            raw_input: Tool input as produced by the model
            context: Execution context for this run

        Returns:
            Observation text
        """
        tool = self.get(name)
        if tool is None:
            self.logger.info("tool_not_found", tool_name=name)
            return f"not found: tool '{name}'. Available tools: {', '.join(self._tools)}"

        cleaned = clean_tool_input(raw_input)
        self.logger.debug("tool_dispatch", tool_name=tool.name, input=cleaned[:100])

        try:
            return await tool.execute(cleaned, context)
        except Exception as e:
            self.logger.error(
                "tool_execution_error",
                tool_name=tool.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return f"Error executing {tool.name}: {e}"

    def describe(self, allowed: list[str] | None = None) -> str:
        """Render tool descriptions for a prompt.

        Args:
            allowed: Optional allow-list of tool names. Advisory only, since
                ``dispatch`` does not enforce it

        Returns:
            One "- name: description" line per tool, ending with the finish pseudo-tool
        """
        tools = self.list_all()
        if allowed is not None:
            keys = {name.strip().lower() for name in allowed}
            tools = [tool for tool in tools if tool.name in keys]

        if not tools:
            return FALLBACK_TOOL_DESCRIPTIONS

        lines = [f"- {tool.name}: {tool.description}" for tool in tools]
        return "\n".join([*lines, FINISH_TOOL_DESCRIPTION])

    def list_by_category(self, category: ToolCategory) -> list[Tool]:
        """List all tools in a specific category."""
        return [self._tools[name] for name in self._categories.get(category, [])]

    def list_all(self) -> list[Tool]:
        """List all registered tools in registration order."""
        return list(self._tools.values())

    def list_tools(self) -> list[dict[str, str]]:
        """Name and description of every registered tool."""
        return [{"name": tool.name, "description": tool.description} for tool in self._tools.values()]

    def unregister(self, name: str) -> bool:
        """Unregister a tool.

        Args:
            name: Tool name

        Returns:
            True if tool was removed, False if tool was not found
        """
        tool = self.get(name)
        if tool is None:
            return False

        del self._tools[tool.name]
        category_names = self._categories[tool.metadata.category]
        if tool.name in category_names:
            category_names.remove(tool.name)

        self.logger.info("tool_unregistered", tool_name=tool.name)
        return True

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        return {
            "total_tools": len(self._tools),
            "tools_by_category": {
                category.value: len(names) for category, names in self._categories.items()
            },
        }

    def __len__(self) -> int:
        """Return the number of registered tools."""
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        """Check if a tool is registered."""
        return self.get(name) is not None

    def __repr__(self) -> str:
        """String representation of registry."""
        return f"<ToolRegistry(tools={len(self._tools)})>"
