"""Reasoning tools: think, search stub and calculator.

These are always registered and have no side effects beyond returning text.
"""

import re

from RestrictedPython import compile_restricted

from ...models.tool_integration import ToolCategory, ToolDefinition
from ..base import Tool, ToolContext

_CALCULATOR_STRIP = re.compile(r"[^0-9+\-*/().%\s]")
_MAX_EXPRESSION_LENGTH = 500
CALCULATOR_ERROR = "Error: Could not evaluate expression"


class ThinkTool(Tool):
    """Record a thought without acting."""

    def __init__(self):
        super().__init__(
            ToolDefinition(
                name="think",
                description="Reason about the problem without taking action",
                category=ToolCategory.REASONING,
                parameters={"input": "string"},
            )
        )

    async def execute(self, input: str, context: ToolContext) -> str:
        return f"Thought recorded: {input}"


class SearchTool(Tool):
    """Placeholder web search that echoes the query."""

    def __init__(self):
        super().__init__(
            ToolDefinition(
                name="search",
                description="Search for information on the web",
                category=ToolCategory.REASONING,
                parameters={"query": "string"},
            )
        )

    async def execute(self, input: str, context: ToolContext) -> str:
        return f'Search results for "{input}": [Simulated search - integrate real search API]'


class CalculatorTool(Tool):
    """Evaluate an arithmetic expression.

    Everything outside digits, ``+ - * / ( ) . %`` and whitespace is stripped
    before the expression is compiled in restricted eval mode with no builtins.
    Exponentiation is refused to bound evaluation cost.
    """

    def __init__(self):
        super().__init__(
            ToolDefinition(
                name="calculate",
                description="Perform mathematical calculations",
                category=ToolCategory.REASONING,
                parameters={"expression": "string"},
            )
        )

    async def execute(self, input: str, context: ToolContext) -> str:
        expression = _CALCULATOR_STRIP.sub("", input).strip()
        if not expression or "**" in expression or len(expression) > _MAX_EXPRESSION_LENGTH:
            return CALCULATOR_ERROR

        try:
            byte_code = compile_restricted(expression, filename="<calculator>", mode="eval")
            result = eval(byte_code, {"__builtins__": {}}, {})  # noqa: S307
        except (SyntaxError, ArithmeticError, TypeError, ValueError) as e:
            self.logger.debug("calculation_failed", expression=expression, error=str(e))
            return CALCULATOR_ERROR

        if isinstance(result, bool) or not isinstance(result, (int, float)):
            return CALCULATOR_ERROR
        return f"Result: {format_number(result)}"


def format_number(value: int | float) -> str:
    """Render integral floats without a trailing ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


REASONING_TOOLS = (ThinkTool, SearchTool, CalculatorTool)
