"""Strategy-specific agent execution engines."""

from .base import CANCELLED_RESULT, NO_RESULT, AgentEngine, EngineOutcome, RunState
from .parsing import ParsedAction, looks_like_completion, parse_plan_steps, parse_react_response
from .plan_execute_engine import PlanExecuteEngine
from .react_engine import ReActEngine
from .simple_engine import SimpleEngine

__all__ = [
    # Base
    "AgentEngine",
    "EngineOutcome",
    "RunState",
    "CANCELLED_RESULT",
    "NO_RESULT",
    # Parsing
    "ParsedAction",
    "parse_react_response",
    "parse_plan_steps",
    "looks_like_completion",
    # Engines
    "ReActEngine",
    "PlanExecuteEngine",
    "SimpleEngine",
]
