"""Best-effort parsing of free-text model replies.

The reactive loop expects replies shaped like::

    Thought: ...
    Action: tool_name
    Action Input: ...

Every section is optional. A missing thought falls back to the first 200
characters of the reply; a missing action yields ``tool=None`` and the loop
decides what to do with it.
"""

import re
from dataclasses import dataclass

_FLAGS = re.DOTALL | re.IGNORECASE
THOUGHT_RE = re.compile(r"Thought:\s*(.+?)(?=\n|Action:|$)", _FLAGS)
ACTION_RE = re.compile(r"Action:\s*(.+?)(?=\n|Action Input:|$)", _FLAGS)
ACTION_INPUT_RE = re.compile(r"Action Input:\s*(.+?)(?=\n|Observation:|$)", _FLAGS)
PLAN_STEP_RE = re.compile(r"^\d+\.\s*(.+)")

THOUGHT_FALLBACK_CHARS = 200
FINISH_TOOLS = frozenset({"finish", "final_answer"})
COMPLETION_PHRASES = ("final answer", "goal achieved", "task complete")


@dataclass(frozen=True)
class ParsedAction:
    """Sections extracted from one model reply."""

    thought: str
    tool: str | None = None
    input: str | None = None

    @property
    def is_finish(self) -> bool:
        """Whether the model named the finish pseudo-tool."""
        return self.tool in FINISH_TOOLS


def parse_react_response(text: str) -> ParsedAction:
    """Split a reply into thought, tool and input.

    Args:
        text: Raw model output

    Returns:
        ParsedAction with the tool name lower-cased
    """
    thought_match = THOUGHT_RE.search(text)
    action_match = ACTION_RE.search(text)
    input_match = ACTION_INPUT_RE.search(text)

    thought = thought_match.group(1).strip() if thought_match else text[:THOUGHT_FALLBACK_CHARS]
    tool = action_match.group(1).strip().lower() if action_match else None
    action_input = input_match.group(1).strip() if input_match else None

    return ParsedAction(thought=thought, tool=tool or None, input=action_input or None)


def looks_like_completion(text: str) -> bool:
    """Heuristic check for goal-completion phrasing in a reply without an action.

    This guesses at model intent and can end a run early on a reply that only
    discusses a "final answer" to a sub-problem.
    """
    lowered = text.lower()
    return any(phrase in lowered for phrase in COMPLETION_PHRASES)


def parse_plan_steps(plan_text: str) -> list[str]:
    """Extract ``N.``-numbered steps, or the whole text as one step."""
    steps = []
    for line in plan_text.splitlines():
        match = PLAN_STEP_RE.match(line.strip())
        if match:
            steps.append(match.group(1).strip())
    return steps or [plan_text]
