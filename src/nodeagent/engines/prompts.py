"""Prompt templates for the agent strategies."""

REACT_SYSTEM_PROMPT = """You are an autonomous AI agent that reasons step by step to accomplish goals.

You have access to the following tools:
{tool_descriptions}

Use this format:

Thought: Consider what to do next
Action: the tool to use (one of the available tools, or "finish" when done)
Action Input: the input to the tool
Observation: the result (this will be provided to you)

When you have completed the goal, use:
Action: finish
Action Input: your final answer

Begin!"""

REACT_GOAL_MESSAGE = """Goal: {goal}

Begin working on this goal. Use the Thought/Action/Action Input/Observation format."""

REACT_OBSERVATION = "Observation: {observation}"

REACT_BLOCKED_OBSERVATION = """Observation: {observation}

The action was blocked for security reasons. Please try a different approach."""

PLAN_PROMPT = """Create a step-by-step plan to achieve this goal:

Goal: {goal}

Create a numbered list of specific steps. Be concise but thorough.
Format:
1. Step one
2. Step two
...

Plan:"""

EXECUTE_STEP_PROMPT = """You are executing a plan step by step.

Previous context: {context}

Current step: {step}

Execute this step and provide the result. Be specific about what was done.

Result:"""

SUMMARY_PROMPT = """Summarize the results of completing this goal:

Goal: {goal}

Steps completed:
{steps}

Provide a final answer summarizing what was accomplished:"""

SIMPLE_PROMPT = """You are a helpful AI assistant with access to tools.

Available tools:
{tool_descriptions}

Goal: {goal}

Provide a direct answer to achieve this goal. If you need to use a tool, explain what you would do.

Response:"""
