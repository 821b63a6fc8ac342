"""
Node agent execution core.

Lets a locally or remotely hosted language model pursue a multi-step goal by
issuing tool calls, while goals, actions and shell side effects are screened by
a threat-pattern engine and filesystem/process side effects are confined to a
per-workspace sandbox.

Key Components:
- Threat Scanner: rule-based classifier for dangerous commands and prompt injection
- Sandbox Store: per-workspace directory jail with gated command execution
- Tool Registry: reasoning, sandbox and local tools dispatched by name
- Agent Runtime: react, plan-execute and simple strategies over the registry
"""

__version__ = "0.1.0"
