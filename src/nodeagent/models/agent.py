"""Agent run request/response models and LLM call shapes."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AgentStrategy(str, Enum):
    """Interchangeable agent control-flow strategies."""

    REACT = "react"
    PLAN_EXECUTE = "plan-execute"
    SIMPLE = "simple"


class AgentStatus(str, Enum):
    """Terminal status of an agent run."""

    COMPLETED = "completed"
    MAX_ITERATIONS = "max_iterations"
    ERROR = "error"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    OLLAMA = "ollama"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    AZURE = "azure"
    BEDROCK = "bedrock"


class LLMMessage(BaseModel):
    """Single chat message."""

    role: Literal["system", "user", "assistant"] = Field(description="Message role")
    content: str = Field(description="Message text")


class LLMRequest(BaseModel):
    """Request passed to an LLM callable.

    Either ``messages`` or ``prompt`` must be provided.
    """

    model: str = Field(description="Model identifier")
    messages: list[LLMMessage] | None = Field(default=None, description="Chat history")
    prompt: str | None = Field(default=None, description="Single prompt text")
    max_tokens: int = Field(default=4096, ge=1, description="Generation limit")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_p: float = Field(default=0.9, ge=0.0, le=1.0)
    stop_sequences: list[str] | None = Field(default=None, description="Stop sequences")
    provider: LLMProvider | None = Field(default=None, description="Explicit provider")
    api_key: str | None = Field(default=None, description="Per-request API key override")
    base_url: str | None = Field(default=None, description="Per-request endpoint override")

    @model_validator(mode="after")
    def require_prompt_or_messages(self) -> "LLMRequest":
        """Ensure there is something to generate from."""
        if not self.prompt and not self.messages:
            raise ValueError("Either prompt or messages must be provided")
        return self


class LLMResponse(BaseModel):
    """Response from an LLM callable."""

    text: str = Field(description="Generated text")
    tokens_generated: int = Field(default=0, ge=0, description="Completion tokens")
    tokens_prompt: int = Field(default=0, ge=0, description="Prompt tokens")
    finish_reason: str = Field(default="stop", description="Reason for completion")


class AgentAction(BaseModel):
    """One step of an agent trace.

    ``output`` is attached in place once a dispatched tool call resolves.
    """

    thought: str = Field(description="Reasoning text for this step")
    tool: str | None = Field(default=None, description="Tool named by the model")
    input: str | None = Field(default=None, description="Tool input")
    output: str | None = Field(default=None, description="Tool observation")


class AgentRunRequest(BaseModel):
    """Request to run an agent against a goal."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    goal: str = Field(min_length=1, description="Goal the agent should achieve")
    strategy: AgentStrategy = Field(default=AgentStrategy.REACT, description="Control-flow strategy")
    model: str | None = Field(default=None, description="Model identifier")
    provider: LLMProvider | None = Field(default=None, description="Explicit LLM provider")
    api_key: str | None = Field(default=None, description="Provider API key override")
    base_url: str | None = Field(default=None, description="Provider endpoint override")
    tools: list[str] | None = Field(default=None, description="Tool allow-list for the prompt")
    max_iterations: int = Field(default=10, ge=1, le=1000)
    max_tokens: int = Field(default=4096, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    verbose: bool = Field(default=False, description="Log every parsed step at info level")
    security_enabled: bool = Field(default=True, description="Scan goal and actions")

    # Execution context. Not serialized.
    tool_context: Any = Field(
        default=None,
        exclude=True,
        description="ToolContext variant used for sandbox tool dispatch",
    )
    llm_function: Any = Field(
        default=None,
        exclude=True,
        description="Caller-supplied LLM callable overriding the default adapter",
    )


class AgentRunResponse(BaseModel):
    """Result of an agent run."""

    result: str = Field(description="Final response text")
    iterations: int = Field(ge=0, description="Loop passes consumed")
    actions: list[AgentAction] = Field(default_factory=list, description="Full action trace")
    status: AgentStatus = Field(description="Terminal status")
    tokens_used: int = Field(default=0, ge=0, description="Generated tokens across all calls")
    security_alerts: list[str] = Field(
        default_factory=list,
        description="Descriptions of every threat pattern matched during the run",
    )


class ArchitectureInfo(BaseModel):
    """Description of an available agent strategy."""

    name: str
    description: str
