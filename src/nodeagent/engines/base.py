"""Base agent engine interface and per-run execution state."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

import structlog

from ..models.agent import (
    AgentAction,
    AgentRunRequest,
    AgentStatus,
    AgentStrategy,
    LLMMessage,
    LLMRequest,
)
from ..models.security import ScanResult
from ..security.scanner import ThreatScanner
from ..services.llm_service import LLMFunction
from ..services.progress import ProgressChannel, ProgressEvent
from ..tools.base import NO_SANDBOX, ToolContext
from ..tools.registry import ToolRegistry

logger = structlog.get_logger()

CANCELLED_RESULT = "Agent run cancelled"
NO_RESULT = "Agent did not produce a final result"


@dataclass
class RunState:
    """Everything one agent run owns.

    A RunState is created per run and never shared, so concurrent runs only
    share the registry's read path and the scanner.
    """

    run_id: str
    request: AgentRunRequest
    llm: LLMFunction
    model: str
    registry: ToolRegistry
    scanner: ThreatScanner
    tool_context: ToolContext = NO_SANDBOX
    progress: ProgressChannel | None = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    prompt_as_messages: bool = False
    actions: list[AgentAction] = field(default_factory=list)
    security_alerts: list[str] = field(default_factory=list)
    tokens_used: int = 0

    def __post_init__(self) -> None:
        self.logger = logger.bind(run_id=self.run_id, strategy=self.request.strategy.value)

    @property
    def cancelled(self) -> bool:
        """Whether the caller asked the run to stop."""
        return self.cancel_event.is_set()

    @property
    def security_enabled(self) -> bool:
        """Whether intermediate actions should be scanned."""
        return self.request.security_enabled and self.scanner.enabled

    def tool_descriptions(self) -> str:
        """Tool documentation for prompts, honouring the request allow-list."""
        return self.registry.describe(self.request.tools)

    async def call_llm(
        self,
        *,
        messages: list[LLMMessage] | None = None,
        prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Call the LLM and add its generated tokens to the run total.

        Args:
            messages: Chat history
            prompt: Single prompt, used when no history is given
            max_tokens: Override for the request's max_tokens
            temperature: Override for the request's temperature

        Returns:
            Generated text
        """
        if prompt is not None and messages is None and self.prompt_as_messages:
            messages, prompt = [LLMMessage(role="user", content=prompt)], None

        llm_request = LLMRequest(
            model=self.model,
            messages=messages,
            prompt=prompt,
            max_tokens=max_tokens or self.request.max_tokens,
            temperature=self.request.temperature if temperature is None else temperature,
            provider=self.request.provider,
            api_key=self.request.api_key,
            base_url=self.request.base_url,
        )
        response = await self.llm(llm_request)
        self.tokens_used += response.tokens_generated
        return response.text

    def scan(self, text: str) -> ScanResult:
        """Scan text and record the descriptions of any threats found."""
        result = self.scanner.scan(text)
        if not result.safe:
            self.security_alerts.extend(result.descriptions)
        return result

    def report_progress(self, step: int, total: int, label: str) -> None:
        """Publish a progress event; never blocks the loop."""
        if self.progress is None:
            return
        self.progress.publish(ProgressEvent(run_id=self.run_id, step=step, total=total, label=label))

    def log_step(self, event: str, **kwargs: Any) -> None:
        """Log a parsed step at info level when verbose, debug otherwise."""
        if self.request.verbose:
            self.logger.info(event, **kwargs)
        else:
            self.logger.debug(event, **kwargs)


@dataclass(frozen=True)
class EngineOutcome:
    """Terminal state reported by an engine."""

    result: str
    status: AgentStatus
    iterations: int


class AgentEngine(ABC):
    """Base class for strategy-specific execution engines."""

    strategy: ClassVar[AgentStrategy]
    description: ClassVar[str]

    @abstractmethod
    async def execute(self, run: RunState) -> EngineOutcome:
        """
        Drive a run to a terminal state.

        Engines append to ``run.actions`` as they go so the trace survives
        an exception escaping mid-run.

        Args:
            run: Per-run state

        Returns:
            Engine outcome
        """

    @staticmethod
    def cancelled_outcome(run: RunState, iterations: int) -> EngineOutcome:
        """Outcome for a run stopped at an iteration boundary."""
        run.logger.info("agent_run_cancelled", iterations=iterations)
        return EngineOutcome(result=CANCELLED_RESULT, status=AgentStatus.CANCELLED, iterations=iterations)
