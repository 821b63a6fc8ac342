"""
Agent runtime.

Runs a goal through one of the interchangeable strategies. The goal is scanned
once up front; a blocking match ends the run before any model call. Each run
gets its own RunState, so runs can overlap while sharing one registry and one
scanner.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import uuid4

import structlog

from ..config.settings import Settings, get_settings
from ..engines.base import AgentEngine, EngineOutcome, RunState
from ..engines.plan_execute_engine import PlanExecuteEngine
from ..engines.react_engine import ReActEngine
from ..engines.simple_engine import SimpleEngine
from ..exceptions import UnknownStrategyError
from ..models.agent import (
    AgentRunRequest,
    AgentRunResponse,
    AgentStatus,
    AgentStrategy,
    ArchitectureInfo,
)
from ..security.scanner import ThreatScanner
from ..tools.base import NO_SANDBOX, has_sandbox
from ..tools.registration import create_default_registry, register_sandbox_tools
from ..tools.registry import ToolRegistry
from .llm_service import LLMFunction, get_llm_service
from .progress import ProgressChannel

logger = structlog.get_logger()


@dataclass
class RunHandle:
    """Handle on a run started in the background."""

    run_id: str
    task: asyncio.Task[AgentRunResponse]
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    def cancel(self) -> None:
        """Ask the run to stop at the next iteration boundary."""
        self.cancel_event.set()

    @property
    def done(self) -> bool:
        return self.task.done()

    async def result(self) -> AgentRunResponse:
        """Wait for the run to finish."""
        return await self.task


class AgentRuntime:
    """Entry point for agent runs.

    Example:
        ```python
        scanner = ThreatScanner()
        runtime = AgentRuntime(scanner=scanner, registry=create_default_registry(scanner=scanner))
        response = await runtime.run(AgentRunRequest(goal="Summarize the README", llm_function=my_llm))
        ```
    """

    def __init__(
        self,
        scanner: ThreatScanner | None = None,
        registry: ToolRegistry | None = None,
        llm: LLMFunction | None = None,
        progress: ProgressChannel | None = None,
        engines: Iterable[AgentEngine] | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize agent runtime.

        Args:
            scanner: Threat scanner for goals and actions
            registry: Tool registry (default tool set if not provided)
            llm: Default LLM callable (global multi-provider service if not provided)
            progress: Channel receiving one event per iteration
            engines: Strategy engines (react, plan-execute and simple if not provided)
            settings: Settings (global settings if not provided)
        """
        self.settings = settings or get_settings()
        self.scanner = scanner or ThreatScanner(enabled=self.settings.security_scanning_enabled)
        self.registry = registry or create_default_registry(scanner=self.scanner)
        self.progress = progress
        self._llm = llm

        if engines is None:
            engines = (ReActEngine(), PlanExecuteEngine(), SimpleEngine())
        self._engines: dict[AgentStrategy, AgentEngine] = {engine.strategy: engine for engine in engines}

        self.logger = logger.bind(component="agent_runtime")

    def list_architectures(self) -> list[ArchitectureInfo]:
        """Available strategies with a short description of each."""
        return [
            ArchitectureInfo(name=strategy.value, description=engine.description)
            for strategy, engine in self._engines.items()
        ]

    def list_tools(self) -> list[dict[str, str]]:
        """Name and description of every registered tool."""
        return self.registry.list_tools()

    def _engine_for(self, strategy: AgentStrategy) -> AgentEngine:
        engine = self._engines.get(strategy)
        if engine is None:
            raise UnknownStrategyError(f"Unknown agent strategy: {strategy}")
        return engine

    def _build_state(
        self,
        request: AgentRunRequest,
        run_id: str,
        cancel_event: asyncio.Event,
    ) -> RunState:
        tool_context = request.tool_context or NO_SANDBOX
        if has_sandbox(tool_context) and "write_file" not in self.registry:
            register_sandbox_tools(self.registry, scanner=self.scanner)

        if request.llm_function is not None:
            llm = request.llm_function
            model = request.model or self.settings.agent_custom_llm_default_model
        else:
            llm = self._llm or get_llm_service()
            model = request.model or self.settings.agent_default_model

        return RunState(
            run_id=run_id,
            request=request,
            llm=llm,
            model=model,
            registry=self.registry,
            scanner=self.scanner,
            tool_context=tool_context,
            progress=self.progress,
            cancel_event=cancel_event,
            prompt_as_messages=request.llm_function is not None,
        )

    async def run(
        self,
        request: AgentRunRequest,
        cancel_event: asyncio.Event | None = None,
        run_id: str | None = None,
    ) -> AgentRunResponse:
        """
        Run an agent to a terminal status.

        Unexpected exceptions from the strategy or the LLM end the run with
        status ``error``; the actions recorded so far are kept.

        Args:
            request: Run request
            cancel_event: Event checked at the top of every iteration
            run_id: Identifier used in progress events and logs

        Returns:
            Run response

        Raises:
            UnknownStrategyError: If no engine handles the requested strategy
        """
        run_id = run_id or str(uuid4())
        engine = self._engine_for(request.strategy)

        self.logger.info(
            "agent_run_started",
            run_id=run_id,
            strategy=request.strategy.value,
            goal=request.goal[:100],
            max_iterations=request.max_iterations,
        )

        if request.security_enabled:
            goal_scan = self.scanner.scan(request.goal)
            if goal_scan.is_blocking:
                self.logger.warning(
                    "agent_run_blocked",
                    run_id=run_id,
                    risk_level=goal_scan.risk_level.value if goal_scan.risk_level else None,
                    summary=goal_scan.summary,
                )
                return AgentRunResponse(
                    result=f"Blocked: Security threat detected in goal - {goal_scan.summary}",
                    iterations=0,
                    actions=[],
                    status=AgentStatus.BLOCKED,
                    tokens_used=0,
                    security_alerts=goal_scan.descriptions,
                )
        else:
            goal_scan = None

        state = self._build_state(request, run_id, cancel_event or asyncio.Event())
        if goal_scan is not None and not goal_scan.safe:
            state.security_alerts.extend(goal_scan.descriptions)

        try:
            outcome = await engine.execute(state)
        except Exception as e:
            self.logger.error(
                "agent_run_failed",
                run_id=run_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            outcome = EngineOutcome(
                result=f"Agent error: {e}",
                status=AgentStatus.ERROR,
                iterations=len(state.actions),
            )

        self.logger.info(
            "agent_run_finished",
            run_id=run_id,
            status=outcome.status.value,
            iterations=outcome.iterations,
            tokens_used=state.tokens_used,
            security_alerts=len(state.security_alerts),
        )

        return AgentRunResponse(
            result=outcome.result,
            iterations=outcome.iterations,
            actions=state.actions,
            status=outcome.status,
            tokens_used=state.tokens_used,
            security_alerts=state.security_alerts,
        )

    def start(self, request: AgentRunRequest) -> RunHandle:
        """
        Start a run in the background.

        Must be called from a running event loop.

        Args:
            request: Run request

        Returns:
            Handle exposing cancel() and result()
        """
        run_id = str(uuid4())
        cancel_event = asyncio.Event()
        task = asyncio.create_task(self.run(request, cancel_event=cancel_event, run_id=run_id))
        return RunHandle(run_id=run_id, task=task, cancel_event=cancel_event)
