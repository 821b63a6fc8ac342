"""Root-level pytest configuration and shared fixtures."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from nodeagent.engines.base import RunState
from nodeagent.models.agent import AgentRunRequest, LLMRequest, LLMResponse
from nodeagent.security.scanner import ThreatScanner
from nodeagent.services.progress import ProgressChannel
from nodeagent.services.sandbox_store import SandboxStore
from nodeagent.tools.registration import register_reasoning_tools
from nodeagent.tools.registry import ToolRegistry

# Configure pytest plugins at top level
pytest_plugins = ("pytest_asyncio",)


class ScriptedLLM:
    """LLM stub that replays canned replies and records every request.

    When the script runs out, the last reply is repeated.
    """

    def __init__(self, replies: list[str], tokens_per_call: int = 10) -> None:
        self.replies = replies
        self.tokens_per_call = tokens_per_call
        self.requests: list[LLMRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def __call__(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        index = min(len(self.requests), len(self.replies)) - 1
        return LLMResponse(text=self.replies[index], tokens_generated=self.tokens_per_call)


@pytest.fixture
def make_llm():
    """Factory for scripted LLM stubs."""
    return ScriptedLLM


@pytest.fixture
def scanner() -> ThreatScanner:
    """Fresh threat scanner with the built-in catalog."""
    return ThreatScanner()


@pytest.fixture
def registry() -> ToolRegistry:
    """Registry holding only the reasoning tools."""
    registry = ToolRegistry()
    register_reasoning_tools(registry)
    return registry


@pytest.fixture
def progress() -> ProgressChannel:
    """Progress channel."""
    return ProgressChannel()


@pytest.fixture
def make_run(scanner: ThreatScanner, registry: ToolRegistry, progress: ProgressChannel):
    """Factory building a RunState around a scripted LLM."""

    def factory(llm: ScriptedLLM, goal: str = "Compute a value", **overrides) -> RunState:
        request_fields = {
            key: overrides.pop(key)
            for key in list(overrides)
            if key in AgentRunRequest.model_fields
        }
        request = AgentRunRequest(goal=goal, **request_fields)
        return RunState(
            run_id="run-test",
            request=request,
            llm=llm,
            model="test-model",
            registry=overrides.pop("registry", registry),
            scanner=overrides.pop("scanner", scanner),
            progress=overrides.pop("progress", progress),
            **overrides,
        )

    return factory


@pytest.fixture
async def temp_workspace():
    """Temporary directory used as sandbox storage root."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
async def sandbox_store(temp_workspace: Path) -> SandboxStore:
    """Sandbox store rooted in a temporary directory."""
    return SandboxStore(base_path=temp_workspace)
