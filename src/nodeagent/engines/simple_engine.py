"""Single-call engine."""

from ..models.agent import AgentAction, AgentStatus, AgentStrategy
from .base import AgentEngine, EngineOutcome, RunState
from .prompts import SIMPLE_PROMPT


class SimpleEngine(AgentEngine):
    """One model call with the tool list embedded as documentation only."""

    strategy = AgentStrategy.SIMPLE
    description = "Simple single-turn agent - One LLM call with tool awareness. Best for quick tasks."

    async def execute(self, run: RunState) -> EngineOutcome:
        if run.cancelled:
            return self.cancelled_outcome(run, 0)

        run.report_progress(1, 1, "Generating response")
        text = await run.call_llm(
            prompt=SIMPLE_PROMPT.format(
                tool_descriptions=run.tool_descriptions(),
                goal=run.request.goal,
            )
        )

        if run.security_enabled:
            scan = run.scan(text)
            if not scan.safe:
                run.logger.warning("simple_response_flagged", summary=scan.summary)

        run.actions.append(AgentAction(thought="Direct response", output=text))
        run.log_step("simple_response", length=len(text))
        return EngineOutcome(result=text, status=AgentStatus.COMPLETED, iterations=1)
