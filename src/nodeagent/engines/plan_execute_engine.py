"""Plan-then-execute engine."""

from ..config.settings import get_settings
from ..models.agent import AgentAction, AgentStatus, AgentStrategy
from .base import AgentEngine, EngineOutcome, RunState
from .parsing import parse_plan_steps
from .prompts import EXECUTE_STEP_PROMPT, PLAN_PROMPT, SUMMARY_PROMPT

STEP_CONTEXT_CHARS = 200
SUMMARY_OUTPUT_CHARS = 100
STEP_LABEL_CHARS = 30


class PlanExecuteEngine(AgentEngine):
    """Create a numbered plan, execute each step, then summarize.

    A step that scans as blocking is skipped and recorded as a
    ``security_block`` action; the rest of the plan still runs. Each executed
    step's output is appended (truncated) to the context handed to the next
    step.
    """

    strategy = AgentStrategy.PLAN_EXECUTE
    description = (
        "Plan then execute - Creates a complete plan first, then executes each step. "
        "Best for well-defined goals."
    )

    def __init__(self, plan_max_tokens: int | None = None, plan_temperature: float | None = None):
        settings = get_settings()
        self.plan_max_tokens = plan_max_tokens or settings.plan_max_tokens
        self.plan_temperature = settings.plan_temperature if plan_temperature is None else plan_temperature

    async def execute(self, run: RunState) -> EngineOutcome:
        request = run.request

        plan_text = await run.call_llm(
            prompt=PLAN_PROMPT.format(goal=request.goal),
            max_tokens=self.plan_max_tokens,
            temperature=self.plan_temperature,
        )
        steps = parse_plan_steps(plan_text)
        run.actions.append(
            AgentAction(thought=f"Created plan with {len(steps)} steps", tool="plan", input=plan_text)
        )
        run.log_step("plan_created", steps=len(steps))

        budget = steps[: request.max_iterations]
        context = ""
        executed: list[AgentAction] = []

        for index, step in enumerate(budget, start=1):
            if run.cancelled:
                return self.cancelled_outcome(run, index - 1)

            run.report_progress(
                index, len(budget), f"Step {index}/{len(steps)}: {step[:STEP_LABEL_CHARS]}..."
            )

            if run.security_enabled:
                scan = run.scan(step)
                if scan.is_blocking:
                    run.logger.warning("plan_step_blocked", step=step[:100], summary=scan.summary)
                    run.actions.append(
                        AgentAction(
                            thought=f"Step blocked: {step}",
                            tool="security_block",
                            output=scan.summary,
                        )
                    )
                    continue

            text = await run.call_llm(
                prompt=EXECUTE_STEP_PROMPT.format(context=context or "None", step=step)
            )
            action = AgentAction(thought=f"Executing: {step}", tool="execute_step", input=step, output=text)
            run.actions.append(action)
            executed.append(action)
            run.log_step("plan_step_executed", step_index=index, step=step[:100])

            context += f"\n- {step}: {text[:STEP_CONTEXT_CHARS]}"

        summary_lines = "\n".join(
            f"- {action.input}: {(action.output or '')[:SUMMARY_OUTPUT_CHARS]}" for action in executed
        )
        result = await run.call_llm(
            prompt=SUMMARY_PROMPT.format(goal=request.goal, steps=summary_lines),
            max_tokens=self.plan_max_tokens,
            temperature=self.plan_temperature,
        )

        return EngineOutcome(result=result, status=AgentStatus.COMPLETED, iterations=len(budget))
