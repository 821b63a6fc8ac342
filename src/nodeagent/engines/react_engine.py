"""ReAct (Reason and Act) engine."""

from ..models.agent import AgentAction, AgentStatus, AgentStrategy, LLMMessage
from .base import NO_RESULT, AgentEngine, EngineOutcome, RunState
from .parsing import looks_like_completion, parse_react_response
from .prompts import (
    REACT_BLOCKED_OBSERVATION,
    REACT_GOAL_MESSAGE,
    REACT_OBSERVATION,
    REACT_SYSTEM_PROMPT,
)


class ReActEngine(AgentEngine):
    """Interleaved reasoning and tool use over a growing chat history.

    Each iteration calls the model with the full history, parses the reply
    into thought/action/input and either finishes, records a blocked action,
    dispatches a tool, or checks the reply for completion phrasing.
    """

    strategy = AgentStrategy.REACT
    description = "ReAct agent - Reason and Act in interleaved steps. Best for complex multi-step tasks."

    async def execute(self, run: RunState) -> EngineOutcome:
        request = run.request
        max_iterations = request.max_iterations

        messages = [
            LLMMessage(
                role="system",
                content=REACT_SYSTEM_PROMPT.format(tool_descriptions=run.tool_descriptions()),
            ),
            LLMMessage(role="user", content=REACT_GOAL_MESSAGE.format(goal=request.goal)),
        ]

        iterations = 0
        result = ""
        finished = False

        while iterations < max_iterations:
            if run.cancelled:
                return self.cancelled_outcome(run, iterations)

            iterations += 1
            run.report_progress(iterations, max_iterations, f"Iteration {iterations}/{max_iterations}")

            text = await run.call_llm(messages=messages)
            parsed = parse_react_response(text)
            action = AgentAction(thought=parsed.thought, tool=parsed.tool, input=parsed.input)
            run.actions.append(action)
            run.log_step(
                "react_iteration",
                iteration=iterations,
                thought=parsed.thought[:100],
                tool=parsed.tool,
            )

            if parsed.is_finish:
                result = parsed.input or text
                finished = True
                break

            if run.security_enabled and parsed.input:
                scan = run.scan(parsed.input)
                if scan.is_blocking:
                    action.output = f"[BLOCKED] Security threat detected: {scan.summary}"
                    run.logger.warning("react_action_blocked", tool=parsed.tool, summary=scan.summary)
                    messages.append(LLMMessage(role="assistant", content=text))
                    messages.append(
                        LLMMessage(
                            role="user",
                            content=REACT_BLOCKED_OBSERVATION.format(observation=action.output),
                        )
                    )
                    continue

            if parsed.tool and parsed.input:
                observation = await run.registry.dispatch(parsed.tool, parsed.input, run.tool_context)
                action.output = observation
                run.log_step("react_observation", iteration=iterations, observation=observation[:100])
                messages.append(LLMMessage(role="assistant", content=text))
                messages.append(
                    LLMMessage(role="user", content=REACT_OBSERVATION.format(observation=observation))
                )
                continue

            messages.append(LLMMessage(role="assistant", content=text))
            if looks_like_completion(text):
                result = text
                finished = True
                break

        if finished:
            status = AgentStatus.COMPLETED
        elif iterations >= max_iterations:
            status = AgentStatus.MAX_ITERATIONS
        else:
            status = AgentStatus.ERROR

        return EngineOutcome(result=result or NO_RESULT, status=status, iterations=iterations)
