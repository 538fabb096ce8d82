"""
Planner: turns one user turn into zero or more tool calls and a final answer.

The flow for a single :meth:`Planner.run` call:

1. **Objective** - ask the model whether the latest user message needs action at all.  If not,
   answer directly over the untouched context.
2. **Steps** - repeatedly select a tool, synthesize its input, invoke it through the registry
   and ask the model whether the goal has been achieved.
3. **Answer** - synthesize a final reply from the recorded step summaries, or, if planning broke
   down, ask the model to summarize what was done so far.

Every sub-question is asked over a scratch :class:`Context`; only tool results and step summaries
are written to the caller's context.  The loop always ends: on goal achieved, on an empty tool
selection, when the step budget is spent, when the duplicate ceiling is hit, or when a step
cannot be planned.
"""

import logging
from dataclasses import (
    dataclass,
    field,
)
from enum import Enum
from typing import (
    List,
    Set,
    Tuple,
)

from waypoint.agent.providers import BaseProvider
from waypoint.agent.type_parser import parse_response
from waypoint.config import settings
from waypoint.core.context import Context
from waypoint.core.errors import (
    PlanningFailedError,
    WaypointError,
)
from waypoint.core.schema import (
    NO_ACTION_REQUIRED,
    NoInput,
    PlanObjective,
    PlanProgress,
    PlanStep,
    ToolSelection,
    canonical_json,
)
from waypoint.tools import (
    Tool,
    ToolRegistry,
)

logger = logging.getLogger(__name__)

# How many earlier step summaries each sub-question gets to see
SELECTION_HISTORY = 5
INPUT_HISTORY = 3
OBJECTIVE_HISTORY = 5


class PlanState(Enum):
    """Where a :meth:`Planner.run` call is, or where it ended."""

    COMPUTING_OBJECTIVE = "computing_objective"
    NO_ACTION_NEEDED = "no_action_needed"
    SELECTING_TOOL = "selecting_tool"
    GENERATING_INPUT = "generating_input"
    INVOKING = "invoking"
    EVALUATING_PROGRESS = "evaluating_progress"
    GOAL_ACHIEVED = "goal_achieved"
    MAX_STEPS_EXCEEDED = "max_steps_exceeded"
    DUPLICATE_LIMIT_EXCEEDED = "duplicate_limit_exceeded"
    PLANNING_FAILED = "planning_failed"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {
        PlanState.NO_ACTION_NEEDED,
        PlanState.GOAL_ACHIEVED,
        PlanState.MAX_STEPS_EXCEEDED,
        PlanState.DUPLICATE_LIMIT_EXCEEDED,
        PlanState.PLANNING_FAILED,
    }
)


@dataclass
class PlanRun:
    """Bookkeeping for a single :meth:`Planner.run` call; never shared between calls."""

    goal: str = ""
    user_input: str = ""
    state: PlanState = PlanState.COMPUTING_OBJECTIVE
    results: List[str] = field(default_factory=list)
    actions_taken: Set[str] = field(default_factory=set)
    steps_taken: int = 0
    executed: int = 0
    duplicates_skipped: int = 0
    failure_reason: str | None = None

    def transition(self, state: PlanState) -> None:
        logger.debug("Planner state %s -> %s", self.state.value, state.value)
        self.state = state


class Planner:
    """Objective -> step -> progress loop with a step budget and a duplicate-work guard."""

    def __init__(
        self,
        provider: BaseProvider,
        registry: ToolRegistry,
        *,
        max_steps: int | None = None,
        max_duplicates: int | None = None,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.max_steps = settings.MAX_STEPS if max_steps is None else max_steps
        self.max_duplicates = (
            settings.MAX_DUPLICATE_STEPS if max_duplicates is None else max_duplicates
        )
        self.system_prompt = settings.SYSTEM_PROMPT if system_prompt is None else system_prompt
        self.temperature = settings.TEMPERATURE if temperature is None else temperature
        self.last_run: PlanRun | None = None

    # ------------------------------------------------------------------ #
    # Public entry point
    # ------------------------------------------------------------------ #
    async def run(self, context: Context) -> Tuple[str, Context]:
        """
        Answer the latest user message in *context*, invoking tools as needed.

        Returns
        -------
        Tuple[str, Context]
            The final answer and the context the caller should keep (the same instance, possibly
            extended with tool messages and snippets).
        """
        run = PlanRun()
        self.last_run = run

        objective = await self._get_objective(context)
        if not objective.requires_action():
            run.transition(PlanState.NO_ACTION_NEEDED)
            logger.info("No planning required, generating response directly.")
            context.set_system_message(self.system_prompt)
            return await self.provider.complete(context, self.temperature), context

        run.goal = objective.goal.strip()
        run.user_input = context.last_user_message()
        logger.info("Working on: %s", run.goal)

        while True:
            if run.steps_taken >= self.max_steps:
                logger.info(
                    "Exceeded maximum allowed steps (%d). Stopping planning.", self.max_steps
                )
                run.transition(PlanState.MAX_STEPS_EXCEEDED)
                break
            run.steps_taken += 1

            try:
                step = await self._next_step(run, context)
            except Exception as exc:  # pylint: disable=broad-except
                run.failure_reason = (
                    str(exc)
                    if isinstance(exc, PlanningFailedError)
                    else f"ERROR: Planner failed to return a valid step due to an exception: {exc}"
                )
                logger.warning("%s", run.failure_reason)
                run.transition(PlanState.PLANNING_FAILED)
                break

            if step.done:
                logger.info("No further action required: %s", step.reason)
                run.transition(PlanState.GOAL_ACHIEVED)
                break

            key = step.key
            if key in run.actions_taken:
                run.duplicates_skipped += 1
                logger.info(
                    "Skipping duplicate step: %s with already attempted input.", step.tool_name
                )
                if run.duplicates_skipped >= self.max_duplicates:
                    run.failure_reason = (
                        f"Exceeded maximum allowed duplicates ({self.max_duplicates})."
                    )
                    logger.warning("%s Stopping planning.", run.failure_reason)
                    run.transition(PlanState.DUPLICATE_LIMIT_EXCEEDED)
                    break
                continue
            run.actions_taken.add(key)

            context = await self._execute(run, step, context)

            progress = await self._get_progress(run, context)
            if progress.goal_achieved:
                run.transition(PlanState.GOAL_ACHIEVED)
                break

        if run.state in (PlanState.PLANNING_FAILED, PlanState.DUPLICATE_LIMIT_EXCEEDED):
            return await self._summarize_failure(run, context), context
        return await self._synthesize(run, context), context

    # ------------------------------------------------------------------ #
    # Objective
    # ------------------------------------------------------------------ #
    async def _get_objective(self, context: Context) -> PlanObjective:
        history = context.history()[-OBJECTIVE_HISTORY:]
        conversation = "\n".join(f"{m.role.value}: {m.content}" for m in history)

        working = Context(
            """\
You are a goal planner.
Your task is to decide if a tool should be used to answer the user's question in pursuit of \
providing a more accurate or personalized response.
If the user's query depends on realtime or runtime data (see the available tools) assume action is \
required, and that you will be able to complete it.
You do not need to summarize the user's question, or comment on it, or explain your answer, just \
decide if a tool is needed to answer the question.
"""
            + "\nAvailable tools: "
            + ", ".join(self.registry.names())
        )
        for snippet in context.snippets():
            working.add_snippet(snippet.reference, snippet.chunk)
        working.add_user_message(
            "---ONLY RESPOND WITH THE JSON OBJECT, DO NOT RESPOND WITH ANYTHING ELSE---"
        )
        working.add_user_message(conversation)

        try:
            objective = await parse_response(self.provider, working, PlanObjective)
        except WaypointError as exc:
            logger.warning("Failed to parse goal from response: %s", exc)
            return PlanObjective(take_action=False, goal=NO_ACTION_REQUIRED)
        logger.debug("Objective: %s", canonical_json(objective))
        return objective

    # ------------------------------------------------------------------ #
    # Step generation
    # ------------------------------------------------------------------ #
    async def _next_step(self, run: PlanRun, context: Context) -> PlanStep:
        """
        Produce the next validated step.

        Raises
        ------
        PlanningFailedError
            If the model proposes something that cannot be executed.
        WaypointError
            If the selection or input could not be parsed after retries.
        """
        run.transition(PlanState.SELECTING_TOOL)
        selection = await self._select_tool(run, context)
        tool_name = (selection.tool_name or "").strip()
        if not tool_name:
            return PlanStep.complete(selection.reasoning or "No further action required.")

        tool = self.registry.get(tool_name)
        if tool is None:
            step = PlanStep.run(tool_name, None, selection.reasoning)
        else:
            run.transition(PlanState.GENERATING_INPUT)
            tool_input = await self._tool_input(run, tool_name, tool)
            step = PlanStep.run(tool_name, tool_input, selection.reasoning)

        self._validate(step)
        return step

    def _validate(self, step: PlanStep | None) -> None:
        if step is None:
            raise PlanningFailedError(
                "ERROR: Planner failed to return a valid step; check logs for further details."
            )
        if step.done:
            return
        if not step.tool_name:
            raise PlanningFailedError(
                "ERROR: Planner returned a step with an empty tool name; "
                "check logs for further details."
            )
        if not self.registry.is_registered(step.tool_name):
            raise PlanningFailedError(
                f"ERROR: Planner returned an invalid tool name: {step.tool_name}; check logs for "
                "further details."
            )
        if step.tool_input is None:
            raise PlanningFailedError(
                "ERROR: Planner returned a step with null tool input; "
                "check logs for further details."
            )

    async def _select_tool(self, run: PlanRun, context: Context) -> ToolSelection:
        recent = (
            f"2. Recent steps taken:\n{chr(10).join(run.results[-SELECTION_HISTORY:])}"
            if run.results
            else "2. No steps taken yet."
        )
        tools = "\n".join(self.registry.describe())

        working = Context(
            f"""\
You are a tool selection agent.
Your task is to determine which tool to use based on the following:
1. The user's goal: {run.goal}
{recent}
3. The available tools:
{tools}

**Important:**
- Do not select tools that have already been used with similar inputs.
- Pick the best tool not already chosen to achieve the goal based on the context provided.
- Your output will be parsed as JSON. Do NOT include markdown, commentary, or explanations.
"""
        )
        for snippet in context.snippets():
            working.add_snippet(snippet.reference, snippet.chunk)
        working.add_tool_message("Progress so far:\n" + "\n".join(run.results))
        working.add_user_message("What is the next tool to use?")

        selection = await parse_response(self.provider, working, ToolSelection)
        logger.debug("Tool selection: %s", canonical_json(selection))
        return selection

    async def _tool_input(self, run: PlanRun, tool_name: str, tool: Tool) -> object:
        input_type = tool.input_type
        if input_type is NoInput:
            return NoInput()

        previous = (
            "Context from previous steps:\n" + "\n".join(run.results[-INPUT_HISTORY:])
            if run.results
            else ""
        )
        schema = canonical_json(input_type.model_json_schema())
        working = Context(
            f"""\
You are an input generator for the tool '{tool_name}'.
Your task is to generate appropriate input for this tool based on the goal and context.

The stated goal: {run.goal}
Tool Description: {tool.description}
Tool Usage: {tool.usage}
Input Type: {input_type.__name__}
Input JSON schema: {schema}

{previous}

Generate the appropriate input for this tool in JSON format.
Respond with ONLY the JSON object that matches {input_type.__name__}.
"""
        )
        working.add_user_message(
            "Create the inputs JSON for this tool based on the goal and context."
        )

        typed_input = await parse_response(self.provider, working, input_type)
        logger.debug("Input for '%s': %s", tool_name, canonical_json(typed_input))
        return typed_input

    # ------------------------------------------------------------------ #
    # Execution & progress
    # ------------------------------------------------------------------ #
    async def _execute(self, run: PlanRun, step: PlanStep, context: Context) -> Context:
        run.transition(PlanState.INVOKING)
        run.executed += 1
        index = run.steps_taken
        logger.info("Step %d: %s", index, step.tool_name)

        result = await self.registry.invoke(step.tool_name, step.tool_input, context)
        call = f"{step.tool_name}({canonical_json(step.tool_input)})"
        summary = (
            f"--- step {index}: output from {call} ---\n"
            f"{result.response}\n"
            f"--- end step {index} ---"
        )
        if result.succeeded:
            context = result.context
            context.add_tool_message(summary)
        else:
            logger.warning("Step %d (%s) failed: %s", index, step.tool_name, result.error)
        run.results.append(summary)
        return context

    async def _get_progress(self, run: PlanRun, context: Context) -> PlanProgress:
        run.transition(PlanState.EVALUATING_PROGRESS)
        snippets = context.snippets()
        references = "\n".join(f"{s.reference}: {s.chunk}" for s in snippets)

        working = Context(
            f"""\
You are helping evaluate whether the user's goal has been successfully achieved.

### Goal
{run.goal}

### User Input
{run.user_input}

### Steps Taken So Far
{chr(10).join(run.results)}

Determine: Is the goal now complete? Respond ONLY with JSON matching the PlanProgress class.
"""
            + (f"\nAdditional context:\n{references}\n" if references else "")
        )
        for snippet in snippets:
            working.add_snippet(snippet.reference, snippet.chunk)
        working.add_user_message("Have we achieved the goal?")

        try:
            progress = await parse_response(self.provider, working, PlanProgress)
        except WaypointError as exc:
            logger.warning("Failed to parse plan progress from response: %s", exc)
            return PlanProgress(goal_achieved=False)
        logger.debug("Progress after step %d: %s", run.steps_taken, progress.goal_achieved)
        return progress

    # ------------------------------------------------------------------ #
    # Final answers
    # ------------------------------------------------------------------ #
    async def _summarize_failure(self, run: PlanRun, context: Context) -> str:
        logger.warning("Planning failed, summarizing results: %s", run.failure_reason)
        context.set_system_message(self.system_prompt)
        context.add_user_message(
            f"Planning failed for goal: {run.goal}. "
            "Please summarize the results of the steps taken so far."
        )
        return await self.provider.complete(context, self.temperature)

    async def _synthesize(self, run: PlanRun, context: Context) -> str:
        if run.state is PlanState.GOAL_ACHIEVED:
            outcome = (
                "The steps below were taken, and their results gathered, to achieve that goal."
            )
        else:
            outcome = (
                "The step budget ran out before the goal was confirmed as achieved, so the results "
                "below may be incomplete. Explain what was found, and what is still missing."
            )

        working = Context(
            f"""\
Below are the steps taken, and their results, in pursuit of the user's goal.
{outcome}

The implied goal before action was taken was: {run.goal}

The user stated: {run.user_input}

Use the results of these steps to inform your response to the user's statement.
"""
        )
        for snippet in context.snippets():
            working.add_snippet(snippet.reference, snippet.chunk)
        for summary in run.results:
            working.add_tool_message(summary)
        working.add_user_message(
            f"Use the results of the steps taken to achieve the goal: '{run.goal}' to inform your "
            f"response to the original statement: '{run.user_input}'"
        )
        return await self.provider.complete(working, self.temperature)
