# agent.py
# Tool-use agent loop.
#
# The model is a passive responder — this class owns all control flow,
# conversation state, and the iteration budget.
#
# One round:
#   conversation → completion → assistant message → parse step
#   → OUTPUT: done | ACTION: tool → observation message | THINK/unknown: next round
#
# All terminal output is delegated to display.py — no formatting here.

from typing import Protocol

from tool_agent import display
from tool_agent.client import CompletionError
from tool_agent.conversation import Conversation
from tool_agent.log import get_logger
from tool_agent.models import (
    AbortReason,
    ActionStep,
    AgentResult,
    AgentState,
    OutputStep,
    ThinkStep,
    UnknownStep,
)
from tool_agent.protocol import StepParseError, parse_step
from tool_agent.tools import ToolRegistry

log = get_logger(__name__)

MAX_ITERATIONS = 25


# ---------------------------------------------------------------------------
# System Prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """\
You are an AI assistant that resolves user queries using tools. Be direct and efficient.

You respond in JSON with one of two step types: ACTION or OUTPUT.
- ACTION: Call a tool. Think internally first, then immediately output the action.
- OUTPUT: Give the final answer to the user.

Do NOT output THINK steps. Think internally, then respond with ACTION or OUTPUT only.
After each ACTION, you will receive an OBSERVE message with the tool result. \
Use it to decide your next ACTION or final OUTPUT.

Available tools:
{tools}

JSON format for ACTION:
{{ "step": "ACTION", "tool": "<tool_name>", "tool_input": "<input>", "content": "<brief description>" }}

JSON format for OUTPUT:
{{ "step": "OUTPUT", "content": "<final answer>" }}

Rules:
- Output strictly valid JSON, one step per response.
- Only use the tools listed above.
- For executeCommand: prefer combining related commands with && to minimize round-trips.
- Always respond with ACTION or OUTPUT, never THINK.\
"""


def build_system_prompt(registry: ToolRegistry) -> str:
    return SYSTEM_PROMPT.format(tools=registry.describe())


def _enter(state: AgentState, iteration: int | None = None) -> None:
    log.debug("agent.state", state=state.value, iteration=iteration)


class Completer(Protocol):
    def complete(self, messages: list[dict], timeout: float | None = None) -> str: ...


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class Agent:
    """
    Runs the step-protocol loop for one query at a time.

    Every call to run() builds (or receives) its own Conversation and
    iteration counter, so nothing is shared between queries.

    Example:
        agent = Agent(CompletionClient(settings), default_registry())
        result = agent.run("what is the weather in Paris")
        if result.done:
            print(result.output)
    """

    def __init__(
        self,
        client: Completer,
        registry: ToolRegistry,
        max_iterations: int = MAX_ITERATIONS,
        round_timeout: float | None = None,
        correct_unknown_steps: bool = False,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1.")
        self._client = client
        self._registry = registry
        self._max_iterations = max_iterations
        self._round_timeout = round_timeout
        self._correct_unknown_steps = correct_unknown_steps
        self.system_prompt = build_system_prompt(registry)

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @property
    def tool_names(self) -> list[str]:
        return self._registry.names

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, query: str, conversation: Conversation | None = None) -> AgentResult:
        """
        Drive the loop until an OUTPUT step, a parse failure, a completion
        failure, or the iteration cap.

        Returns an AgentResult in all cases; nothing the model or a tool
        does escapes as an exception.
        """
        if conversation is None:
            conversation = Conversation(self.system_prompt)

        display.prompt_received(query)
        conversation.add_user(query)
        log.info("agent.query.start", query=query, max_iterations=self._max_iterations)

        iterations = 0
        while iterations < self._max_iterations:
            iterations += 1
            display.round_start(iterations, self._max_iterations)
            _enter(AgentState.AWAITING_MODEL, iterations)

            try:
                raw = self._client.complete(conversation.to_payload(), timeout=self._round_timeout)
            except CompletionError as exc:
                return self._abort(AbortReason.COMPLETION_FAILED, str(exc), iterations)

            conversation.add_assistant(raw)

            try:
                step = parse_step(raw)
            except StepParseError as exc:
                return self._abort(AbortReason.PARSE_FAILURE, str(exc), iterations, raw=exc.raw)

            if isinstance(step, OutputStep):
                log.info("agent.query.done", iterations=iterations)
                display.final_result(step.content)
                return AgentResult(state=AgentState.DONE, output=step.content, iterations=iterations)

            if isinstance(step, ActionStep):
                self._act(step, conversation)
            elif isinstance(step, ThinkStep):
                log.debug("agent.step.think", iteration=iterations)
                display.think(step.content)
            elif isinstance(step, UnknownStep):
                self._unknown(step, conversation, iterations)

        detail = f"Reached max iterations ({self._max_iterations}). Stopping."
        return self._abort(AbortReason.ITERATION_LIMIT_EXCEEDED, detail, iterations)

    # ------------------------------------------------------------------
    # Step handlers
    # ------------------------------------------------------------------

    def _act(self, step: ActionStep, conversation: Conversation) -> None:
        """AwaitingTool: dispatch, then feed the result or error back as an observation."""
        _enter(AgentState.AWAITING_TOOL)
        display.action(step.content, step.tool, step.tool_input)

        result = self._registry.invoke(step.tool, step.tool_input, timeout=self._round_timeout)
        if result.ok:
            display.observation(result.output)
        else:
            log.info("agent.tool.error", tool=step.tool, kind=result.error_kind.value)
            display.tool_error(result.error or "")

        conversation.add_observation(result.observation_content)
        _enter(AgentState.RUNNING)

    def _unknown(self, step: UnknownStep, conversation: Conversation, iteration: int) -> None:
        log.warning("agent.step.unknown", step=step.step, iteration=iteration)
        display.unknown_step(step.step, step.content)
        if self._correct_unknown_steps:
            conversation.add_observation(
                f"Error: unrecognized step {step.step!r}. "
                "Respond with a single ACTION or OUTPUT JSON object."
            )

    def _abort(
        self,
        reason: AbortReason,
        detail: str,
        iterations: int,
        raw: str | None = None,
    ) -> AgentResult:
        log.warning("agent.query.aborted", reason=reason.value, iterations=iterations)
        display.halt(detail, raw or "")
        return AgentResult(
            state=AgentState.ABORTED,
            reason=reason,
            detail=detail,
            raw=raw,
            iterations=iterations,
        )
