# models.py
# Data contracts for the tool-use agent loop.
# No business logic lives here — pure schema and validation.

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """One role-tagged entry in the conversation log. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


class ActionStep(BaseModel):
    """A request to invoke a named tool with a single string argument."""

    model_config = ConfigDict(frozen=True)

    tool: StrictStr = Field(..., description="Tool name — looked up in the registry.")
    tool_input: StrictStr = Field(..., description="The single string argument.")
    content: StrictStr = Field(default="", description="Brief description of the action.")


class OutputStep(BaseModel):
    """The final answer. Terminates the loop."""

    model_config = ConfigDict(frozen=True)

    content: StrictStr = Field(..., min_length=1)


class ThinkStep(BaseModel):
    """Internal reasoning. Logged, never acted on."""

    model_config = ConfigDict(frozen=True)

    content: StrictStr


class UnknownStep(BaseModel):
    """Valid JSON that carries no recognised step discriminator."""

    model_config = ConfigDict(frozen=True)

    step: Any = None
    content: Any = None


Step = ActionStep | OutputStep | ThinkStep | UnknownStep


class Observation(BaseModel):
    """Tool result (or error) fed back to the model as a user message."""

    model_config = ConfigDict(frozen=True)

    step: str = "OBSERVE"
    content: str


# ---------------------------------------------------------------------------
# Tool results
# ---------------------------------------------------------------------------


class ToolErrorKind(str, Enum):
    UNKNOWN_TOOL = "unknown_tool"
    EXECUTION_FAILED = "execution_failed"


class ToolResult(BaseModel):
    """Outcome of a registry dispatch. Exactly one of output / error is meaningful."""

    model_config = ConfigDict(frozen=True)

    output: str = ""
    error_kind: ToolErrorKind | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @property
    def observation_content(self) -> str:
        if self.ok:
            return self.output
        return f"Error: {self.error}"


# ---------------------------------------------------------------------------
# Loop outcome
# ---------------------------------------------------------------------------


class AgentState(str, Enum):
    RUNNING = "running"
    AWAITING_MODEL = "awaiting_model"
    AWAITING_TOOL = "awaiting_tool"
    DONE = "done"
    ABORTED = "aborted"


class AbortReason(str, Enum):
    PARSE_FAILURE = "parse_failure"
    ITERATION_LIMIT_EXCEEDED = "iteration_limit_exceeded"
    COMPLETION_FAILED = "completion_failed"


class AgentResult(BaseModel):
    """Terminal state of one top-level query."""

    state: AgentState
    output: str | None = Field(default=None, description="Final answer when state is DONE.")
    reason: AbortReason | None = None
    detail: str = Field(default="", description="Human-readable diagnostic for aborts.")
    raw: str | None = Field(default=None, description="Offending model text on parse failure.")
    iterations: int = 0

    @property
    def done(self) -> bool:
        return self.state is AgentState.DONE
