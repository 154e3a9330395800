# protocol.py
# Step protocol — turns one raw model response into a typed Step, and
# serializes tool observations back into the conversation.
#
# Parsing never crashes on bad input: undecodable text and recognised steps
# with missing fields raise StepParseError; anything else that decodes is an
# UnknownStep and the caller decides what to do with it.

import json
from enum import Enum

from pydantic import ValidationError

from tool_agent.models import (
    ActionStep,
    Message,
    Observation,
    OutputStep,
    Role,
    Step,
    ThinkStep,
    UnknownStep,
)


class ParseErrorKind(str, Enum):
    MALFORMED = "malformed"
    INVALID_SHAPE = "invalid_shape"


class StepParseError(Exception):
    """Raised when a model response is not valid JSON or not a well-formed step."""

    def __init__(self, kind: ParseErrorKind, raw: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.raw = raw


_STEP_MODELS: dict[str, type[ActionStep | OutputStep | ThinkStep]] = {
    "ACTION": ActionStep,
    "OUTPUT": OutputStep,
    "THINK": ThinkStep,
}


def _reject_constant(name: str) -> float:
    raise ValueError(f"non-standard JSON constant {name}")


def parse_step(raw: str) -> Step:
    """
    Decode `raw` and route on its `step` discriminator.

    Raises StepParseError(MALFORMED) if `raw` is not strict JSON (this
    includes NaN / Infinity and nesting too deep to decode), and
    StepParseError(INVALID_SHAPE) if a recognised step lacks required fields.
    """
    try:
        data = json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, TypeError, RecursionError) as exc:
        raise StepParseError(
            ParseErrorKind.MALFORMED, raw, f"Response is not valid JSON: {exc}"
        ) from exc

    if not isinstance(data, dict):
        return UnknownStep(step=None, content=data)

    discriminator = data.get("step")
    model = _STEP_MODELS.get(discriminator) if isinstance(discriminator, str) else None
    if model is None:
        return UnknownStep(step=discriminator, content=data.get("content"))

    fields = {k: v for k, v in data.items() if k != "step"}
    try:
        return model.model_validate(fields)
    except ValidationError as exc:
        missing = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise StepParseError(
            ParseErrorKind.INVALID_SHAPE,
            raw,
            f"{discriminator} step is missing or has invalid field(s): {missing}",
        ) from exc


# ---------------------------------------------------------------------------
# Observations
# ---------------------------------------------------------------------------


def serialize_observation(content: str) -> str:
    return Observation(content=content).model_dump_json()


def observation_message(content: str) -> Message:
    """Wrap an observation as the user-role message the model sees next round."""
    return Message(role=Role.USER, content=serialize_observation(content))


def parse_observation(text: str) -> Observation:
    return Observation.model_validate_json(text)
