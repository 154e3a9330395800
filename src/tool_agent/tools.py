# tools.py
# Tool registry and the built-in tool implementations.
# The agent loop dispatches through ToolRegistry and never calls these
# functions directly.

import contextlib
import os
import signal
import subprocess
import threading
from collections.abc import Callable, Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tool_agent.log import get_logger
from tool_agent.models import ToolErrorKind, ToolResult

log = get_logger(__name__)


class CommandFailedError(Exception):
    """Raised by executeCommand when the shell exits non-zero."""


class ToolTimeoutError(Exception):
    """Raised when a tool does not return within the round deadline."""


class ToolDescriptor(BaseModel):
    """A named capability: one string in, one string out (or an exception)."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict, description="JSON-Schema-like.")
    invoke: Callable[..., str]
    accepts_timeout: bool = Field(
        default=False,
        description="invoke takes a `timeout` keyword and enforces the deadline itself.",
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """
    Static name → ToolDescriptor mapping, fixed at construction.

    invoke() never raises for tool problems. An unregistered name and a
    tool's own failure come back as distinct ToolErrorKind values so the
    caller can report either to the model as data.
    """

    def __init__(self, descriptors: Iterable[ToolDescriptor]) -> None:
        tools: dict[str, ToolDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in tools:
                raise ValueError(f"Duplicate tool name: {descriptor.name!r}")
            tools[descriptor.name] = descriptor
        self._tools = tools

    def resolve(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def invoke(self, name: str, tool_input: str, timeout: float | None = None) -> ToolResult:
        descriptor = self.resolve(name)
        if descriptor is None:
            log.warning("tool.invoke.unknown", tool=name)
            return ToolResult(
                error_kind=ToolErrorKind.UNKNOWN_TOOL,
                error=f"Tool '{name}' is not registered. Available tools: {', '.join(self.names)}",
            )

        log.debug("tool.invoke.start", tool=name, timeout=timeout)
        try:
            output = self._call(descriptor, tool_input, timeout)
        except ToolTimeoutError as exc:
            log.warning("tool.invoke.timeout", tool=name, timeout=timeout)
            return ToolResult(error_kind=ToolErrorKind.EXECUTION_FAILED, error=str(exc))
        except Exception as exc:
            log.warning("tool.invoke.failed", tool=name, error=str(exc))
            return ToolResult(
                error_kind=ToolErrorKind.EXECUTION_FAILED,
                error=str(exc) or type(exc).__name__,
            )

        return ToolResult(output=output if isinstance(output, str) else str(output))

    @staticmethod
    def _call(descriptor: ToolDescriptor, tool_input: str, timeout: float | None) -> str:
        if timeout is None:
            return descriptor.invoke(tool_input)
        if descriptor.accepts_timeout:
            return descriptor.invoke(tool_input, timeout=timeout)

        # Daemon worker: an overrunning tool is abandoned and never blocks interpreter exit.
        outcome: dict[str, Any] = {}

        def target() -> None:
            try:
                outcome["output"] = descriptor.invoke(tool_input)
            except Exception as exc:
                outcome["error"] = exc

        worker = threading.Thread(target=target, name=f"tool-{descriptor.name}", daemon=True)
        worker.start()
        worker.join(timeout)
        if worker.is_alive():
            raise ToolTimeoutError(f"Tool '{descriptor.name}' timed out after {timeout}s")
        if "error" in outcome:
            raise outcome["error"]
        return outcome["output"]

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def descriptors(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def describe(self) -> str:
        """Render the tool list for the system prompt: `- name(param: type): description`."""
        lines: list[str] = []
        for tool in self._tools.values():
            props = tool.parameters.get("properties", {})
            params = ", ".join(f"{key}: {spec.get('type', 'string')}" for key, spec in props.items())
            lines.append(f"- {tool.name}({params}): {tool.description}")
        return "\n".join(lines)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


# ---------------------------------------------------------------------------
# Built-in tools
# ---------------------------------------------------------------------------


def get_weather_info(city: str) -> str:
    return f"28 DEGREE CELSIUS for {city}"


def execute_command(command: str, timeout: float | None = None) -> str:
    """
    Run `command` through the shell. No sandboxing.

    The shell runs in its own session so that on timeout the whole process
    group (the shell and anything it spawned) is killed.
    """
    proc = subprocess.Popen(
        command,
        shell=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        start_new_session=True,
    )
    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        with contextlib.suppress(ProcessLookupError):
            os.killpg(proc.pid, signal.SIGKILL)
        proc.communicate()
        raise ToolTimeoutError(f"Command timed out after {timeout}s: {command}") from None

    if proc.returncode != 0:
        raise CommandFailedError(f"Command failed: {command}\n{stderr}".rstrip())
    return f"stdout {stdout}\nstderr {stderr}"


WEATHER_TOOL = ToolDescriptor(
    name="getWeatherInfo",
    description="Returns weather info for a city.",
    parameters={
        "type": "object",
        "properties": {
            "city": {"type": "string", "description": "The city to get the weather information for"},
        },
        "required": ["city"],
    },
    invoke=get_weather_info,
)

COMMAND_TOOL = ToolDescriptor(
    name="executeCommand",
    description=(
        "Executes a shell command and returns stdout/stderr. Use URL-friendly names for "
        "files/folders (no spaces). Combine multiple commands with && when possible."
    ),
    parameters={
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "The command to execute"},
        },
        "required": ["command"],
    },
    invoke=execute_command,
    accepts_timeout=True,
)


def default_registry() -> ToolRegistry:
    return ToolRegistry([WEATHER_TOOL, COMMAND_TOOL])
