# run.py
# Entry point. Config and wiring only — no logic lives here.
#
# Credentials and model settings come from the environment (or .env):
#   NVIDIA_API_KEY=...  AGENT_MODEL=...  AGENT_MAX_ITERATIONS=25

import sys
from collections.abc import Callable

from tool_agent import display
from tool_agent.agent import Agent
from tool_agent.client import CompletionClient
from tool_agent.config import ConfigError, Settings, load_settings
from tool_agent.log import setup_logging
from tool_agent.tools import default_registry

EXIT_COMMAND = "exit"


def build_agent(settings: Settings) -> Agent:
    return Agent(
        client=CompletionClient(settings),
        registry=default_registry(),
        max_iterations=settings.max_iterations,
        round_timeout=settings.round_timeout,
        correct_unknown_steps=settings.correct_unknown_steps,
    )


def _ask() -> str:
    return display.console.input(
        f'[bold yellow]📝 Enter your prompt (or "{EXIT_COMMAND}" to quit): [/bold yellow]'
    )


def repl(agent: Agent, read: Callable[[], str] = _ask) -> None:
    """Read one query per line until `exit` (or EOF). Blank lines are ignored."""
    while True:
        try:
            query = read()
        except (EOFError, KeyboardInterrupt):
            break

        if query.strip().lower() == EXIT_COMMAND:
            break
        if not query.strip():
            continue

        agent.run(query.strip())

    display.goodbye()


def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as exc:
        display.halt(str(exc))
        sys.exit(1)

    setup_logging(settings.log_level)
    agent = build_agent(settings)
    display.banner(settings.model, agent.tool_names)
    repl(agent)


if __name__ == "__main__":
    main()
