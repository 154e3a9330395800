# display.py
# All terminal output for the agent loop.
#
# This module owns presentation entirely. agent.py never formats strings —
# it calls named functions here. Swap this file to change the entire UI.
#
# Colour language:
#   cyan    — session / routing events
#   blue    — model rounds
#   magenta — step internals (Action / Observe / Think)
#   yellow  — recoverable oddities (unknown steps, tool errors)
#   green   — final answer
#   red     — aborts

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 200) -> str:
    if len(value) > max_len:
        value = value[:max_len] + "…"
    return escape(value)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def banner(model: str, tools: list[str]) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]⚡ Agentic Coding Tool[/bold cyan]\n\n"
            f"[dim]Model :[/dim] [white]{model}[/white]\n"
            f"[dim]Tools :[/dim] [white]{', '.join(tools)}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def prompt_received(prompt: str) -> None:
    console.print()
    console.print(Rule("[cyan]NEW REQUEST[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{escape(prompt)}[/white]",
            title=_label("USER QUERY", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


def goodbye() -> None:
    console.print("\n[cyan]👋 Goodbye![/cyan]\n")


# ---------------------------------------------------------------------------
# Rounds
# ---------------------------------------------------------------------------


def round_start(iteration: int, limit: int) -> None:
    console.print()
    console.print(f"[bold blue]--- Step {iteration}/{limit} ---[/bold blue]")


def action(description: str, tool: str, tool_input: str) -> None:
    console.print(f"  [magenta]🔧 Action[/magenta]  [white]{_mono(description)}[/white]")
    console.print(
        f"  [dim]   Tool:[/dim] [bold white]{escape(tool)}[/bold white]"
        f"  [dim]| Input:[/dim] [white]{_mono(tool_input, 120)}[/white]"
    )


def observation(content: str) -> None:
    console.print(f"  [magenta]✅ Result[/magenta]  [white]{_mono(content)}[/white]")


def tool_error(message: str) -> None:
    console.print(f"  [yellow]❌ Error[/yellow]  [white]{_mono(message)}[/white]")


def think(content: str) -> None:
    console.print(f"  [magenta]💭[/magenta] [dim white]{_mono(content)}[/dim white]")


def unknown_step(step: object, content: object) -> None:
    console.print(
        f"  [yellow]⚠️ Unknown step:[/yellow] [white]{escape(repr(step))}[/white]"
        f" [dim]{_mono(repr(content))}[/dim]"
    )


# ---------------------------------------------------------------------------
# Terminal states
# ---------------------------------------------------------------------------


def final_result(result: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[white]{escape(result)}[/white]",
            title=_label("FINAL ANSWER", "green"),
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()


def halt(reason: str, detail: str = "") -> None:
    body = f"[bold white]{escape(reason)}[/bold white]"
    if detail:
        body += f"\n\n[dim]{_mono(detail, 500)}[/dim]"
    console.print()
    console.print(
        Panel(
            body,
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
