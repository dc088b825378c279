"""Rich console output and markdown file save for consensus runs."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from consensus.models import AgentResponse, Problem, Round, RunResult, RunStatus

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False, stderr=True)

_STATUS_STYLES = {
    RunStatus.CONSENSUS_REACHED: "bold green",
    RunStatus.MAX_ROUNDS_REACHED: "bold yellow",
    RunStatus.AWAITING_INFORMATION: "bold red",
    RunStatus.FAILED: "bold red",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _response_preview(response: AgentResponse, words: int = 50) -> str:
    """Return first N words of a response."""
    all_words = response.text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _round_title(rnd: Round) -> str:
    return f"Round {rnd.number} Summary Pass" if rnd.is_summary else f"Round {rnd.number} Discussion"


def print_round_summary(rnd: Round) -> None:
    """Print a brief summary of one round's responses to the console."""
    console.print(Rule(f"[bold cyan]{_round_title(rnd)}[/bold cyan]"))
    for resp in rnd.responses:
        body = Text(_response_preview(resp))
        if resp.requests:
            body.append("\n\nTool Requests:", style="yellow")
            for req in resp.requests:
                body.append(f"\n  - {req.tool}: {req.reason}")
        console.print(
            Panel(
                body,
                title=f"[bold]{escape(resp.agent_id)}[/bold]",
                border_style="red" if resp.failed else "dim",
            )
        )
    if rnd.consensus is not None and not rnd.is_summary:
        console.print(Panel(Text(rnd.consensus), title="[bold magenta]CONSENSUS REACHED[/bold magenta]", border_style="magenta"))


def print_result(result: RunResult) -> None:
    """Print the terminal status and the final consensus using Rich markdown."""
    console.print(Rule("[bold blue]Consensus Process Complete[/bold blue]"))
    console.print(
        Text(
            f"Status: {result.status.value} | Rounds: {result.total_rounds}",
            style=_STATUS_STYLES[result.status],
        )
    )
    if result.status is RunStatus.FAILED:
        console.print(f"[bold red]Error:[/bold red] {escape(result.error or '')}")
        return
    if result.status is RunStatus.AWAITING_INFORMATION:
        console.print(
            f"[yellow]Advisors requested {len(result.tool_requests)} tool(s) in round "
            f"{result.awaiting_round}. Execute them and re-run with --context-file.[/yellow]"
        )
        for req in result.tool_requests:
            console.print(f"  - [bold]{escape(req.tool)}[/bold] {escape(str(req.parameters))}: {escape(req.reason)}")
        return
    if result.final_consensus:
        console.print(Markdown(result.final_consensus))


def save_to_file(
    result: RunResult,
    problem: Problem,
    output_dir: Path,
    slug_override: str | None = None,
) -> Path:
    """Save the full discussion transcript as a markdown file.

    Args:
        result: The finished RunResult (any status except failed).
        problem: The problem the run was given.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the problem text.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(problem.description)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    panel = [r.agent_id for r in result.rounds[0].responses] if result.rounds else []

    lines: list[str] = [
        f"# Consensus Panel: {problem.description[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Panel:** {', '.join(panel)}",
        f"**Tools:** {', '.join(problem.capabilities) or 'none'}",
        f"**Status:** {result.status.value}",
        f"**Rounds:** {result.total_rounds}",
        "",
        "---",
        "",
    ]

    for rnd in result.rounds:
        label = "Summary Pass" if rnd.is_summary else ("Initial Responses" if rnd.number == 1 else "Discussion")
        lines.append(f"## Round {rnd.number}: {label}")
        lines.append("")
        for resp in rnd.responses:
            heading = f"### {resp.agent_id}" + (" (failed)" if resp.failed else "")
            lines += [heading, "", resp.text, ""]
            for req in resp.requests:
                lines.append(f"- **Tool request** `{req.tool}` {req.parameters}: {req.reason}")
            if resp.requests:
                lines.append("")

    if result.status is RunStatus.AWAITING_INFORMATION:
        lines += ["## Pending Tool Requests", ""]
        lines += [f"- `{r.tool}` {r.parameters}: {r.reason}" for r in result.tool_requests]
        lines.append("")
    else:
        lines += ["## Final Consensus", "", result.final_consensus or "", ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
