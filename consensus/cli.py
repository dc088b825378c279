"""Click CLI — orchestrates config loading, agent construction, the consensus run, and output."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, ConfigError, load_config
from consensus.healthcheck import run_health_checks
from consensus.models import Agent, Problem, Round, RunResult, RunSettings, RunStatus
from consensus.orchestrator import ConsensusOrchestrator, ValidationError
from consensus.output import console, print_result, print_round_summary, save_to_file
from consensus.payload import dumps, parse_run_input, result_to_payload
from consensus.providers.anthropic import AnthropicProvider
from consensus.providers.base import AIProvider
from consensus.providers.gemini import GeminiProvider
from consensus.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}


def _setup_logging(verbose: bool, quiet: bool) -> None:
    if quiet:
        level = logging.WARNING
    else:
        level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
    )


def _build_agents(config: AppConfig) -> list[Agent]:
    """Build the panel from config, skipping agents whose model has no API key."""
    providers: dict[str, AIProvider] = {}
    agents: list[Agent] = []
    for agent_cfg in config.agents:
        model_name = agent_cfg.model
        if model_name not in config.available_models:
            logging.warning("Agent '%s' skipped: model '%s' has no API key", agent_cfg.id, model_name)
            continue
        if model_name not in providers:
            model_cfg = config.models[model_name]
            provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
            if provider_cls is None:
                logging.warning("Model '%s' uses unknown sdk '%s', skipping", model_name, model_cfg.sdk)
                continue
            try:
                providers[model_name] = provider_cls(model_cfg)
            except Exception as exc:
                logging.warning("Failed to instantiate provider '%s': %s", model_name, exc)
                continue
        agents.append(
            Agent(
                id=agent_cfg.id,
                name=agent_cfg.name,
                preamble=config.prompts.preamble,
                provider=providers[model_name],
            )
        )
    return agents


def _check_and_filter_agents(agents: list[Agent]) -> list[Agent]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the working agents. Exits if the user declines to continue or
    no agent passes.
    """
    console.print("\n[bold]Checking agents...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(agents))

    failed_ids: list[str] = []
    for agent in agents:
        ok, err = results[agent.id]
        if ok:
            console.print(f"  [green]OK  [/green] {agent.id}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {agent.id}: {escape(short_err)}")
            failed_ids.append(agent.id)

    if not failed_ids:
        console.print()
        return agents

    working = [a for a in agents if a.id not in failed_ids]

    if not working:
        console.print("\n[bold red]Error:[/bold red] No agents passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed_ids)} agent(s) failed:[/yellow] {', '.join(failed_ids)}")
    console.print(f"Working agents: {', '.join(a.id for a in working)}")

    if not click.confirm("Continue with working agents only?", default=True, err=True):
        sys.exit(0)

    console.print()
    return working


def _build_run_input(
    problem_text: str,
    tools: tuple[str, ...],
    max_rounds: int | None,
    threshold: float | None,
    context: str | None,
) -> dict:
    """Assemble the boundary run-input payload; unset overrides fall back to config."""
    raw: dict = {"problem": problem_text, "availableTools": list(tools)}
    if max_rounds is not None:
        raw["maxRounds"] = max_rounds
    if threshold is not None:
        raw["consensusThreshold"] = threshold
    if context:
        raw["context"] = context
    return raw


async def _run(
    orchestrator: ConsensusOrchestrator,
    problem: Problem,
    settings: RunSettings,
    show_rounds: bool,
) -> RunResult:
    """Run one consensus process, rendering rounds live unless suppressed."""
    if not show_rounds:
        return await orchestrator.run(problem, settings)

    console.print(
        f"\n[bold cyan]Consensus Panel[/bold cyan] — {len(orchestrator.agents)} agents, "
        f"up to {settings.max_rounds} rounds, threshold {settings.consensus_threshold:.2f}"
    )
    console.print(f"Panel: {', '.join(a.name for a in orchestrator.agents)}")
    text = problem.description
    console.print(f"Problem: [italic]{escape(text[:80])}{'...' if len(text) > 80 else ''}[/italic]\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Running discussion rounds...", total=None)

        def on_round_complete(rnd: Round) -> None:
            print_round_summary(rnd)
            progress.update(task, description=f"Round {rnd.number} complete, continuing...")

        return await orchestrator.run(problem, settings, on_round_complete=on_round_complete)


@click.command()
@click.argument("problem", required=False)
@click.option("--file", "problem_file", type=click.Path(exists=True), help="Read the problem from a file")
@click.option("--tool", "tools", multiple=True, help="Tool name the agents may request (repeatable)")
@click.option("--max-rounds", default=None, type=int, help="Maximum discussion rounds (default: from config)")
@click.option("--threshold", default=None, type=float, help="Agreement threshold 0.0-1.0 (default: from config)")
@click.option("--context-file", type=click.Path(exists=True), default=None,
              help="Results of previously requested tools, passed to every agent")
@click.option("--json", "as_json", is_flag=True, help="Print the result payload as JSON on stdout")
@click.option("--save", is_flag=True, help="Save a markdown transcript to the output directory")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--quiet", is_flag=True, help="Suppress round rendering and INFO logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    problem: str | None,
    problem_file: str | None,
    tools: tuple[str, ...],
    max_rounds: int | None,
    threshold: float | None,
    context_file: str | None,
    as_json: bool,
    save: bool,
    output_path: str | None,
    verbose: bool,
    quiet: bool,
    skip_health_check: bool,
) -> None:
    """Consensus Panel -- multi-agent round-based consensus.

    \b
    Examples:
      consensus-panel "Should we adopt a four-day work week?"
      consensus-panel "Pick a database for analytics" --tool web_search --threshold 0.6
      consensus-panel --file problem.md --max-rounds 3 --json
      consensus-panel --file problem.md --tool web_search --context-file search_results.md
    """
    load_dotenv()

    try:
        config = load_config()
    except (FileNotFoundError, ConfigError) as exc:
        if as_json:
            click.echo(dumps(result_to_payload(RunResult(status=RunStatus.FAILED, error=f"Config error: {exc}"))))
        else:
            console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    quiet = quiet or config.defaults.disable_logging
    _setup_logging(verbose, quiet)

    if problem_file:
        problem_text = Path(problem_file).read_text(encoding="utf-8").strip()
    elif problem:
        problem_text = problem
    else:
        console.print("[bold red]Error:[/bold red] Provide a PROBLEM argument or --file.")
        sys.exit(1)

    context = Path(context_file).read_text(encoding="utf-8").strip() if context_file else None

    agents = _build_agents(config)
    if not agents:
        console.print("[bold red]Error:[/bold red] No agents available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        agents = _check_and_filter_agents(agents)

    orchestrator = ConsensusOrchestrator(
        agents,
        config.prompts,
        max_rounds_limit=config.defaults.max_rounds_limit,
        agent_timeout_sec=config.defaults.agent_timeout_sec,
        summary_pass=config.defaults.summary_pass,
    )

    raw = _build_run_input(problem_text, tools, max_rounds, threshold, context)
    try:
        run_problem, settings = parse_run_input(raw, config.defaults)
    except ValidationError as exc:
        run_problem = None
        result = RunResult(status=RunStatus.FAILED, error=str(exc))
    else:
        result = asyncio.run(_run(orchestrator, run_problem, settings, show_rounds=not quiet and not as_json))

    if as_json:
        click.echo(dumps(result_to_payload(result)))
    else:
        print_result(result)

    if save and run_problem is not None and result.status is not RunStatus.FAILED:
        output_dir = Path(output_path) if output_path else config.defaults.output_dir
        saved_path = save_to_file(result, run_problem, output_dir)
        console.print(f"\n[dim]Saved to: {saved_path}[/dim]")

    if result.status is RunStatus.FAILED:
        sys.exit(1)


if __name__ == "__main__":
    main()
