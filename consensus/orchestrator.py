"""Round-based consensus orchestration: parallel agent calls, agreement, termination."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from config.config_loader import PromptsConfig
from consensus.agreement import evaluate_agreement
from consensus.directives import parse_directives
from consensus.invoker import invoke_agent
from consensus.ledger import DiscussionLedger
from consensus.models import (
    NO_CONSENSUS,
    Agent,
    AgentResponse,
    InformationRequest,
    ModelResponse,
    Problem,
    Round,
    RunResult,
    RunSettings,
    RunStatus,
)
from consensus.providers.base import ProviderError
from consensus.summary import build_summary_prompt, summary_round

logger = logging.getLogger(__name__)

# Quality gate: warn when fewer than this many agents respond in Round 1
_MIN_QUALITY_RESPONSES = 3

DEFAULT_MAX_ROUNDS_LIMIT = 10
DEFAULT_AGENT_TIMEOUT_SEC = 180.0


class ValidationError(ValueError):
    """Run input or configuration is structurally invalid; the run never starts."""


@dataclass
class RunContext:
    """Mutable state of one run. Never shared between runs."""

    problem: Problem
    settings: RunSettings
    ledger: DiscussionLedger = field(default_factory=DiscussionLedger)
    round_number: int = 1


def failure_marker(agent: Agent, error: Exception) -> str:
    return f"[agent {agent.id} failed] {error}"


def _notify(callback: Callable[[Round], None] | None, rnd: Round) -> None:
    """Invoke the round callback; a failing callback is logged and never ends the run."""
    if callback is None:
        return
    try:
        callback(rnd)
    except Exception:
        logger.exception("on_round_complete callback failed for round %d", rnd.number)


def _context_turn(problem: Problem) -> str | None:
    if not problem.context:
        return None
    return f"ADDITIONAL CONTEXT (results of previously requested tools):\n{problem.context}"


class ConsensusOrchestrator:
    """Drives a fixed agent panel through rounds until consensus, a tool request, or the round limit.

    The orchestrator holds only the immutable roster and settings; every
    call to :meth:`run` gets its own :class:`RunContext`, so independent runs
    may execute concurrently on one instance.
    """

    def __init__(
        self,
        agents: Sequence[Agent],
        prompts: PromptsConfig,
        *,
        max_rounds_limit: int = DEFAULT_MAX_ROUNDS_LIMIT,
        agent_timeout_sec: float = DEFAULT_AGENT_TIMEOUT_SEC,
        summary_pass: bool = True,
    ) -> None:
        self._agents = tuple(agents)
        self._prompts = prompts
        self._max_rounds_limit = max_rounds_limit
        self._agent_timeout_sec = agent_timeout_sec
        self._summary_pass = summary_pass

    @property
    def agents(self) -> tuple[Agent, ...]:
        return self._agents

    def validate(self, problem: Problem, settings: RunSettings) -> None:
        """Raise ValidationError if the run cannot start."""
        if not isinstance(problem.description, str) or not problem.description.strip():
            raise ValidationError("Invalid problem: must be a non-empty string")
        if not all(isinstance(c, str) and c.strip() for c in problem.capabilities):
            raise ValidationError("Invalid availableTools: every entry must be a non-empty string")
        if problem.context is not None and not isinstance(problem.context, str):
            raise ValidationError("Invalid context: must be a string")

        max_rounds = settings.max_rounds
        if isinstance(max_rounds, bool) or not isinstance(max_rounds, int) or not 1 <= max_rounds <= self._max_rounds_limit:
            raise ValidationError(f"Invalid maxRounds: must be an integer between 1 and {self._max_rounds_limit}")

        threshold = settings.consensus_threshold
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) or not 0.0 <= threshold <= 1.0:
            raise ValidationError("Invalid consensusThreshold: must be a number between 0 and 1")

        if not self._agents:
            raise ValidationError("No agents configured")

    async def run(
        self,
        problem: Problem,
        settings: RunSettings,
        on_round_complete: Callable[[Round], None] | None = None,
    ) -> RunResult:
        """Run the full consensus process.

        Args:
            problem: The problem and the tool names agents may request.
            settings: Round limit and agreement threshold for this run.
            on_round_complete: Optional callback invoked after each round is
                appended to the ledger, including the summary round.

        Returns:
            RunResult. Never raises for agent failures; validation problems
            come back as status ``failed``.
        """
        try:
            self.validate(problem, settings)
        except ValidationError as exc:
            logger.error("Consensus run rejected: %s", exc)
            return RunResult(status=RunStatus.FAILED, error=str(exc))

        ctx = RunContext(problem=problem, settings=settings)
        logger.info(
            "Starting consensus run: %d agents (%s), max %d rounds, threshold %.2f",
            len(self._agents),
            ", ".join(a.name for a in self._agents),
            settings.max_rounds,
            settings.consensus_threshold,
        )

        final_consensus: str | None = None
        status = RunStatus.MAX_ROUNDS_REACHED

        while True:
            rnd, tool_requests, has_consensus = await self._run_round(ctx)
            _notify(on_round_complete, rnd)

            if has_consensus:
                final_consensus = rnd.consensus
                status = RunStatus.CONSENSUS_REACHED
                logger.info("Consensus reached in round %d", rnd.number)
                break

            if tool_requests:
                logger.warning(
                    "Advisors requested %d tool(s) in round %d; run paused for external execution",
                    len(tool_requests),
                    rnd.number,
                )
                return RunResult(
                    status=RunStatus.AWAITING_INFORMATION,
                    total_rounds=len(ctx.ledger),
                    rounds=ctx.ledger.rounds,
                    tool_requests=tuple(tool_requests),
                    awaiting_round=rnd.number,
                )

            if ctx.round_number >= settings.max_rounds:
                logger.info("Round limit %d reached without consensus", settings.max_rounds)
                break

            ctx.round_number += 1

        variations: dict[str, str] = {}
        if self._summary_pass:
            variations = await self._run_summary(ctx, final_consensus, on_round_complete)

        logger.info("Consensus run complete: %s after %d rounds", status.value, len(ctx.ledger))
        return RunResult(
            status=status,
            final_consensus=final_consensus if final_consensus is not None else NO_CONSENSUS,
            total_rounds=len(ctx.ledger),
            rounds=ctx.ledger.rounds,
            summary_variations=variations,
        )

    def _round_prompt(self, ctx: RunContext) -> str:
        if ctx.round_number == 1:
            return self._prompts.initial.format(
                problem=ctx.problem.description,
                tools=", ".join(ctx.problem.capabilities) or "none",
                directive_example=self._prompts.directive_example,
            )
        return self._prompts.followup.format(discussion=ctx.ledger.condensed_context())

    async def _run_round(self, ctx: RunContext) -> tuple[Round, list[InformationRequest], bool]:
        round_num = ctx.round_number
        logger.info("Starting round %d with %d agents", round_num, len(self._agents))

        responses = await self._fan_out(
            self._round_prompt(ctx), round_num, context=_context_turn(ctx.problem)
        )

        succeeded = sum(1 for r in responses if not r.failed)
        if round_num == 1 and len(self._agents) >= _MIN_QUALITY_RESPONSES and succeeded < _MIN_QUALITY_RESPONSES:
            logger.warning(
                "WARNING: Only %d/%d agents responded in Round 1. Agreement quality is degraded.",
                succeeded,
                len(self._agents),
            )

        tool_requests = [req for r in responses for req in r.requests]
        agreement = evaluate_agreement(responses, ctx.settings.consensus_threshold)

        rnd = Round(number=round_num, responses=tuple(responses), consensus=agreement.consensus)
        ctx.ledger.append(rnd)

        logger.info(
            "Round %d complete: %d/%d agents succeeded, %d tool request(s), consensus=%s",
            round_num,
            succeeded,
            len(self._agents),
            len(tool_requests),
            agreement.has_consensus,
        )
        return rnd, tool_requests, agreement.has_consensus

    async def _run_summary(
        self,
        ctx: RunContext,
        consensus: str | None,
        on_round_complete: Callable[[Round], None] | None,
    ) -> dict[str, str]:
        prompt = build_summary_prompt(self._prompts, ctx.problem, len(ctx.ledger), consensus)
        number = ctx.ledger.rounds[-1].number + 1
        logger.info("Running summary pass as round %d", number)

        responses = await self._fan_out(prompt, number, parse=False)
        rnd, variations = summary_round(number, responses, consensus)
        ctx.ledger.append(rnd)
        _notify(on_round_complete, rnd)
        return variations

    async def _fan_out(
        self,
        prompt: str,
        round_number: int,
        context: str | None = None,
        parse: bool = True,
    ) -> list[AgentResponse]:
        """Query every agent concurrently and wait for all of them to settle."""
        outcomes = await asyncio.gather(
            *(self._call_agent(agent, prompt, round_number, context) for agent in self._agents)
        )
        return [
            self._to_response(agent, outcome, parse)
            for agent, outcome in zip(self._agents, outcomes)
        ]

    async def _call_agent(
        self,
        agent: Agent,
        prompt: str,
        round_number: int,
        context: str | None,
    ) -> ModelResponse | ProviderError:
        """Call a single agent under the per-call timeout.

        Never raises — returns ProviderError on any failure.
        """
        try:
            return await asyncio.wait_for(
                invoke_agent(agent, prompt, round_number, context),
                timeout=self._agent_timeout_sec,
            )
        except TimeoutError:
            err = ProviderError(agent.id, f"No response within {self._agent_timeout_sec:g}s")
        except ProviderError as exc:
            err = exc
        except Exception as exc:
            err = ProviderError(agent.id, f"Unexpected error: {exc}")
        logger.warning("Agent %s failed in round %d: %s", agent.id, round_number, err)
        return err

    @staticmethod
    def _to_response(agent: Agent, outcome: ModelResponse | ProviderError, parse: bool) -> AgentResponse:
        if isinstance(outcome, ProviderError):
            return AgentResponse(agent_id=agent.id, text=failure_marker(agent, outcome), failed=True)
        requests = tuple(parse_directives(outcome.content)) if parse else ()
        return AgentResponse(agent_id=agent.id, text=outcome.content, requests=requests)
