"""Closing summary pass: every agent restates the outcome once more."""

import logging

from config.config_loader import PromptsConfig
from consensus.models import NO_CONSENSUS, AgentResponse, Problem, Round

logger = logging.getLogger(__name__)


def build_summary_prompt(
    prompts: PromptsConfig,
    problem: Problem,
    rounds_completed: int,
    consensus: str | None,
) -> str:
    """Fill the closing prompt with the decided outcome (or the no-consensus placeholder)."""
    return prompts.summary.format(
        problem=problem.description,
        rounds=rounds_completed,
        outcome=consensus if consensus is not None else NO_CONSENSUS,
    )


def summary_round(
    number: int,
    responses: list[AgentResponse],
    consensus: str | None,
) -> tuple[Round, dict[str, str]]:
    """Wrap summary responses as the final ledger round.

    Returns:
        (round, agent_id -> summary text). Agents whose call failed are left
        out of the mapping but keep their failure marker in the round.
    """
    rnd = Round(
        number=number,
        responses=tuple(responses),
        consensus=consensus,
        is_summary=True,
    )
    variations = {r.agent_id: r.text for r in responses if not r.failed}
    if len(variations) < len(responses):
        logger.warning(
            "Summary pass: %d/%d agents failed to restate the outcome",
            len(responses) - len(variations),
            len(responses),
        )
    return rnd, variations
