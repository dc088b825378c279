"""Agent health checks — ping each panel member before starting a run."""

import asyncio
import logging

from consensus.invoker import invoke_agent
from consensus.models import Agent

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(agent: Agent) -> tuple[str, bool, str]:
    """Ping a single agent. Returns (agent_id, ok, error_message)."""
    try:
        await asyncio.wait_for(
            invoke_agent(agent, _PING_PROMPT, round_number=0),
            timeout=_TIMEOUT_SEC,
        )
        return agent.id, True, ""
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", agent.id, exc)
        return agent.id, False, str(exc) or type(exc).__name__


async def run_health_checks(agents: list[Agent]) -> dict[str, tuple[bool, str]]:
    """Ping all agents in parallel.

    Returns:
        Dict mapping agent id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(a) for a in agents))
    return {agent_id: (ok, err) for agent_id, ok, err in results}
