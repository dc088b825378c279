"""Single-agent invocation: build the conversation and call the agent's provider."""

import logging

from consensus.models import Agent, ModelResponse
from consensus.providers.base import Message

logger = logging.getLogger(__name__)


def build_messages(agent: Agent, prompt: str, context: str | None = None) -> list[Message]:
    """Preamble as the system turn, optional prior context, then the prompt."""
    messages: list[Message] = [{"role": "system", "content": agent.preamble}]
    if context:
        messages.append({"role": "user", "content": context})
    messages.append({"role": "user", "content": prompt})
    return messages


async def invoke_agent(
    agent: Agent,
    prompt: str,
    round_number: int,
    context: str | None = None,
) -> ModelResponse:
    """Send one prompt to one agent.

    Raises:
        ProviderError: On any transport or provider failure. Callers that
            need per-agent isolation must catch it.
    """
    logger.debug("Querying %s (%s) for round %d", agent.name, agent.provider.model_string(), round_number)
    return await agent.provider.generate(build_messages(agent, prompt, context), round_number)
