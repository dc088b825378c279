"""Append-only record of discussion rounds for a single run."""

from collections.abc import Iterator, Sequence
from typing import Any

from consensus.models import Round

# Prefix lengths keep follow-up prompts and summaries bounded.
CONTEXT_PREFIX_CHARS = 200
SUMMARY_PREFIX_CHARS = 150


def condensed_context(rounds: Sequence[Round], prefix_chars: int = CONTEXT_PREFIX_CHARS) -> str:
    """Render every round with each response cut to a bounded prefix."""
    lines = ["Previous Discussion Summary:", ""]
    for rnd in rounds:
        lines.append(f"Round {rnd.number}:")
        for resp in rnd.responses:
            lines.append(f"- Advisor {resp.agent_id}: {resp.text[:prefix_chars]}...")
        lines.append("")
    return "\n".join(lines)


def discussion_summary(rounds: Sequence[Round], prefix_chars: int = SUMMARY_PREFIX_CHARS) -> dict[str, Any]:
    """Compact summary handed back to callers that must run tool requests."""
    participants = [r.agent_id for r in rounds[0].responses] if rounds else []
    return {
        "totalRounds": len(rounds),
        "participants": participants,
        "keyPoints": [
            {"advisor": resp.agent_id, "point": resp.text[:prefix_chars]}
            for rnd in rounds
            for resp in rnd.responses
        ],
    }


class DiscussionLedger:
    """Ordered rounds of one run. Rounds can be appended, never replaced."""

    def __init__(self) -> None:
        self._rounds: list[Round] = []

    def append(self, rnd: Round) -> None:
        if self._rounds and rnd.number <= self._rounds[-1].number:
            raise ValueError(
                f"Round {rnd.number} appended after round {self._rounds[-1].number}"
            )
        self._rounds.append(rnd)

    @property
    def rounds(self) -> tuple[Round, ...]:
        return tuple(self._rounds)

    def __len__(self) -> int:
        return len(self._rounds)

    def __iter__(self) -> Iterator[Round]:
        return iter(self.rounds)

    def condensed_context(self, prefix_chars: int = CONTEXT_PREFIX_CHARS) -> str:
        return condensed_context(self._rounds, prefix_chars)

    def discussion_summary(self, prefix_chars: int = SUMMARY_PREFIX_CHARS) -> dict[str, Any]:
        return discussion_summary(self._rounds, prefix_chars)
