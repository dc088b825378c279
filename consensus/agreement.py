"""Textual agreement check over one round of agent responses."""

import logging
from collections import Counter

from consensus.models import AgentResponse, AgreementResult

logger = logging.getLogger(__name__)


def _normalize(text: str) -> str:
    return text.strip().casefold()


def evaluate_agreement(responses: list[AgentResponse] | tuple[AgentResponse, ...], threshold: float) -> AgreementResult:
    """Decide whether a round reached consensus.

    Matching is literal after trimming and case-folding; paraphrases do not
    agree. Failure-marker responses are not eligible and do not count toward
    the denominator. Unanimity among eligible responses wins regardless of
    threshold; otherwise the most common text wins when its share is
    ``>= threshold``. Ties go to the text that appears first, and the
    returned consensus is the original text of its first occurrence.
    """
    eligible = [r for r in responses if not r.failed]
    if len(eligible) < 2:
        return AgreementResult(has_consensus=False)

    normalized = [_normalize(r.text) for r in eligible]

    if len(set(normalized)) == 1:
        return AgreementResult(has_consensus=True, consensus=eligible[0].text)

    counts = Counter(normalized)
    top_count = max(counts.values())
    ratio = top_count / len(eligible)
    logger.debug("Agreement ratio %.2f (%d/%d), threshold %.2f", ratio, top_count, len(eligible), threshold)

    if ratio >= threshold:
        winner = next(r for r, norm in zip(eligible, normalized) if counts[norm] == top_count)
        return AgreementResult(has_consensus=True, consensus=winner.text)

    return AgreementResult(has_consensus=False)
