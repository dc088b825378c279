"""Pure dataclasses for the consensus engine. No logic, no deps."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from consensus.providers.base import AIProvider

NO_CONSENSUS = "No consensus reached within the maximum number of rounds"


class RunStatus(str, Enum):
    CONSENSUS_REACHED = "consensus_reached"
    MAX_ROUNDS_REACHED = "max_rounds_reached"
    AWAITING_INFORMATION = "awaiting_information"
    FAILED = "failed"


@dataclass(frozen=True)
class Problem:
    description: str
    capabilities: tuple[str, ...] = ()
    context: str | None = None  # results of externally executed tool requests


@dataclass(frozen=True)
class Agent:
    id: str
    name: str
    preamble: str
    provider: AIProvider


@dataclass
class ModelResponse:
    provider: str          # config key of the model, e.g. "openrouter_kimi"
    model: str             # actual model string used
    round_number: int
    content: str
    latency_sec: float
    token_count: int | None


@dataclass(frozen=True)
class InformationRequest:
    tool: str
    parameters: dict[str, Any]
    reason: str


@dataclass(frozen=True)
class AgentResponse:
    agent_id: str
    text: str
    requests: tuple[InformationRequest, ...] = ()
    failed: bool = False   # synthetic failure marker, never counts toward agreement


@dataclass(frozen=True)
class Round:
    number: int
    responses: tuple[AgentResponse, ...]
    consensus: str | None = None
    is_summary: bool = False


@dataclass(frozen=True)
class AgreementResult:
    has_consensus: bool
    consensus: str | None = None


@dataclass(frozen=True)
class RunSettings:
    max_rounds: int
    consensus_threshold: float


@dataclass
class RunResult:
    status: RunStatus
    final_consensus: str | None = None
    total_rounds: int = 0
    rounds: tuple[Round, ...] = ()
    summary_variations: dict[str, str] = field(default_factory=dict)
    tool_requests: tuple[InformationRequest, ...] = ()
    awaiting_round: int | None = None
    error: str | None = None
