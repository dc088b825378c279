"""Boundary payloads: run input parsing and RunResult serialisation.

Keys are camelCase to match the tool protocol the engine is exposed through.
"""

import json
from typing import Any

from config.config_loader import DefaultsConfig
from consensus.ledger import discussion_summary
from consensus.models import AgentResponse, InformationRequest, Problem, Round, RunResult, RunSettings, RunStatus
from consensus.orchestrator import ConsensusOrchestrator, ValidationError

NEXT_ACTION = "Please execute the requested tools and continue the consensus process"


def parse_run_input(raw: Any, defaults: DefaultsConfig) -> tuple[Problem, RunSettings]:
    """Turn a raw run-input mapping into a Problem and per-run settings.

    Raises:
        ValidationError: If a field is missing or has the wrong type.
    """
    if not isinstance(raw, dict):
        raise ValidationError("Invalid input: must be an object")

    problem = raw.get("problem")
    if not isinstance(problem, str) or not problem.strip():
        raise ValidationError("Invalid problem: must be a non-empty string")

    tools = raw.get("availableTools")
    if not isinstance(tools, list):
        raise ValidationError("Invalid availableTools: must be an array")
    if not all(isinstance(t, str) for t in tools):
        raise ValidationError("Invalid availableTools: every entry must be a string")

    context = raw.get("context")
    if context is not None and not isinstance(context, str):
        raise ValidationError("Invalid context: must be a string")

    max_rounds = raw.get("maxRounds", defaults.max_rounds)
    threshold = raw.get("consensusThreshold", defaults.consensus_threshold)

    return (
        Problem(description=problem, capabilities=tuple(tools), context=context),
        RunSettings(max_rounds=max_rounds, consensus_threshold=threshold),
    )


def request_to_dict(req: InformationRequest) -> dict[str, Any]:
    return {"tool": req.tool, "parameters": req.parameters, "reason": req.reason}


def _response_to_dict(resp: AgentResponse) -> dict[str, Any]:
    out: dict[str, Any] = {"advisorId": resp.agent_id, "response": resp.text}
    if resp.requests:
        out["toolRequests"] = [request_to_dict(r) for r in resp.requests]
    if resp.failed:
        out["failed"] = True
    return out


def round_to_dict(rnd: Round) -> dict[str, Any]:
    out: dict[str, Any] = {
        "round": rnd.number,
        "responses": [_response_to_dict(r) for r in rnd.responses],
    }
    if rnd.consensus is not None:
        out["consensus"] = rnd.consensus
    if rnd.is_summary:
        out["summary"] = True
    return out


def result_to_payload(result: RunResult) -> dict[str, Any]:
    """Serialise a RunResult into the shape for its status."""
    if result.status is RunStatus.FAILED:
        return {"status": result.status.value, "error": result.error}

    if result.status is RunStatus.AWAITING_INFORMATION:
        return {
            "status": result.status.value,
            "round": result.awaiting_round,
            "toolRequests": [request_to_dict(r) for r in result.tool_requests],
            "discussionSummary": discussion_summary(result.rounds),
            "nextAction": NEXT_ACTION,
        }

    return {
        "status": result.status.value,
        "finalConsensus": result.final_consensus,
        "totalRounds": result.total_rounds,
        "discussionHistory": [round_to_dict(r) for r in result.rounds],
        "finalSummaryVariations": dict(result.summary_variations),
    }


def dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


async def run_from_payload(
    orchestrator: ConsensusOrchestrator,
    raw: Any,
    defaults: DefaultsConfig,
) -> dict[str, Any]:
    """Validate a raw run input, run it, and return the output payload.

    Never raises for bad input: validation errors become a ``failed`` payload.
    """
    try:
        problem, settings = parse_run_input(raw, defaults)
    except ValidationError as exc:
        return result_to_payload(RunResult(status=RunStatus.FAILED, error=str(exc)))
    result = await orchestrator.run(problem, settings)
    return result_to_payload(result)
