"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AgentConfig, AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from consensus.models import Agent, AgentResponse, ModelResponse, Problem, Round, RunSettings
from consensus.orchestrator import ConsensusOrchestrator
from consensus.providers.base import AIProvider, Message


def make_response(content: str, provider: str = "mock", round_number: int = 1) -> ModelResponse:
    return ModelResponse(
        provider=provider,
        model="mock-model",
        round_number=round_number,
        content=content,
        latency_sec=0.1,
        token_count=10,
    )


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=make_response(response_content, provider_name)
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, messages: list[Message], round_number: int) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return make_response(self._response_content, self._name, round_number)


def make_agent(agent_id: str, content: str = "Mock response") -> Agent:
    return Agent(
        id=agent_id,
        name=agent_id.replace("_", " ").title(),
        preamble=f"You are {agent_id}.",
        provider=MockProvider(agent_id, content),
    )


def make_panel(*contents: str) -> list[Agent]:
    """One agent per content string, ids agent_1..agent_n."""
    return [make_agent(f"agent_{i}", c) for i, c in enumerate(contents, start=1)]


def script_agent(agent: Agent, *contents: str) -> None:
    """Make an agent answer round by round with the given texts."""
    agent.provider.generate = AsyncMock(
        side_effect=[make_response(c, agent.id, i) for i, c in enumerate(contents, start=1)]
    )


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        preamble="You are an advisor.",
        initial="Solve: {problem}\nTools: {tools}\nFormat: {directive_example}",
        followup="Context:\n{discussion}\nReconsider.",
        summary="Problem: {problem}\nAfter {rounds} round(s): {outcome}\nRestate.",
        directive_example='TOOL_REQUEST: {"tool": "web_search", "parameters": {"query": "q"}, "reason": "r"}',
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        max_rounds=5,
        max_rounds_limit=10,
        consensus_threshold=0.8,
        agent_timeout_sec=5.0,
        output_dir=tmp_path / "output",
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
    sample_model_config: ModelConfig,
) -> AppConfig:
    return AppConfig(
        defaults=sample_defaults_config,
        models={"test_model": sample_model_config},
        agents=[
            AgentConfig(id="advisor_alpha", name="Advisor Alpha", model="test_model"),
            AgentConfig(id="advisor_beta", name="Advisor Beta", model="test_model"),
        ],
        prompts=sample_prompts_config,
        available_models={"test_model"},
    )


@pytest.fixture
def sample_problem() -> Problem:
    return Problem(description="Should we adopt policy X?", capabilities=("web_search",))


@pytest.fixture
def sample_settings() -> RunSettings:
    return RunSettings(max_rounds=3, consensus_threshold=0.8)


@pytest.fixture
def sample_round() -> Round:
    return Round(
        number=1,
        responses=(
            AgentResponse(agent_id="advisor_alpha", text="Adopt policy X."),
            AgentResponse(agent_id="advisor_beta", text="Reject policy X."),
        ),
    )


@pytest.fixture
def make_orchestrator(sample_prompts_config):
    def _make(agents, **kwargs) -> ConsensusOrchestrator:
        kwargs.setdefault("agent_timeout_sec", 5.0)
        return ConsensusOrchestrator(agents, sample_prompts_config, **kwargs)
    return _make
