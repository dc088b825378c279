"""Tests for config/config_loader.py."""

from pathlib import Path

import pytest
import yaml

from config.config_loader import AgentConfig, AppConfig, ConfigError, ModelConfig, PromptsConfig, load_config


def _settings() -> dict:
    return {
        "defaults": {
            "max_rounds": 5,
            "max_rounds_limit": 10,
            "consensus_threshold": 0.8,
            "agent_timeout_sec": 120,
            "output_dir": "./output",
        },
        "models": {
            "kimi": {
                "sdk": "openai",
                "model": "moonshotai/kimi-k2",
                "api_key_env": "TEST_OPENROUTER_KEY",
                "base_url": "https://openrouter.ai/api/v1",
                "timeout_sec": 150,
                "headers": {"X-Title": "Consensus Panel"},
            },
            "claude": {
                "sdk": "anthropic",
                "model": "claude-sonnet-4-20250514",
                "api_key_env": "TEST_CLAUDE_KEY",
                "timeout_sec": 90,
                "max_tokens": 4096,
            },
        },
        "agents": [
            {"id": "advisor_alpha", "name": "Advisor Alpha", "model": "kimi"},
            {"id": "advisor_beta", "name": "Advisor Beta", "model": "claude"},
        ],
        "prompts": {
            "preamble": "You are an advisor.",
            "initial": "Solve: {problem}\n{tools}\n{directive_example}",
            "followup": "{discussion}",
            "summary": "{problem} {rounds} {outcome}",
            "directive_example": "TOOL_REQUEST: {...}",
        },
    }


def _write(tmp_path: Path, settings: dict) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    return path


@pytest.fixture
def minimal_settings(tmp_path: Path, monkeypatch) -> Path:
    """Write a minimal valid settings.yaml to a temp path."""
    monkeypatch.delenv("DISABLE_CONSENSUS_LOGGING", raising=False)
    return _write(tmp_path, _settings())


def test_load_config_returns_app_config(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config, AppConfig)


def test_load_config_defaults(minimal_settings):
    config = load_config(minimal_settings)
    assert config.defaults.max_rounds == 5
    assert config.defaults.max_rounds_limit == 10
    assert config.defaults.consensus_threshold == 0.8
    assert config.defaults.agent_timeout_sec == 120.0
    assert config.defaults.summary_pass is True
    assert config.defaults.disable_logging is False
    assert isinstance(config.defaults.output_dir, Path)


def test_load_config_models(minimal_settings):
    config = load_config(minimal_settings)
    kimi = config.models["kimi"]
    assert isinstance(kimi, ModelConfig)
    assert kimi.base_url == "https://openrouter.ai/api/v1"
    assert kimi.max_tokens is None
    assert kimi.headers == {"X-Title": "Consensus Panel"}
    assert config.models["claude"].max_tokens == 4096
    assert config.models["claude"].base_url is None


def test_load_config_agents_in_order(minimal_settings):
    config = load_config(minimal_settings)
    assert config.agents == [
        AgentConfig(id="advisor_alpha", name="Advisor Alpha", model="kimi"),
        AgentConfig(id="advisor_beta", name="Advisor Beta", model="claude"),
    ]


def test_load_config_prompts(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.prompts, PromptsConfig)
    assert "{problem}" in config.prompts.initial
    assert config.prompts.directive_example.startswith("TOOL_REQUEST")


def test_available_models_with_key(minimal_settings, monkeypatch):
    monkeypatch.setenv("TEST_OPENROUTER_KEY", "sk-test-key")
    monkeypatch.delenv("TEST_CLAUDE_KEY", raising=False)
    config = load_config(minimal_settings)
    assert config.available_models == {"kimi"}


def test_disable_logging_env_override(minimal_settings, monkeypatch):
    monkeypatch.setenv("DISABLE_CONSENSUS_LOGGING", "TRUE")
    assert load_config(minimal_settings).defaults.disable_logging is True
    monkeypatch.setenv("DISABLE_CONSENSUS_LOGGING", "no")
    assert load_config(minimal_settings).defaults.disable_logging is False


def test_load_config_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config(Path("/nonexistent/settings.yaml"))


def test_unknown_agent_model_rejected(tmp_path: Path):
    settings = _settings()
    settings["agents"].append({"id": "advisor_gamma", "name": "Advisor Gamma", "model": "missing"})
    with pytest.raises(ConfigError, match="unknown model 'missing'"):
        load_config(_write(tmp_path, settings))


def test_missing_section_rejected(tmp_path: Path):
    settings = _settings()
    del settings["agents"]
    with pytest.raises(ConfigError, match="Malformed settings file"):
        load_config(_write(tmp_path, settings))


@pytest.mark.parametrize(
    "key, value, message",
    [
        ("max_rounds", 0, "max_rounds"),
        ("max_rounds", 11, "max_rounds"),
        ("consensus_threshold", 1.2, "consensus_threshold"),
        ("max_rounds_limit", 0, "max_rounds_limit must be at least 1"),
        ("max_rounds_limit", -3, "max_rounds_limit must be at least 1"),
    ],
)
def test_out_of_range_defaults_rejected(tmp_path: Path, key, value, message):
    settings = _settings()
    settings["defaults"][key] = value
    with pytest.raises(ConfigError, match=message):
        load_config(_write(tmp_path, settings))


def test_bundled_settings_load():
    config = load_config()
    assert len(config.agents) == 5
    assert all(a.model in config.models for a in config.agents)
    # Every template formats with the placeholders the engine supplies.
    config.prompts.initial.format(problem="p", tools="t", directive_example="d")
    config.prompts.followup.format(discussion="d")
    config.prompts.summary.format(problem="p", rounds=1, outcome="o")
