"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_DISABLE_LOGGING_ENV = "DISABLE_CONSENSUS_LOGGING"


class ConfigError(Exception):
    """Raised when settings.yaml is structurally invalid."""


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int | None = None
    base_url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class AgentConfig:
    id: str
    name: str
    model: str             # key into AppConfig.models


@dataclass
class PromptsConfig:
    preamble: str
    initial: str
    followup: str
    summary: str
    directive_example: str = ""


@dataclass
class DefaultsConfig:
    max_rounds: int
    max_rounds_limit: int
    consensus_threshold: float
    agent_timeout_sec: float
    output_dir: Path
    summary_pass: bool = True
    disable_logging: bool = False


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    agents: list[AgentConfig]
    prompts: PromptsConfig
    available_models: set[str] = field(default_factory=set)


def _env_flag(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None:
        return None
    return raw.strip().lower() == "true"


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ConfigError if an
    agent references an unknown model or the defaults are out of range.
    Logs missing API keys but does not raise; callers check
    available_models.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    try:
        defaults_raw = raw["defaults"]
        defaults = DefaultsConfig(
            max_rounds=int(defaults_raw["max_rounds"]),
            max_rounds_limit=int(defaults_raw["max_rounds_limit"]),
            consensus_threshold=float(defaults_raw["consensus_threshold"]),
            agent_timeout_sec=float(defaults_raw["agent_timeout_sec"]),
            output_dir=Path(defaults_raw["output_dir"]),
            summary_pass=bool(defaults_raw.get("summary_pass", True)),
            disable_logging=bool(defaults_raw.get("disable_logging", False)),
        )

        prompts_raw = raw["prompts"]
        prompts = PromptsConfig(
            preamble=prompts_raw["preamble"],
            initial=prompts_raw["initial"],
            followup=prompts_raw["followup"],
            summary=prompts_raw["summary"],
            directive_example=prompts_raw.get("directive_example", ""),
        )

        models: dict[str, ModelConfig] = {}
        available_models: set[str] = set()

        for model_name, model_raw in raw["models"].items():
            max_tokens = model_raw.get("max_tokens")
            model_cfg = ModelConfig(
                name=model_name,
                sdk=model_raw["sdk"],
                model=model_raw["model"],
                api_key_env=model_raw["api_key_env"],
                timeout_sec=int(model_raw["timeout_sec"]),
                max_tokens=int(max_tokens) if max_tokens is not None else None,
                base_url=model_raw.get("base_url"),
                headers={str(k): str(v) for k, v in (model_raw.get("headers") or {}).items()},
            )
            models[model_name] = model_cfg

            api_key = os.environ.get(model_raw["api_key_env"], "").strip()
            if api_key:
                available_models.add(model_name)
                logger.info("Model available: %s", model_name)
            else:
                logger.info(
                    "Model skipped (no API key): %s — set %s in .env",
                    model_name,
                    model_raw["api_key_env"],
                )

        agents = [
            AgentConfig(id=str(a["id"]), name=str(a["name"]), model=str(a["model"]))
            for a in raw["agents"]
        ]
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"Malformed settings file {settings_path}: {exc}") from exc

    for agent in agents:
        if agent.model not in models:
            raise ConfigError(f"Agent '{agent.id}' references unknown model '{agent.model}'")

    if defaults.max_rounds_limit < 1:
        raise ConfigError(f"defaults.max_rounds_limit must be at least 1, got {defaults.max_rounds_limit}")
    if not 1 <= defaults.max_rounds <= defaults.max_rounds_limit:
        raise ConfigError(
            f"defaults.max_rounds must be between 1 and {defaults.max_rounds_limit}, "
            f"got {defaults.max_rounds}"
        )
    if not 0.0 <= defaults.consensus_threshold <= 1.0:
        raise ConfigError(
            f"defaults.consensus_threshold must be between 0 and 1, got {defaults.consensus_threshold}"
        )

    env_disable = _env_flag(_DISABLE_LOGGING_ENV)
    if env_disable is not None:
        defaults.disable_logging = env_disable

    return AppConfig(
        defaults=defaults,
        models=models,
        agents=agents,
        prompts=prompts,
        available_models=available_models,
    )
