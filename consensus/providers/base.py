"""Abstract base for all AI model providers."""

from abc import ABC, abstractmethod

from consensus.models import ModelResponse

# Every agent samples at the same fixed temperature; not configurable per call.
SAMPLING_TEMPERATURE = 0.7

# A chat turn: {"role": "system" | "user", "content": "..."}
Message = dict[str, str]


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


def split_system(messages: list[Message]) -> tuple[str, list[str]]:
    """Split a message list into (system text, user turn texts).

    Used by SDKs that take the system instruction as a separate parameter.
    """
    system_parts = [m["content"] for m in messages if m["role"] == "system"]
    user_turns = [m["content"] for m in messages if m["role"] != "system"]
    return "\n\n".join(system_parts), user_turns


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the model config key (e.g. 'kimi', 'claude_direct')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(self, messages: list[Message], round_number: int) -> ModelResponse:
        """Generate a completion for the given conversation.

        Args:
            messages: Ordered chat turns; a leading system turn carries the
                agent preamble.
            round_number: The discussion round number (1-indexed, 0 for pings).

        Returns:
            ModelResponse dataclass with content and metadata.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...
