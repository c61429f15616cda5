"""
Completion Transport Contract
=============================

The agent talks to language models only through ``CompletionTransport``:

    result = await transport.generate(
        settings,             # endpoint, model, sampling preset
        transcript,           # messages with .role / .content
        system_prompt,
        on_partial_text,      # called with the accumulated answer text
        on_partial_thought,   # called with accumulated native reasoning, if any
        overrides,            # per-call request options (e.g. {"max_tokens": 512})
        cancel_token,
    )
    result.text, result.error

Transports report provider failures and aborts in ``CompletionResult.error``
instead of raising, so a failed request is data the caller can inspect.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Protocol, Sequence

if TYPE_CHECKING:
    from loresmith.llm.cancellation import CancellationToken

PartialCallback = Callable[[str], None]


class TranscriptEntry(Protocol):
    role: str
    content: str


@dataclass(frozen=True)
class PresetPrompt:
    """A user-authored instruction block injected into the system prompt."""
    content: str
    name: str = ""
    enabled: bool = True


@dataclass(frozen=True)
class Preset:
    """Sampling parameters and injected instructions."""
    temperature: float = 0.7
    top_p: float = 0.9
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    max_tokens: int = 2048
    thinking_mode: str = "off"          # off | auto | max (Gemini)
    thinking_budget: int | None = None
    prompts: tuple[PresetPrompt, ...] = ()

    def enabled_prompt_text(self) -> str:
        """Enabled preset prompts joined by blank lines."""
        return "\n\n".join(p.content for p in self.prompts if p.enabled)


@dataclass(frozen=True)
class APISettings:
    """Everything needed to reach one completion endpoint."""
    server_url: str
    api_key: str
    model: str
    provider: str = "openai"            # openai | gemini
    active_preset: Preset | None = None


@dataclass
class CompletionResult:
    """Outcome of a completion request; ``error`` is set on failure or abort."""
    text: str = ""
    error: str | None = None
    thought: str = ""


class CompletionTransport(ABC):
    """Sends a transcript to a model and returns its reply."""

    @abstractmethod
    async def generate(
        self,
        settings: APISettings,
        transcript: Sequence[TranscriptEntry],
        system_prompt: str | None = None,
        on_partial_text: PartialCallback | None = None,
        on_partial_thought: PartialCallback | None = None,
        overrides: dict[str, Any] | None = None,
        cancel_token: "CancellationToken | None" = None,
    ) -> CompletionResult:
        """Request a completion; see the module docstring for the contract."""
