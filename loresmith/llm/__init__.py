"""
LLM Transports
==============

Everything that talks to a completion provider lives here:

- base: the CompletionTransport contract and settings types
- cancellation: CancellationToken used to stop in-flight requests
- OpenAITransport: any OpenAI-compatible chat completions server
- GeminiTransport: Google's Generative Language API
- CompletionClient: picks the transport from ``settings.provider``
"""

from typing import Any, Sequence

from loresmith.llm.base import (
    APISettings,
    CompletionResult,
    CompletionTransport,
    PartialCallback,
    Preset,
    PresetPrompt,
    TranscriptEntry,
)
from loresmith.llm.cancellation import (
    GENERATION_ABORTED,
    CancellationToken,
    GenerationAborted,
    run_cancellable,
)
from loresmith.llm.gemini_transport import GeminiTransport
from loresmith.llm.openai_transport import OpenAITransport
from loresmith.utils.logger import Logger

logger = Logger("CompletionClient")


class CompletionClient(CompletionTransport):
    """
    Routes each request to the transport for ``settings.provider``.

    Example:
        client = CompletionClient()
        result = await client.generate(settings, transcript, system_prompt)
    """

    def __init__(self, transports: dict[str, CompletionTransport] | None = None):
        self.transports: dict[str, CompletionTransport] = transports if transports is not None else {
            "openai": OpenAITransport(),
            "gemini": GeminiTransport(),
        }

    async def generate(
        self,
        settings: APISettings,
        transcript: Sequence[TranscriptEntry],
        system_prompt: str | None = None,
        on_partial_text: PartialCallback | None = None,
        on_partial_thought: PartialCallback | None = None,
        overrides: dict[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> CompletionResult:
        if settings.active_preset is None:
            return CompletionResult(error="No active preset found")

        transport = self.transports.get(settings.provider)
        if transport is None:
            logger.error(f"Unknown provider: {settings.provider}")
            return CompletionResult(error=f"Unknown provider '{settings.provider}'")

        return await transport.generate(
            settings,
            transcript,
            system_prompt,
            on_partial_text,
            on_partial_thought,
            overrides,
            cancel_token,
        )


__all__ = [
    "APISettings",
    "CancellationToken",
    "CompletionClient",
    "CompletionResult",
    "CompletionTransport",
    "GENERATION_ABORTED",
    "GeminiTransport",
    "GenerationAborted",
    "OpenAITransport",
    "Preset",
    "PresetPrompt",
    "run_cancellable",
]
