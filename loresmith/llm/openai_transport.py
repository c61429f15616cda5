"""
OpenAI-compatible transport.

Works with any server that speaks the chat completions API (OpenAI,
OpenRouter, vLLM, llama.cpp, text-generation-webui, ...). ``server_url`` is
the API base, e.g. ``http://localhost:5000/v1``.

Streaming is used whenever the caller passes a partial callback. Reasoning
deltas (``reasoning_content`` / ``reasoning``, as sent by DeepSeek-style
servers) are forwarded on the thought channel.
"""

from typing import Any, Sequence

import httpx
import openai
from openai import AsyncOpenAI

from loresmith.llm.base import (
    APISettings,
    CompletionResult,
    CompletionTransport,
    PartialCallback,
    TranscriptEntry,
)
from loresmith.llm.cancellation import (
    GENERATION_ABORTED,
    CancellationToken,
    GenerationAborted,
    run_cancellable,
)
from loresmith.utils.logger import Logger

logger = Logger("OpenAITransport")


def build_messages(transcript: Sequence[TranscriptEntry], system_prompt: str | None) -> list[dict]:
    """System prompt first, then the transcript as role/content pairs."""
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    for entry in transcript:
        messages.append({"role": entry.role, "content": entry.content})
    return messages


def _reasoning_of(obj: Any) -> str | None:
    return getattr(obj, "reasoning_content", None) or getattr(obj, "reasoning", None)


class OpenAITransport(CompletionTransport):
    """
    Chat completions through the official ``openai`` SDK.

    Example:
        transport = OpenAITransport()
        result = await transport.generate(settings, messages, "You are helpful.")
        print(result.text)
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        """
        Args:
            transport: Optional httpx transport for the SDK's HTTP client (used by tests)
        """
        self._transport = transport

    def _client(self, settings: APISettings) -> AsyncOpenAI:
        http_client = httpx.AsyncClient(transport=self._transport) if self._transport is not None else None
        return AsyncOpenAI(
            base_url=settings.server_url.rstrip("/"),
            api_key=settings.api_key or "EMPTY",
            http_client=http_client,
        )

    def _request_params(self, settings: APISettings, overrides: dict[str, Any] | None) -> dict:
        preset = settings.active_preset
        params: dict[str, Any] = {"model": settings.model}
        if preset:
            params.update(
                temperature=preset.temperature,
                top_p=preset.top_p,
                presence_penalty=preset.presence_penalty,
                frequency_penalty=preset.frequency_penalty,
                max_tokens=preset.max_tokens,
            )
        if overrides:
            params.update(overrides)
        return params

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
        messages = build_messages(transcript, system_prompt)
        params = self._request_params(settings, overrides)
        streaming = on_partial_text is not None or on_partial_thought is not None
        client = self._client(settings)

        logger.debug(f"Requesting completion ({len(messages)} messages, stream={streaming})")

        try:
            if streaming:
                return await run_cancellable(
                    self._stream(client, messages, params, on_partial_text, on_partial_thought, cancel_token),
                    cancel_token,
                )
            response = await run_cancellable(
                client.chat.completions.create(messages=messages, **params),
                cancel_token,
            )
            message = response.choices[0].message if response.choices else None
            if message is None:
                return CompletionResult(error="OpenAI API returned no choices")
            return CompletionResult(text=message.content or "", thought=_reasoning_of(message) or "")

        except GenerationAborted:
            logger.info("Completion aborted")
            return CompletionResult(error=GENERATION_ABORTED)
        except openai.APIStatusError as e:
            logger.error(f"OpenAI API error {e.status_code}", e)
            return CompletionResult(error=f"OpenAI API Error: {e.status_code} - {e.message}")
        except openai.APIError as e:
            logger.error("OpenAI API request failed", e)
            return CompletionResult(error=f"OpenAI API Error: {e}")
        finally:
            await client.close()

    async def _stream(
        self,
        client: AsyncOpenAI,
        messages: list[dict],
        params: dict,
        on_partial_text: PartialCallback | None,
        on_partial_thought: PartialCallback | None,
        cancel_token: CancellationToken | None,
    ) -> CompletionResult:
        text = ""
        thought = ""
        stream = await client.chat.completions.create(messages=messages, stream=True, **params)
        try:
            async for chunk in stream:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta

                reasoning = _reasoning_of(delta)
                if reasoning:
                    thought += reasoning
                    if on_partial_thought:
                        on_partial_thought(thought)

                if delta.content:
                    text += delta.content
                    if on_partial_text:
                        on_partial_text(text)
        finally:
            await stream.close()

        return CompletionResult(text=text, thought=thought)
