"""
Gemini transport.

Talks to the Generative Language REST API (or a compatible proxy) with
httpx. ``server_url`` may be a bare host, a ``/v1beta`` base, a ``/models``
base or the full ``:generateContent`` endpoint.

Native thinking is enabled through the preset's ``thinking_mode``; parts
flagged as thoughts are delivered on the thought channel.
"""

import json
from typing import Any, Sequence

import httpx

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

logger = Logger("GeminiTransport")

REQUEST_TIMEOUT = httpx.Timeout(120.0, connect=15.0)


def resolve_endpoint(server_url: str, model: str, api_key: str, streaming: bool = False) -> str:
    """
    Build the request URL for *model* from whatever base the user configured.

    Example:
        resolve_endpoint("https://generativelanguage.googleapis.com", "gemini-2.0-flash", "k")
        # https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent?key=k
    """
    base = server_url.rstrip("/")

    if base.endswith(f"/{model}:generateContent"):
        url = base
    elif base.endswith("/models") or "/v1beta/models" in base:
        url = f"{base}/{model}:generateContent"
    elif "/v1beta" in base:
        url = f"{base}/models/{model}:generateContent"
    else:
        url = f"{base}/v1beta/models/{model}:generateContent"

    if streaming:
        url = url.replace(":generateContent", ":streamGenerateContent")
        url = f"{url}{'&' if '?' in url else '?'}alt=sse"

    if "key=" not in url:
        url = f"{url}{'&' if '?' in url else '?'}key={api_key}"
    return url


def build_request_body(
    settings: APISettings,
    transcript: Sequence[TranscriptEntry],
    system_prompt: str | None,
    overrides: dict[str, Any] | None = None,
) -> dict:
    """Translate a transcript and preset into a generateContent request body."""
    preset = settings.active_preset
    contents = [
        {
            "role": "model" if entry.role == "assistant" else "user",
            "parts": [{"text": entry.content}],
        }
        for entry in transcript
    ]

    generation_config: dict[str, Any] = {}
    if preset:
        generation_config = {
            "temperature": preset.temperature,
            "topP": preset.top_p,
            "maxOutputTokens": preset.max_tokens,
            "presencePenalty": preset.presence_penalty,
            "frequencyPenalty": preset.frequency_penalty,
        }
        if preset.thinking_mode in ("auto", "max"):
            thinking_config: dict[str, Any] = {"includeThoughts": True}
            if preset.thinking_mode == "max":
                thinking_config["thinkingBudget"] = preset.thinking_budget or preset.max_tokens
            generation_config["thinkingConfig"] = thinking_config

    if overrides:
        generation_config.update(overrides)

    body: dict[str, Any] = {"contents": contents, "generationConfig": generation_config}
    if system_prompt:
        body["system_instruction"] = {"parts": [{"text": system_prompt}]}
    return body


def _split_parts(payload: dict) -> tuple[list[str], list[str]]:
    """Return (answer texts, thought texts) of the first candidate."""
    candidates = payload.get("candidates") or []
    if not candidates:
        return [], []
    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts, thoughts = [], []
    for part in parts:
        text = part.get("text")
        if not text:
            continue
        (thoughts if part.get("thought") else texts).append(text)
    return texts, thoughts


class GeminiTransport(CompletionTransport):
    """generateContent / streamGenerateContent over httpx."""

    def __init__(
        self,
        timeout: httpx.Timeout | float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self._transport = transport

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
        streaming = on_partial_text is not None or on_partial_thought is not None
        url = resolve_endpoint(settings.server_url, settings.model, settings.api_key, streaming)
        body = build_request_body(settings, transcript, system_prompt, overrides)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                if streaming:
                    return await run_cancellable(
                        self._stream(client, url, body, on_partial_text, on_partial_thought, cancel_token),
                        cancel_token,
                    )
                response = await run_cancellable(client.post(url, json=body), cancel_token)
                if response.status_code >= 400:
                    return self._http_error(response.status_code, response.text)
                texts, thoughts = _split_parts(response.json())
                return CompletionResult(text="\n\n".join(texts), thought="\n\n".join(thoughts))

        except GenerationAborted:
            logger.info("Completion aborted")
            return CompletionResult(error=GENERATION_ABORTED)
        except httpx.HTTPError as e:
            logger.error("Gemini request failed", e)
            return CompletionResult(error=f"Gemini API Error: {e}")

    def _http_error(self, status: int, detail: str) -> CompletionResult:
        logger.error(f"Gemini API error {status}: {detail[:200]}")
        return CompletionResult(error=f"Gemini API Error: {status} - {detail}")

    async def _stream(
        self,
        client: httpx.AsyncClient,
        url: str,
        body: dict,
        on_partial_text: PartialCallback | None,
        on_partial_thought: PartialCallback | None,
        cancel_token: CancellationToken | None,
    ) -> CompletionResult:
        text = ""
        thought = ""
        async with client.stream("POST", url, json=body) as response:
            if response.status_code >= 400:
                detail = (await response.aread()).decode("utf-8", errors="replace")
                return self._http_error(response.status_code, detail)

            async for line in response.aiter_lines():
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if not data:
                    continue
                try:
                    payload = json.loads(data)
                except json.JSONDecodeError:
                    logger.warning(f"Skipping malformed stream event: {data[:80]}")
                    continue

                texts, thoughts = _split_parts(payload)
                if thoughts:
                    thought += "".join(thoughts)
                    if on_partial_thought:
                        on_partial_thought(thought)
                if texts:
                    text += "".join(texts)
                    if on_partial_text:
                        on_partial_text(text)

        return CompletionResult(text=text, thought=thought)
