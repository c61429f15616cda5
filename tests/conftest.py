"""Shared fixtures: a scripted completion transport and a small project."""

import asyncio
from typing import Any, Callable, Sequence

import pytest

from loresmith.agent.types import AgentMessage, AgentStatus
from loresmith.llm.base import APISettings, CompletionResult, CompletionTransport, Preset
from loresmith.llm.cancellation import GENERATION_ABORTED, CancellationToken
from loresmith.project import ProjectState


class ScriptedTransport(CompletionTransport):
    """
    Replays canned replies, one per generate() call.

    A reply may be a string (streamed in ``chunk_size`` pieces when callbacks
    are given), a CompletionResult, or an exception to raise. The last reply
    is repeated once the script runs out.
    """

    def __init__(self, replies: Sequence[Any], chunk_size: int = 8, thought: str = ""):
        self.replies = list(replies)
        self.chunk_size = chunk_size
        self.thought = thought
        self.calls: list[dict] = []
        self.on_chunk: Callable[[int], None] | None = None
        self.gate: asyncio.Event | None = None

    def _next_reply(self) -> Any:
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        return self.replies[index]

    async def generate(
        self,
        settings: APISettings,
        transcript,
        system_prompt=None,
        on_partial_text=None,
        on_partial_thought=None,
        overrides=None,
        cancel_token: CancellationToken | None = None,
    ) -> CompletionResult:
        self.calls.append({
            "transcript": [AgentMessage(role=m.role, content=m.content) for m in transcript],
            "system_prompt": system_prompt,
        })
        reply = self._next_reply()

        if self.gate is not None:
            gate, self.gate = self.gate, None
            await gate.wait()
            if cancel_token is not None and cancel_token.cancelled:
                return CompletionResult(error=GENERATION_ABORTED)

        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, CompletionResult):
            return reply

        if self.thought and on_partial_thought:
            on_partial_thought(self.thought)

        if on_partial_text:
            for index, end in enumerate(range(self.chunk_size, len(reply) + self.chunk_size, self.chunk_size)):
                if cancel_token is not None and cancel_token.cancelled:
                    return CompletionResult(error=GENERATION_ABORTED)
                on_partial_text(reply[:end])
                if self.on_chunk:
                    self.on_chunk(index)
                await asyncio.sleep(0)

        if cancel_token is not None and cancel_token.cancelled:
            return CompletionResult(error=GENERATION_ABORTED)
        return CompletionResult(text=reply, thought=self.thought)


class Recorder:
    """Collects what an AgentLoop reports."""

    def __init__(self):
        self.statuses: list[AgentStatus] = []
        self.messages: list[AgentMessage] = []

    def on_status(self, status: AgentStatus) -> None:
        self.statuses.append(status)

    def on_message(self, message: AgentMessage) -> None:
        self.messages.append(message)


@pytest.fixture
def settings() -> APISettings:
    return APISettings(
        server_url="http://localhost:5000/v1",
        api_key="test-key",
        model="test-model",
        active_preset=Preset(),
    )


@pytest.fixture
def project() -> ProjectState:
    return ProjectState(research_source_url="https://typemoon.fandom.com")


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_transport() -> type[ScriptedTransport]:
    return ScriptedTransport
