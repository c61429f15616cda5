"""Tests for the agent loop, driven by a scripted completion transport."""

import asyncio

import pytest

from loresmith.agent.context import ToolContext
from loresmith.agent.core import NO_CONTENT_ERROR, AgentLoop
from loresmith.agent.prompts import PLAN_MODE_TOOLS_TEXT
from loresmith.agent.types import AgentMessage, AgentStatus, ToolInvocation
from loresmith.llm.base import APISettings, CompletionResult
from loresmith.tools import ToolDefinition, ToolResult, create_default_registry

SEARCH_COMMAND = '<command name="list_files">{}</command>'


@pytest.fixture
def build_loop(settings, project, recorder):
    """Factory for loops wired to the shared project and recorder."""

    def _build(transport, mode: str = "build", registry=None, max_steps: int = 5) -> AgentLoop:
        return AgentLoop(
            settings=settings,
            context=project.snapshot(settings, agent_mode=mode),
            transport=transport,
            on_status=recorder.on_status,
            on_message=recorder.on_message,
            registry=registry,
            max_steps=max_steps,
            context_provider=lambda: project.snapshot(settings, agent_mode=mode, transport=transport),
        )

    return _build


def _user(text: str) -> list[AgentMessage]:
    return [AgentMessage(role="user", content=text)]


class TestRunLifecycle:
    """Step ceiling, final status and what is reported along the way."""

    @pytest.mark.asyncio
    async def test_answer_without_commands_ends_after_one_step(self, build_loop, make_transport, recorder) -> None:
        transport = make_transport(["Hello there, traveller."])
        loop = build_loop(transport)

        status = await loop.start(_user("hi"))

        assert status is AgentStatus.IDLE
        assert loop.status is AgentStatus.IDLE
        assert len(transport.calls) == 1
        assert recorder.statuses == [AgentStatus.THINKING, AgentStatus.IDLE]
        assert recorder.messages[-1].content == "Hello there, traveller."

    @pytest.mark.asyncio
    async def test_streaming_emits_provisional_messages(self, build_loop, make_transport, recorder) -> None:
        loop = build_loop(make_transport(["Hello there, traveller."], chunk_size=8))

        await loop.start(_user("hi"))

        contents = [m.content for m in recorder.messages]
        assert len(contents) > 1
        assert all("Hello there, traveller.".startswith(c) for c in contents)

    @pytest.mark.asyncio
    async def test_tool_output_is_fed_back(self, build_loop, make_transport, recorder) -> None:
        transport = make_transport([f"Checking.{SEARCH_COMMAND}", "Done."])
        loop = build_loop(transport)

        status = await loop.start(_user("what files do we have?"))

        assert status is AgentStatus.IDLE
        assert recorder.statuses == [
            AgentStatus.THINKING,
            AgentStatus.EXECUTING,
            AgentStatus.OBSERVING,
            AgentStatus.THINKING,
            AgentStatus.IDLE,
        ]

        second_request = transport.calls[1]["transcript"]
        assert second_request[-2].role == "assistant"
        assert second_request[-2].content == '<command name="list_files">...</command>'
        assert second_request[-1].role == "system"
        assert second_request[-1].content == "Tool Output (list_files):\nNo files found."

        final = recorder.messages[-1]
        assert final.content == "Done."
        assert [inv.id for inv in final.tool_invocations] == ["step_1_cmd_0"]
        assert final.tool_invocations[0].result == "No files found."

    @pytest.mark.asyncio
    async def test_stops_after_max_steps_without_error(self, build_loop, make_transport, recorder) -> None:
        transport = make_transport([SEARCH_COMMAND])
        loop = build_loop(transport, max_steps=5)

        status = await loop.start(_user("loop forever"))

        assert status is AgentStatus.IDLE
        assert len(transport.calls) == 5
        assert AgentStatus.ERROR not in recorder.statuses
        assert recorder.statuses[-1] is AgentStatus.IDLE
        assert [inv.id for inv in recorder.messages[-1].tool_invocations] == [
            f"step_{n}_cmd_0" for n in range(1, 6)
        ]

    @pytest.mark.asyncio
    async def test_non_positive_step_ceiling_still_runs_one_step(self, build_loop, make_transport, recorder) -> None:
        transport = make_transport(["Hello."])
        loop = build_loop(transport, max_steps=0)

        status = await loop.start(_user("hi"))

        assert loop.max_steps == 1
        assert status is AgentStatus.IDLE
        assert len(transport.calls) == 1
        assert recorder.messages[-1].content == "Hello."

    @pytest.mark.asyncio
    async def test_native_thoughts_come_first(self, build_loop, make_transport, recorder) -> None:
        loop = build_loop(make_transport(["<thought>plan</thought>Answer."], thought="native reasoning"))

        await loop.start(_user("hi"))

        final = recorder.messages[-1]
        assert [t.text for t in final.thoughts] == ["native reasoning", "plan"]
        assert final.content == "Answer."

    @pytest.mark.asyncio
    async def test_caller_transcript_is_not_modified(self, build_loop, make_transport) -> None:
        messages = _user("what files?")
        loop = build_loop(make_transport([SEARCH_COMMAND, "None."]))

        await loop.start(messages)

        assert len(messages) == 1


class TestFailures:
    """Empty replies and transport failures end the run in ERROR."""

    @pytest.mark.asyncio
    async def test_empty_response_is_an_error(self, build_loop, make_transport, recorder) -> None:
        transport = make_transport([""])
        loop = build_loop(transport)

        status = await loop.start(_user("hi"))

        assert status is AgentStatus.ERROR
        assert loop.last_error == NO_CONTENT_ERROR
        assert recorder.statuses == [AgentStatus.THINKING, AgentStatus.ERROR]
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_transport_error_is_reported(self, build_loop, make_transport) -> None:
        loop = build_loop(make_transport([CompletionResult(error="OpenAI API Error: 500 - boom")]))

        status = await loop.start(_user("hi"))

        assert status is AgentStatus.ERROR
        assert loop.last_error == "OpenAI API Error: 500 - boom"

    @pytest.mark.asyncio
    async def test_transport_exception_is_reported(self, build_loop, make_transport, recorder) -> None:
        loop = build_loop(make_transport([RuntimeError("connection reset")]))

        status = await loop.start(_user("hi"))

        assert status is AgentStatus.ERROR
        assert loop.last_error == "connection reset"
        assert AgentStatus.IDLE not in recorder.statuses

    @pytest.mark.asyncio
    async def test_malformed_command_reaches_tool_validation(self, build_loop, make_transport, project, recorder) -> None:
        loop = build_loop(make_transport(['<command name="add_lorebook_entry">not json</command>', "Sorry."]))

        status = await loop.start(_user("add lore"))

        assert status is AgentStatus.IDLE
        invocation = recorder.messages[-1].tool_invocations[0]
        assert invocation.arguments == {}
        assert "keys" in invocation.result and "content" in invocation.result
        assert project.lorebook.entries == ()


class TestCancellation:
    """stop() and superseding runs."""

    @pytest.mark.asyncio
    async def test_stop_mid_stream_ends_idle_without_more_messages(self, build_loop, make_transport, recorder) -> None:
        transport = make_transport(["A long answer that streams in many small chunks."], chunk_size=4)
        loop = build_loop(transport)
        transport.on_chunk = lambda index: loop.stop() if index == 1 else None

        status = await loop.start(_user("hi"))

        assert status is AgentStatus.IDLE
        assert recorder.statuses == [AgentStatus.THINKING, AgentStatus.IDLE]
        assert len(recorder.messages) == 2
        assert loop.last_error is None

    @pytest.mark.asyncio
    async def test_stop_prevents_tool_execution(self, build_loop, make_transport, project) -> None:
        transport = make_transport(['<command name="update_character">{"name": "Saber"}</command>'])
        loop = build_loop(transport)
        transport.on_chunk = lambda index: loop.stop()

        await loop.start(_user("rename"))

        assert project.character.name == ""
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_superseded_run_emits_nothing(self, build_loop, make_transport, recorder) -> None:
        transport = make_transport(["first answer", "second answer"])
        gate = asyncio.Event()
        transport.gate = gate
        loop = build_loop(transport)

        first = asyncio.create_task(loop.start(_user("one")))
        await asyncio.sleep(0)
        second_status = await loop.start(_user("two"))
        gate.set()
        first_status = await first

        assert first_status is AgentStatus.IDLE
        assert second_status is AgentStatus.IDLE
        assert recorder.statuses == [AgentStatus.THINKING, AgentStatus.THINKING, AgentStatus.IDLE]
        assert all("second answer".startswith(m.content) for m in recorder.messages)


class TestModesAndContext:
    """Plan mode, context refresh and transcript repair."""

    @pytest.mark.asyncio
    async def test_plan_mode_never_executes_tools(self, build_loop, make_transport, project, recorder) -> None:
        transport = make_transport(['I would rename her.<command name="update_character">{"name": "Saber"}</command>'])
        loop = build_loop(transport, mode="plan")

        status = await loop.start(_user("rename to Saber"))

        assert status is AgentStatus.IDLE
        assert project.character.name == ""
        assert len(transport.calls) == 1
        assert PLAN_MODE_TOOLS_TEXT in transport.calls[0]["system_prompt"]
        assert AgentStatus.EXECUTING not in recorder.statuses

        invocation = recorder.messages[-1].tool_invocations[0]
        assert invocation.name == "update_character"
        assert invocation.result is None

    @pytest.mark.asyncio
    async def test_later_tools_see_earlier_effects(self, build_loop, make_transport, recorder) -> None:
        async def read_name(args: dict, context: ToolContext) -> ToolResult:
            return ToolResult.ok(context.character.name or "(unnamed)")

        registry = create_default_registry()
        registry.register(ToolDefinition(
            name="read_name",
            description="Read the character name",
            parameters={"type": "object", "properties": {}},
            execute=read_name,
        ))
        reply = (
            '<command name="update_character">{"name": "Saber"}</command>'
            '<command name="read_name">{}</command>'
        )
        loop = build_loop(make_transport([reply, "Done."]), registry=registry)

        await loop.start(_user("rename"))

        results = [inv.result for inv in recorder.messages[-1].tool_invocations]
        assert results[1] == "Saber"

    @pytest.mark.asyncio
    async def test_next_step_prompt_reflects_tool_effects(self, build_loop, make_transport) -> None:
        transport = make_transport(['<command name="update_character">{"name": "Saber"}</command>', "Done."])
        loop = build_loop(transport)

        await loop.start(_user("rename"))

        assert '"name": "Saber"' not in transport.calls[0]["system_prompt"]
        assert '"name": "Saber"' in transport.calls[1]["system_prompt"]

    @pytest.mark.asyncio
    async def test_missing_tool_outputs_are_restored(self, build_loop, make_transport) -> None:
        transport = make_transport(["ok"])
        loop = build_loop(transport)
        history = [
            AgentMessage(role="user", content="what files?"),
            AgentMessage(
                role="assistant",
                content="",
                tool_invocations=[ToolInvocation(id="step_1_cmd_0", name="list_files", result="No files found.")],
            ),
            AgentMessage(role="user", content="continue"),
        ]

        await loop.start(history)

        sent = transport.calls[0]["transcript"]
        assert len(sent) == 4
        assert sent[2].role == "system"
        assert sent[2].content == "Tool Output (list_files):\nNo files found."

    def test_update_context_adopts_its_settings(self, build_loop, make_transport) -> None:
        loop = build_loop(make_transport(["ok"]))
        other = APISettings(server_url="http://other", api_key="", model="other-model")

        loop.update_context(ToolContext(settings=other, agent_mode="plan"))

        assert loop.settings is other
        assert loop.context.agent_mode == "plan"
