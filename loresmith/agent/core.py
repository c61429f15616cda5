"""
Agent Core
==========

The loop that lets the model research and author on its own.

Agent Loop:
    start(transcript)
         │
         ▼
    Build system prompt (mode template + live project state)
         │
         ▼
    Stream completion ──► interpreter ──► on_message (provisional)
         │
         ▼
    Interpret final reply, tag ids with the step
         │
    ┌─── Any commands? ───┐
    │                     │
    Yes                   No
    │                     │
    ▼                     ▼
    Execute in order     idle
    │
    ▼
    Append tool output to the working transcript
    │
    └──► observing ──► next step (at most max_steps)

Status flow: idle → thinking → executing → observing → (thinking | idle | error).

Cancellation:
    ``stop()`` fires the run's CancellationToken. The transport abandons its
    request, no further transcript messages are emitted and the run ends
    ``idle``. Starting a new run stops the previous one; a run that has been
    superseded this way emits nothing at all.
"""

from typing import Callable, Sequence

from loresmith.agent.context import PromptAssembler, ToolContext
from loresmith.agent.interpreter import ParsedResponse, ResponseInterpreter
from loresmith.agent.tools_executor import ToolExecutor
from loresmith.agent.types import AgentMessage, AgentStatus, Thought, ToolInvocation
from loresmith.llm.base import APISettings, CompletionTransport
from loresmith.llm.cancellation import GENERATION_ABORTED, CancellationToken
from loresmith.tools import ToolRegistry, create_default_registry
from loresmith.utils.config import get_config
from loresmith.utils.logger import Logger

logger = Logger("AgentLoop")

StatusCallback = Callable[[AgentStatus], None]
MessageCallback = Callable[[AgentMessage], None]
ContextProvider = Callable[[], ToolContext]

NO_CONTENT_ERROR = "No content received from API"


class AgentLoop:
    """
    Drives bounded think/act/observe iterations for one session.

    The loop never mutates the caller's transcript. Progress is reported
    through two callbacks: ``on_status`` for state changes and
    ``on_message`` with the assistant message of the run so far (reply
    text plus every thought and tool invocation, each time as fresh lists).

    Example:
        loop = AgentLoop(
            settings=config.llm.to_settings(),
            context=project.snapshot(settings),
            transport=CompletionClient(),
            on_status=lambda s: print("status:", s.value),
            on_message=render,
            context_provider=lambda: project.snapshot(settings),
        )

        final_status = await loop.start(transcript)
    """

    def __init__(
        self,
        settings: APISettings,
        context: ToolContext,
        transport: CompletionTransport,
        on_status: StatusCallback,
        on_message: MessageCallback,
        registry: ToolRegistry | None = None,
        max_steps: int | None = None,
        context_provider: ContextProvider | None = None,
    ):
        """
        Args:
            settings: Endpoint and preset used for every request
            context: Project snapshot handed to tools
            transport: Where completions come from
            on_status: Called on every status change
            on_message: Called with each provisional or final assistant message
            registry: Tools available to the model (built-ins by default)
            max_steps: Step ceiling per run (from config by default)
            context_provider: When given, called for a fresh context before
                every prompt build and every tool call
        """
        self.settings = settings
        self.context = context
        self.transport = transport
        self.on_status = on_status
        self.on_message = on_message
        self.context_provider = context_provider

        self.registry = registry or create_default_registry()
        self.max_steps = max(1, max_steps if max_steps is not None else get_config().agent.max_steps)
        self.assembler = PromptAssembler(self.registry)
        self.executor = ToolExecutor(self.registry)

        self.status = AgentStatus.IDLE
        self.last_error: str | None = None
        self._token: CancellationToken | None = None
        self._latest: CancellationToken | None = None

    # =========================================================================
    # Session controls
    # =========================================================================

    def update_context(self, context: ToolContext) -> None:
        """Replace the tool context; its settings, if any, become the request settings too."""
        self.context = context
        if context.settings is not None:
            self.settings = context.settings

    def update_settings(self, settings: APISettings) -> None:
        self.settings = settings

    def stop(self) -> None:
        """Cancel the running generation, if any. Already emitted messages stay."""
        if self._token is not None:
            logger.info("Stopping agent run")
            self._token.cancel()
            self._token = None

    @property
    def is_running(self) -> bool:
        return self._token is not None

    def _current_context(self) -> ToolContext:
        if self.context_provider is not None:
            return self.context_provider()
        return self.context

    # =========================================================================
    # Emission
    # =========================================================================

    def _is_current(self, token: CancellationToken) -> bool:
        return self._token is token

    def _set_status(self, token: CancellationToken, status: AgentStatus) -> None:
        if not self._is_current(token):
            return
        self.status = status
        self.on_status(status)

    def _emit(
        self,
        token: CancellationToken,
        text: str,
        thoughts: Sequence[Thought],
        invocations: Sequence[ToolInvocation],
    ) -> None:
        if token.cancelled or not self._is_current(token):
            return
        self.on_message(AgentMessage(
            role="assistant",
            content=text,
            thoughts=list(thoughts),
            tool_invocations=list(invocations),
        ))

    # =========================================================================
    # Run
    # =========================================================================

    async def start(self, messages: Sequence[AgentMessage]) -> AgentStatus:
        """
        Run the agent on *messages* until it answers, errors, is stopped or
        runs out of steps.

        Args:
            messages: Conversation so far, ending with the user's request

        Returns:
            The final status: IDLE, or ERROR with ``last_error`` set
        """
        self.stop()
        token = CancellationToken()
        self._token = token
        self._latest = token
        self.last_error = None

        final = await self._run(list(messages), token)

        if self._is_current(token):
            self._token = None
        if final is AgentStatus.IDLE and self._latest is token:
            self.status = AgentStatus.IDLE
            self.on_status(AgentStatus.IDLE)
        return final

    async def _run(self, messages: list[AgentMessage], token: CancellationToken) -> AgentStatus:
        interpreter = ResponseInterpreter()
        transcript = self.assembler.repair_transcript(messages)
        session_thoughts: list[Thought] = []
        session_invocations: list[ToolInvocation] = []

        for step in range(1, self.max_steps + 1):
            if token.cancelled:
                break
            self._set_status(token, AgentStatus.THINKING)

            context = self._current_context()
            system_prompt = self.assembler.build_system_prompt(context)
            plan_mode = context.agent_mode == "plan"
            logger.info(f"Step {step} started ({'plan' if plan_mode else 'build'} mode)")

            native_thought = ""

            def step_thoughts(parsed: ParsedResponse) -> list[Thought]:
                if native_thought:
                    return [Thought(text=native_thought)] + parsed.thoughts
                return list(parsed.thoughts)

            def step_invocations(parsed: ParsedResponse, executable_only: bool) -> list[ToolInvocation]:
                found = parsed.executable if executable_only else parsed.invocations
                return [
                    ToolInvocation(id=f"step_{step}_{inv.id}", name=inv.name, arguments=inv.arguments)
                    for inv in found
                ]

            def on_partial_text(partial: str) -> None:
                if token.cancelled:
                    return
                parsed = interpreter.parse(partial, streaming=True)
                self._emit(
                    token,
                    parsed.text,
                    session_thoughts + step_thoughts(parsed),
                    session_invocations + step_invocations(parsed, executable_only=False),
                )

            def on_partial_thought(thought: str) -> None:
                nonlocal native_thought
                if token.cancelled:
                    return
                native_thought = thought
                self._emit(token, "", session_thoughts + [Thought(text=thought)], session_invocations)

            try:
                result = await self.transport.generate(
                    self.settings,
                    transcript,
                    system_prompt,
                    on_partial_text=on_partial_text,
                    on_partial_thought=on_partial_thought,
                    cancel_token=token,
                )
            except Exception as e:
                if token.cancelled:
                    break
                logger.error("Completion request failed", e)
                return self._fail(token, str(e) or type(e).__name__)

            if token.cancelled:
                logger.info("Run stopped during generation")
                break

            if not result.text:
                if result.error == GENERATION_ABORTED:
                    logger.info("Generation aborted")
                    break
                logger.error(f"No content received: {result.error or 'empty response'}")
                return self._fail(token, result.error or NO_CONTENT_ERROR)
            if result.error:
                logger.warning(f"Transport reported an error with partial content: {result.error}")

            if result.thought and not native_thought:
                native_thought = result.thought

            parsed = interpreter.parse(result.text)
            if len(parsed.executable) < len(parsed.invocations):
                logger.warning("Ignoring unterminated command at the end of the reply")

            new_invocations = step_invocations(parsed, executable_only=True)
            session_thoughts = session_thoughts + step_thoughts(parsed)
            session_invocations = session_invocations + new_invocations
            self._emit(token, parsed.text, session_thoughts, session_invocations)

            if not new_invocations:
                logger.info(f"Step {step}: final answer")
                return AgentStatus.IDLE

            if plan_mode:
                logger.info(f"Step {step}: plan mode, {len(new_invocations)} command(s) not executed")
                return AgentStatus.IDLE

            self._set_status(token, AgentStatus.EXECUTING)
            logger.info(f"Step {step}: executing {len(new_invocations)} command(s)")

            for invocation in new_invocations:
                if token.cancelled:
                    break
                done = await self.executor.execute_one(invocation, self._current_context())
                session_invocations = [done if inv.id == done.id else inv for inv in session_invocations]
                self._emit(token, parsed.text, session_thoughts, session_invocations)
                transcript.extend(self.executor.feedback_messages(done))

            if token.cancelled:
                break
            self._set_status(token, AgentStatus.OBSERVING)
        else:
            logger.warning(f"Reached max steps ({self.max_steps})")

        return AgentStatus.IDLE

    def _fail(self, token: CancellationToken, error: str) -> AgentStatus:
        if self._is_current(token):
            self.last_error = error
        self._set_status(token, AgentStatus.ERROR)
        return AgentStatus.ERROR
