"""
Loresmith - Main Entry Point
============================

An interactive terminal session with the character-authoring agent. It:
1. Loads configuration
2. Creates the project, the completion client and the wiki client
3. Creates the agent loop
4. Reads user lines and starts a run for each request

Run with:
    python -m loresmith.main

Or after installing:
    loresmith --wiki-url typemoon.fandom.com

Session commands:
    /mode plan|build    Switch between consulting and acting
    /wiki <url>         Set the research wiki
    /character          Show the character card
    /lore               Show the lorebook entries
    /files              Show the Knowledge Base
    /stop               Stop the running agent (Ctrl+C does the same)
    /exit               Quit
"""

import argparse
import asyncio
import json
import signal

from loresmith.agent import AgentLoop, AgentMessage, AgentStatus
from loresmith.llm import CompletionClient
from loresmith.project import ProjectState
from loresmith.utils.config import get_config
from loresmith.utils.logger import Colors, Logger, configure_logging
from loresmith.wiki import WikiClient, normalize_wiki_url

main_logger = Logger("Main")

RESULT_PREVIEW_CHARS = 300


class TerminalSession:
    """
    One interactive session: the transcript, the project and the agent.

    Runs execute in the background so ``/stop`` and Ctrl+C can reach them
    while the prompt keeps reading input.
    """

    def __init__(self, mode: str, wiki_url: str, max_steps: int | None = None):
        config = get_config()

        self.mode = mode
        self.settings = config.llm.to_settings()
        self.project = ProjectState(research_source_url=wiki_url)
        self.client = CompletionClient()
        self.wiki = WikiClient(timeout=config.wiki.timeout)
        self.transcript: list[AgentMessage] = []

        self._latest: AgentMessage | None = None
        self._shown_results: set[str] = set()
        self._run_task: asyncio.Task | None = None

        self.agent = AgentLoop(
            settings=self.settings,
            context=self.snapshot(),
            transport=self.client,
            on_status=self._on_status,
            on_message=self._on_message,
            max_steps=max_steps,
            context_provider=self.snapshot,
        )

    def snapshot(self):
        return self.project.snapshot(
            self.settings,
            agent_mode=self.mode,
            transport=self.client,
            wiki=self.wiki,
        )

    @property
    def running(self) -> bool:
        return self._run_task is not None and not self._run_task.done()

    # =========================================================================
    # Agent callbacks
    # =========================================================================

    def _on_status(self, status: AgentStatus) -> None:
        main_logger.debug(f"Agent status: {status.value}")
        if status is AgentStatus.EXECUTING:
            print(f"{Colors.DIM}... working{Colors.RESET}")

    def _on_message(self, message: AgentMessage) -> None:
        self._latest = message
        for invocation in message.tool_invocations:
            if invocation.result is None or invocation.id in self._shown_results:
                continue
            self._shown_results.add(invocation.id)
            preview = invocation.result[:RESULT_PREVIEW_CHARS]
            print(f"{Colors.MAGENTA}[{invocation.name}]{Colors.RESET} {Colors.DIM}{preview}{Colors.RESET}")

    # =========================================================================
    # Runs
    # =========================================================================

    async def _run(self) -> None:
        self._latest = None
        self._shown_results.clear()

        status = await self.agent.start(self.transcript)

        reply = self._latest
        if reply is not None:
            self.transcript.append(reply)
            for thought in reply.thoughts:
                print(f"{Colors.DIM}(thought) {thought.text}{Colors.RESET}")
            if reply.content:
                print(f"{Colors.BOLD}{Colors.BLUE}agent>{Colors.RESET} {reply.content}")
        if status is AgentStatus.ERROR:
            main_logger.error(f"Agent failed: {self.agent.last_error}")

    def submit(self, text: str) -> None:
        self.transcript.append(AgentMessage(role="user", content=text))
        self._run_task = asyncio.create_task(self._run())

    def stop(self) -> None:
        if self.running:
            self.agent.stop()
            print(f"{Colors.DIM}(stopped){Colors.RESET}")

    # =========================================================================
    # Session commands
    # =========================================================================

    def handle_command(self, line: str) -> bool:
        """Run a ``/command``. Returns False when the session should end."""
        command, _, arg = line.partition(" ")
        arg = arg.strip()

        if command == "/exit":
            return False
        if command == "/stop":
            self.stop()
        elif command == "/mode":
            if arg not in ("plan", "build"):
                print("Usage: /mode plan|build")
            else:
                self.mode = arg
                print(f"Mode: {self.mode}")
        elif command == "/wiki":
            self.project.research_source_url = normalize_wiki_url(arg)
            print(f"Wiki: {self.project.research_source_url or '(none)'}")
        elif command == "/character":
            print(json.dumps(self.project.character.to_dict(), indent=2, ensure_ascii=False))
        elif command == "/lore":
            entries = [e.to_dict() for e in self.project.lorebook.entries]
            print(json.dumps(entries, indent=2, ensure_ascii=False) if entries else "No lorebook entries.")
        elif command == "/files":
            if not self.project.documents:
                print("No files found.")
            for doc in self.project.documents:
                print(f'- {doc.name} ({doc.tokens} tokens{", cleaned: " + doc.clean_mode if doc.clean_mode else ""})')
        else:
            print(f"Unknown command: {command}")
        return True

    async def repl(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self.stop)
        except NotImplementedError:
            main_logger.debug("Signal handlers not supported; use /stop")

        print(f"Loresmith ({self.mode} mode). Type /exit to quit.")
        while True:
            try:
                line = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break

            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                if not self.handle_command(line):
                    break
                continue
            if self.running:
                print("The agent is still working. Use /stop first.")
                continue
            self.submit(line)

        self.stop()
        if self._run_task is not None:
            await self._run_task


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="loresmith", description="Character-authoring agent")
    parser.add_argument("--mode", choices=("build", "plan"), help="Agent mode (default from config)")
    parser.add_argument("--wiki-url", help="Research wiki, e.g. typemoon.fandom.com")
    parser.add_argument("--max-steps", type=_positive_int, help="Step ceiling per run")
    parser.add_argument("--log-level", help="debug, info, warning or error")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    """Main async entry point."""
    args = _parse_args(argv)
    config = get_config()
    configure_logging(args.log_level or config.log_level)

    main_logger.info(f"Using {config.llm.provider} model {config.llm.model}")
    session = TerminalSession(
        mode=args.mode or config.agent.mode,
        wiki_url=normalize_wiki_url(args.wiki_url or config.wiki.default_url),
        max_steps=args.max_steps,
    )
    await session.repl()
    main_logger.info("Session closed")


def run():
    """
    Synchronous entry point.

    This is called when running with the `loresmith` command.
    """
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
