"""
Response Interpreter
====================

Splits raw model output into thoughts, tool invocations and plain reply
text, using the tag grammar the system prompt teaches the model:

    <thought> free text </thought>
    <command name="tool_name"> {"json": "arguments"} </command>

The interpreter runs on every streamed chunk, not only on the final text,
so it distinguishes closed tags from tags that are still being written:

    "I'll check.<thought>need da"
        -> text "I'll check.", provisional thought "need da"

    "<command name=\"wiki_search\">{\"query\": \"Sab"
        -> pending invocation wiki_search {"_raw": "{\"query\": \"Sab", "_status": "pending"}

Pending invocations are shown to the user but never executed.
"""

import itertools
import re
from dataclasses import dataclass, field

from loresmith.agent.types import PENDING_STATUS, Thought, ToolInvocation
from loresmith.utils.json_cleaner import recover_arguments
from loresmith.utils.logger import Logger

logger = Logger("Interpreter")

THOUGHT_OPEN = "<thought>"
THOUGHT_CLOSE = "</thought>"
COMMAND_OPEN = "<command"
COMMAND_CLOSE = "</command>"

_DIRECTIVE_BLOCK = re.compile(
    r"<thought>(?P<thought>[\s\S]*?)</thought>"
    r"|<command\s+name=[\"']?(?P<command>[^\"'>]+)[\"']?\s*>(?P<body>[\s\S]*?)</command>"
)
_PENDING_THOUGHT = re.compile(r"<thought>([\s\S]*)$")
_PENDING_COMMAND = re.compile(r"<command\s+name=[\"']?([^\"'>]+)[\"']?\s*>([\s\S]*)$")


@dataclass
class ParsedResponse:
    """Result of interpreting one (partial or complete) model response."""
    thoughts: list[Thought] = field(default_factory=list)
    invocations: list[ToolInvocation] = field(default_factory=list)
    text: str = ""

    @property
    def executable(self) -> list[ToolInvocation]:
        """Invocations whose command tag was closed."""
        return [inv for inv in self.invocations if not inv.is_pending]


def _drop_partial_tag(body: str, tag: str) -> str:
    """Remove a trailing fragment of *tag* (e.g. "</thou") from *body*."""
    idx = body.rfind("<")
    if idx >= 0 and tag.startswith(body[idx:]):
        return body[:idx]
    return body


def _hold_back_partial_opener(text: str) -> str:
    """Remove a directive opener that is still being streamed at the end of *text*."""
    idx = text.rfind("<")
    if idx < 0:
        return text
    tail = text[idx:]
    if THOUGHT_OPEN.startswith(tail) or COMMAND_OPEN.startswith(tail):
        return text[:idx]
    if tail.startswith(COMMAND_OPEN) and ">" not in tail:
        return text[:idx]
    return text


class ResponseInterpreter:
    """
    Stateful wrapper around the parsing rules.

    The only state is a counter for pending invocation ids, so ids stay
    unique however quickly chunks arrive. Create one interpreter per run.

    Example:
        interpreter = ResponseInterpreter()
        parsed = interpreter.parse('Hi<command name="list_files">{}</command>')
        parsed.text                   # "Hi"
        parsed.invocations[0].name    # "list_files"
    """

    def __init__(self):
        self._pending_ids = itertools.count(1)

    def parse(self, content: str, streaming: bool = False) -> ParsedResponse:
        """
        Interpret *content*.

        Tags are consumed left to right, so a command written inside a
        closed thought stays part of that thought, and a thought tag quoted
        inside a command body stays part of the command arguments.

        Args:
            content: Raw model output so far
            streaming: True for intermediate chunks; a half-written tag
                opener at the very end is then hidden from the reply text

        Returns:
            ParsedResponse with thoughts, invocations and residual text
        """
        thoughts: list[Thought] = []
        invocations: list[ToolInvocation] = []
        residual: list[str] = []
        ordinal = 0
        pos = 0

        while pos < len(content):
            block = _DIRECTIVE_BLOCK.search(content, pos)
            opener = self._first_unclosed(content, pos, block)

            if opener is not None:
                residual.append(content[pos:opener.start()])
                self._append_pending(opener, thoughts, invocations)
                break

            if block is None:
                residual.append(content[pos:])
                break

            residual.append(content[pos:block.start()])
            if block.group("command") is None:
                thoughts.append(Thought(text=block.group("thought").strip()))
            else:
                invocations.append(self._closed_command(block, ordinal))
                ordinal += 1
            pos = block.end()

        text = "".join(residual)
        if streaming:
            text = _hold_back_partial_opener(text)

        return ParsedResponse(thoughts=thoughts, invocations=invocations, text=text.strip())

    @staticmethod
    def _first_unclosed(content: str, pos: int, block: re.Match | None) -> re.Match | None:
        """Return an opener before *block* that is never closed, if any."""
        limit = block.start() if block is not None else len(content)
        candidates = [
            match
            for match in (_PENDING_THOUGHT.search(content, pos), _PENDING_COMMAND.search(content, pos))
            if match is not None and match.start() < limit
        ]
        return min(candidates, key=lambda m: m.start()) if candidates else None

    @staticmethod
    def _closed_command(block: re.Match, ordinal: int) -> ToolInvocation:
        name = block.group("command").strip()
        body = block.group("body").strip()
        arguments = recover_arguments(body)
        if not arguments and body:
            logger.debug(f"Could not parse arguments for {name}; passing empty arguments")
        else:
            logger.debug(f"Found command {name}", arguments)
        return ToolInvocation(id=f"cmd_{ordinal}", name=name, arguments=arguments)

    def _append_pending(
        self,
        opener: re.Match,
        thoughts: list[Thought],
        invocations: list[ToolInvocation],
    ) -> None:
        # A thought still being written
        if opener.re is _PENDING_THOUGHT:
            partial = _drop_partial_tag(opener.group(1), THOUGHT_CLOSE)
            thoughts.append(Thought(text=partial.strip()))
            return
        # A command still being written
        partial = _drop_partial_tag(opener.group(2), COMMAND_CLOSE)
        invocations.append(ToolInvocation(
            id=f"pending_cmd_{next(self._pending_ids)}",
            name=opener.group(1).strip(),
            arguments={"_raw": partial.strip(), "_status": PENDING_STATUS},
        ))


def parse_response(content: str, streaming: bool = False) -> ParsedResponse:
    """Interpret *content* with a throwaway interpreter."""
    return ResponseInterpreter().parse(content, streaming=streaming)
