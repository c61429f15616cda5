"""
Context Assembly
================

Two things the agent needs before every model request:

1. ToolContext - an immutable snapshot of the project the tools operate on
   (research wiki, stored documents, character, lorebook, settings) plus
   the callbacks that apply tool edits to the owner of that project.
2. The request itself - a system prompt rendered from the mode's template
   and a transcript repaired so earlier tool results are visible.

Transcript repair:
    Transcripts saved before tool results were recorded contain assistant
    messages with tool invocations but no following "Tool Output" message.
    Without it the model cannot tell what its earlier commands did, so a
    synthetic system message with the outputs is spliced in after each such
    assistant message.

        assistant  "<command ...>" (invocations with results)
        user       "now add a greeting"
    becomes
        assistant  "<command ...>"
        system     "Tool Output (wiki_search):\\n[...]"
        user       "now add a greeting"
"""

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping

from loresmith.agent.prompts import (
    DEFAULT_TEMPLATES,
    DEFAULT_WIKI_STRATEGY,
    DEFAULT_WIKI_URL_TEXT,
    PLAN_MODE_TOOLS_TEXT,
    fill_template,
    template_id_for_mode,
)
from loresmith.agent.types import AgentMessage
from loresmith.models import CharacterRecord, LorebookRecord, StoredDocument
from loresmith.utils.logger import Logger

if TYPE_CHECKING:
    from loresmith.llm.base import APISettings, CompletionTransport
    from loresmith.tools import ToolRegistry
    from loresmith.wiki.client import WikiClient

logger = Logger("Context")

TOOL_OUTPUT_MARKER = "Tool Output"


def format_tool_output(name: str, result: str) -> str:
    """The wire format tool results are fed back to the model in."""
    return f"{TOOL_OUTPUT_MARKER} ({name}):\n{result}"


@dataclass(frozen=True)
class ToolContext:
    """
    What a tool sees when it runs.

    Data fields are a snapshot; tools change the project only through the
    callbacks, any of which may be None (tools must then report the missing
    capability instead of raising).

    Attributes:
        research_source_url: Default wiki for research tools ("" if unset)
        documents: Stored documents (knowledge base)
        character: The character being authored
        lorebook: The lorebook being authored
        settings: Completion settings, needed by tools that call the model
        agent_mode: "build" or "plan"
        custom_prompts: Template overrides by template id
        add_document: Append a new StoredDocument
        update_document: Replace a StoredDocument with the same id
        update_record: Merge a dict of character fields
        add_lore_entry: Append a lore entry given as a dict of fields
        transport: Completion transport for tools that call the model
        wiki: Wiki client for research tools (a default one is used if None)
    """
    research_source_url: str = ""
    documents: tuple[StoredDocument, ...] = ()
    character: CharacterRecord = field(default_factory=CharacterRecord)
    lorebook: LorebookRecord = field(default_factory=LorebookRecord)
    settings: "APISettings | None" = None
    agent_mode: str = "build"
    custom_prompts: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    add_document: Callable[[StoredDocument], None] | None = None
    update_document: Callable[[StoredDocument], None] | None = None
    update_record: Callable[[dict[str, Any]], None] | None = None
    add_lore_entry: Callable[[dict[str, Any]], None] | None = None

    transport: "CompletionTransport | None" = None
    wiki: "WikiClient | None" = None

    def find_document(self, name: str) -> StoredDocument | None:
        return next((d for d in self.documents if d.name == name), None)


class PromptAssembler:
    """
    Builds the system prompt and the transcript for each model request.

    Example:
        assembler = PromptAssembler(registry)
        await transport.generate(
            settings,
            assembler.repair_transcript(transcript),
            assembler.build_system_prompt(context),
        )
    """

    def __init__(self, registry: "ToolRegistry"):
        """
        Args:
            registry: Source of the tool catalog embedded in build-mode prompts
        """
        self.registry = registry

    def template_variables(self, context: ToolContext) -> dict[str, str]:
        """Values for every placeholder the default templates use."""
        settings = context.settings
        preset = settings.active_preset if settings else None

        if context.agent_mode == "plan":
            tool_descriptions = PLAN_MODE_TOOLS_TEXT
        else:
            tool_descriptions = self.registry.describe_prompt()

        return {
            "characterState": json.dumps(context.character.to_dict(), indent=2, ensure_ascii=False),
            "lorebookCount": str(len(context.lorebook.entries)),
            "lorebookState": json.dumps(context.lorebook.summary(), indent=2, ensure_ascii=False),
            "wikiUrl": context.research_source_url or DEFAULT_WIKI_URL_TEXT,
            "presetPrompts": preset.enabled_prompt_text() if preset else "",
            "toolDescriptions": tool_descriptions,
            "wikiStrategyInstructions": DEFAULT_WIKI_STRATEGY,
        }

    def build_system_prompt(self, context: ToolContext) -> str:
        """Render the template for the context's agent mode."""
        template_id = template_id_for_mode(context.agent_mode)
        template = context.custom_prompts.get(template_id) or DEFAULT_TEMPLATES[template_id]
        return fill_template(template, self.template_variables(context))

    def repair_transcript(self, messages: list[AgentMessage]) -> list[AgentMessage]:
        """
        Return a copy of *messages* with missing tool-output messages spliced in.

        The input list is not modified.
        """
        repaired: list[AgentMessage] = []
        for i, message in enumerate(messages):
            repaired.append(message)
            if message.role != "assistant" or not message.tool_invocations:
                continue

            following = messages[i + 1] if i + 1 < len(messages) else None
            if following and following.role == "system" and TOOL_OUTPUT_MARKER in following.content:
                continue

            outputs = [
                format_tool_output(inv.name, inv.result)
                for inv in message.tool_invocations
                if inv.result
            ]
            if outputs:
                repaired.append(AgentMessage(role="system", content="\n\n".join(outputs)))

        added = len(repaired) - len(messages)
        if added:
            logger.debug(f"Restored {added} tool output message(s) in transcript")
        return repaired
