"""
Project State
=============

In-memory owner of what the agent edits: the character, the lorebook and
the Knowledge Base documents.

Tools never touch this object directly. ``snapshot()`` hands them a frozen
ToolContext whose callbacks are bound to this project, so a tool's edit is
visible in the next snapshot (the agent loop takes one before every tool
call).

Example:
    project = ProjectState(research_source_url="typemoon.fandom.com")
    context = project.snapshot(settings, agent_mode="build")
    context.update_record({"name": "Saber"})
    project.character.name   # "Saber"
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from loresmith.agent.context import ToolContext
from loresmith.llm.base import APISettings, CompletionTransport
from loresmith.models import CharacterRecord, LoreEntry, LorebookRecord, StoredDocument
from loresmith.utils.logger import Logger
from loresmith.wiki.client import WikiClient

logger = Logger("Project")


@dataclass
class ProjectState:
    """
    The mutable project behind the agent's snapshots.

    Attributes:
        character: Current character card
        lorebook: Current lorebook
        documents: Knowledge Base, in insertion order
        research_source_url: Default wiki for research tools
    """
    character: CharacterRecord = field(default_factory=CharacterRecord)
    lorebook: LorebookRecord = field(default_factory=LorebookRecord)
    documents: list[StoredDocument] = field(default_factory=list)
    research_source_url: str = ""

    # =========================================================================
    # Callbacks handed to tools
    # =========================================================================

    def add_document(self, document: StoredDocument) -> None:
        """Add a document; one with the same name is replaced."""
        self.documents = [d for d in self.documents if d.name != document.name]
        self.documents.append(document)
        logger.info(f"Stored document {document.name} ({document.tokens} tokens)")

    def update_document(self, document: StoredDocument) -> None:
        """Replace the document with the same id."""
        for i, existing in enumerate(self.documents):
            if existing.id == document.id:
                self.documents[i] = document
                logger.debug(f"Updated document {document.name}")
                return
        logger.warning(f"Update for unknown document {document.id}; adding it")
        self.documents.append(document)

    def update_record(self, updates: dict[str, Any]) -> None:
        self.character = self.character.merged(updates)
        logger.debug("Character updated", {"fields": list(updates)})

    def add_lore_entry(self, fields: dict[str, Any]) -> None:
        entry = LoreEntry.from_fields(fields)
        self.lorebook = self.lorebook.with_entry(entry)
        logger.debug(f"Added lore entry {entry.id} ({entry.comment})")

    # =========================================================================
    # Snapshot
    # =========================================================================

    def snapshot(
        self,
        settings: APISettings | None = None,
        agent_mode: str = "build",
        research_source_url: str | None = None,
        transport: CompletionTransport | None = None,
        wiki: WikiClient | None = None,
        custom_prompts: Mapping[str, str] | None = None,
    ) -> ToolContext:
        """
        Freeze the current state into a ToolContext.

        Args:
            settings: Completion settings for tools that call the model
            agent_mode: "build" or "plan"
            research_source_url: Overrides the project's default wiki
            transport: Completion transport for clean_file
            wiki: Wiki client for research tools
            custom_prompts: System prompt overrides by template id
        """
        return ToolContext(
            research_source_url=(
                research_source_url if research_source_url is not None else self.research_source_url
            ),
            documents=tuple(self.documents),
            character=self.character,
            lorebook=self.lorebook,
            settings=settings,
            agent_mode=agent_mode,
            custom_prompts=MappingProxyType(dict(custom_prompts or {})),
            add_document=self.add_document,
            update_document=self.update_document,
            update_record=self.update_record,
            add_lore_entry=self.add_lore_entry,
            transport=transport,
            wiki=wiki,
        )
