"""Tests for ProjectState and the records it owns."""

from loresmith.models import CharacterRecord, LoreEntry, StoredDocument, estimate_tokens
from loresmith.project import ProjectState


class TestRecords:
    """Frozen record helpers."""

    def test_character_merge_ignores_unknown_fields(self) -> None:
        record = CharacterRecord(name="Saber").merged({
            "personality": "Stern",
            "alternate_greetings": ["Are you my Master?"],
            "height": "154cm",
        })

        assert record.name == "Saber"
        assert record.personality == "Stern"
        assert record.alternate_greetings == ("Are you my Master?",)
        assert "height" not in record.to_dict()

    def test_lore_entry_defaults(self) -> None:
        entry = LoreEntry.from_fields({"keys": "Avalon", "content": "A sheath."})

        assert entry.keys == ("Avalon",)
        assert entry.comment == "New Entry"
        assert entry.enabled is True
        assert entry.insertion_order == 100
        assert entry.position == "before_char"
        assert entry.id.startswith("entry_")

    def test_estimate_tokens(self) -> None:
        assert estimate_tokens("abcdefgh") == 2
        assert estimate_tokens("") == 0


class TestProjectState:
    """Callbacks and snapshots."""

    def test_snapshot_callbacks_edit_the_project(self) -> None:
        project = ProjectState()
        context = project.snapshot()

        context.update_record({"name": "Rin"})
        context.add_lore_entry({"keys": ["Tohsaka"], "content": "A family of magi.", "comment": "Tohsaka"})
        context.add_document(StoredDocument.from_text("Rin.txt", "Rin Tohsaka is a magus."))

        assert project.character.name == "Rin"
        assert [e.comment for e in project.lorebook.entries] == ["Tohsaka"]
        assert [d.name for d in project.documents] == ["Rin.txt"]

    def test_snapshot_is_isolated_from_later_edits(self) -> None:
        project = ProjectState()
        before = project.snapshot()

        project.update_record({"name": "Rin"})
        project.add_document(StoredDocument.from_text("Rin.txt", "text"))

        assert before.character.name == ""
        assert before.documents == ()
        assert project.snapshot().character.name == "Rin"

    def test_add_document_replaces_same_name(self) -> None:
        project = ProjectState()
        project.add_document(StoredDocument.from_text("Rin.txt", "old", doc_id="a"))
        project.add_document(StoredDocument.from_text("Rin.txt", "new", doc_id="b"))

        assert [(d.id, d.content) for d in project.documents] == [("b", "new")]

    def test_update_document_by_id(self) -> None:
        project = ProjectState()
        project.add_document(StoredDocument.from_text("Rin.txt", "old", doc_id="a"))
        project.add_document(StoredDocument.from_text("Saber.txt", "keep", doc_id="b"))

        project.update_document(StoredDocument.from_text("Rin.txt", "new", doc_id="a"))

        assert [d.content for d in project.documents] == ["new", "keep"]

    def test_snapshot_overrides(self) -> None:
        project = ProjectState(research_source_url="https://typemoon.fandom.com")

        context = project.snapshot(agent_mode="plan", research_source_url="https://other.fandom.com")

        assert context.agent_mode == "plan"
        assert context.research_source_url == "https://other.fandom.com"
        assert project.snapshot().research_source_url == "https://typemoon.fandom.com"
