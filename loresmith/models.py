"""
Project Records
===============

The records the agent works on:

- CharacterRecord: the character card being authored
- LoreEntry / LorebookRecord: keyword-triggered world info
- StoredDocument: research material (e.g. an ingested wiki page)

Records are frozen; edits produce new instances so a ToolContext snapshot
can never change underneath a running tool.
"""

import uuid
from dataclasses import asdict, dataclass, fields, replace
from typing import Any


def estimate_tokens(text: str) -> int:
    """Rough token count used for document sizes (4 characters per token)."""
    return len(text) // 4


@dataclass(frozen=True)
class CharacterRecord:
    """
    A character card.

    Attributes mirror the common character card fields so the record can be
    exported without translation.
    """
    name: str = ""
    description: str = ""
    personality: str = ""
    scenario: str = ""
    first_mes: str = ""
    mes_example: str = ""
    creator_notes: str = ""
    alternate_greetings: tuple[str, ...] = ()

    def merged(self, updates: dict[str, Any]) -> "CharacterRecord":
        """
        Return a copy with the known fields of *updates* applied.

        Unknown keys are ignored; ``alternate_greetings`` accepts any list of
        strings.
        """
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in updates.items():
            if key not in known:
                continue
            if key == "alternate_greetings":
                if isinstance(value, str):
                    value = (value,)
                changes[key] = tuple(str(v) for v in (value or ()))
            else:
                changes[key] = "" if value is None else str(value)
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["alternate_greetings"] = list(self.alternate_greetings)
        return data


@dataclass(frozen=True)
class LoreEntry:
    """A single lorebook entry, activated when one of its keys appears in chat."""
    id: str
    keys: tuple[str, ...]
    content: str
    secondary_keys: tuple[str, ...] = ()
    comment: str = "New Entry"
    enabled: bool = True
    constant: bool = False
    selective: bool = False
    insertion_order: int = 100
    position: str = "before_char"

    @classmethod
    def from_fields(cls, entry: dict[str, Any]) -> "LoreEntry":
        """
        Build an entry from loosely-typed fields (as sent by the model),
        filling the usual defaults.
        """
        keys = entry.get("keys") or []
        if isinstance(keys, str):
            keys = [keys]
        secondary = entry.get("secondary_keys") or []
        if isinstance(secondary, str):
            secondary = [secondary]
        return cls(
            id=str(entry.get("id") or f"entry_{uuid.uuid4().hex[:12]}"),
            keys=tuple(str(k) for k in keys),
            content=str(entry.get("content") or ""),
            secondary_keys=tuple(str(k) for k in secondary),
            comment=str(entry.get("comment") or "New Entry"),
            enabled=bool(entry.get("enabled", True)),
            constant=bool(entry.get("constant", False)),
            selective=bool(entry.get("selective", False)),
            insertion_order=int(entry.get("insertion_order", 100)),
            position=str(entry.get("position") or "before_char"),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["keys"] = list(self.keys)
        data["secondary_keys"] = list(self.secondary_keys)
        return data


@dataclass(frozen=True)
class LorebookRecord:
    """A lorebook: metadata plus its entries."""
    name: str = ""
    description: str = ""
    scan_depth: int = 2
    token_budget: int = 2048
    recursive_scanning: bool = False
    entries: tuple[LoreEntry, ...] = ()

    def with_entry(self, entry: LoreEntry) -> "LorebookRecord":
        return replace(self, entries=self.entries + (entry,))

    def summary(self) -> list[dict[str, Any]]:
        """Keys and comment of every entry, the view the model gets in its prompt."""
        return [{"keys": list(e.keys), "comment": e.comment} for e in self.entries]


@dataclass(frozen=True)
class StoredDocument:
    """
    A research document in the knowledge base.

    Attributes:
        id: Stable identifier
        name: File-like name, unique within the project (e.g. "Saber.txt")
        content: Current text
        enabled: Whether the document is used as context
        tokens: Estimated size of ``content``
        original_content: Text before the first cleaning pass, if cleaned
        clean_mode: Last cleaning mode applied ("strip" or "summary")
    """
    id: str
    name: str
    content: str
    enabled: bool = True
    tokens: int = 0
    original_content: str | None = None
    clean_mode: str | None = None

    @classmethod
    def from_text(cls, name: str, content: str, doc_id: str | None = None) -> "StoredDocument":
        return cls(
            id=doc_id or f"doc_{uuid.uuid4().hex[:12]}",
            name=name,
            content=content,
            tokens=estimate_tokens(content),
        )

