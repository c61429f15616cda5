"""
Authoring Tools
===============

Tools that edit the character card and the lorebook:

- update_character: merge any subset of character fields
- add_lorebook_entry: append a keyword-triggered lore entry

Edits go through the context callbacks; the tools never hold project
state themselves.
"""

from loresmith.agent.context import ToolContext
from loresmith.tools import ToolDefinition, ToolRegistry, ToolResult
from loresmith.utils.logger import Logger

logger = Logger("CharacterTools")

CHARACTER_FIELDS = (
    "name",
    "description",
    "personality",
    "scenario",
    "first_mes",
    "mes_example",
    "creator_notes",
    "alternate_greetings",
)


# ==============================================================================
# Tool: Update Character
# ==============================================================================

async def _update_character(args: dict, context: ToolContext) -> ToolResult:
    """Merge the given fields into the character."""
    if context.update_record is None:
        return ToolResult.fail("Character update context missing.")

    fields = {k: v for k, v in args.items() if k in CHARACTER_FIELDS}
    ignored = sorted(set(args) - set(fields))
    if not fields:
        return ToolResult.fail(
            f"No character fields given. Valid fields: {', '.join(CHARACTER_FIELDS)}."
        )

    logger.debug("update_character", fields)
    context.update_record(fields)

    message = f"Character updated successfully with fields: {', '.join(fields)}"
    if ignored:
        message += f" (ignored unknown fields: {', '.join(ignored)})"
    return ToolResult.ok(message)


update_character_tool = ToolDefinition(
    name="update_character",
    description=(
        "Update the character sheet fields. Use this to save your progress or refine the "
        "character based on research."
    ),
    parameters={
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "description": {"type": "string"},
            "personality": {"type": "string"},
            "scenario": {"type": "string"},
            "first_mes": {"type": "string"},
            "mes_example": {"type": "string"},
            "creator_notes": {"type": "string"},
            "alternate_greetings": {"type": "array", "items": {"type": "string"}},
        },
    },
    execute=_update_character,
)


# ==============================================================================
# Tool: Add Lorebook Entry
# ==============================================================================

async def _add_lorebook_entry(args: dict, context: ToolContext) -> ToolResult:
    """Validate and append a lorebook entry."""
    keys = args.get("keys")
    content = args.get("content")
    keys_ok = isinstance(keys, list) and any(isinstance(k, str) and k.strip() for k in keys)
    content_ok = isinstance(content, str) and content.strip()
    if not keys_ok or not content_ok:
        return ToolResult.fail(
            'Missing required fields: "keys" (a non-empty array of strings) and "content".'
        )

    if context.add_lore_entry is None:
        return ToolResult.fail("Lorebook update context missing.")

    entry = {
        "keys": [k.strip() for k in keys if isinstance(k, str) and k.strip()],
        "content": content,
    }
    for optional in ("comment", "secondary_keys", "constant", "selective", "insertion_order", "position"):
        if optional in args:
            entry[optional] = args[optional]

    context.add_lore_entry(entry)
    label = args.get("comment") or entry["keys"][0]
    return ToolResult.ok(f'Lorebook entry "{label}" added.')


add_lorebook_entry_tool = ToolDefinition(
    name="add_lorebook_entry",
    description="Add a new entry to the Lorebook based on research.",
    parameters={
        "type": "object",
        "properties": {
            "keys": {"type": "array", "items": {"type": "string"}},
            "content": {"type": "string"},
            "comment": {"type": "string", "description": "Title or comment for the entry"},
        },
        "required": ["keys", "content"],
    },
    execute=_add_lorebook_entry,
)


def register_character_tools(registry: ToolRegistry) -> None:
    """Register the authoring tools."""
    registry.register(update_character_tool)
    registry.register(add_lorebook_entry_tool)
