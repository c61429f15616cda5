"""
Knowledge Base Tools
====================

- list_files: names and sizes of the stored documents
- clean_file: rewrite a document with the model (strip formatting or summarize)
"""

from dataclasses import replace

from loresmith.agent.context import ToolContext
from loresmith.agent.prompts import CLEAN_PROMPTS
from loresmith.agent.types import AgentMessage
from loresmith.models import estimate_tokens
from loresmith.tools import ToolDefinition, ToolRegistry, ToolResult
from loresmith.utils.logger import Logger

logger = Logger("DocumentTools")


async def _list_files(args: dict, context: ToolContext) -> ToolResult:
    if not context.documents:
        return ToolResult.ok("No files found.")
    lines = [f'- Name: "{doc.name}", Tokens: {doc.tokens}' for doc in context.documents]
    return ToolResult.ok("\n".join(lines))


list_files_tool = ToolDefinition(
    name="list_files",
    description="List all files in the Knowledge Base with their token counts.",
    parameters={"type": "object", "properties": {}},
    execute=_list_files,
)


async def _clean_file(args: dict, context: ToolContext) -> ToolResult:
    """
    Send a document through the model and store the rewritten text.

    The first cleaning keeps the untouched text in ``original_content`` so a
    later pass never loses the source.
    """
    name = args.get("name")
    mode = args.get("mode")
    if not name or not mode:
        return ToolResult.fail('"name" and "mode" are required parameters.')
    if mode not in CLEAN_PROMPTS:
        logger.warning(f"Unknown clean mode '{mode}', using strip")
        mode = "strip"

    if context.settings is None or context.transport is None:
        return ToolResult.fail("Completion settings are not available for cleaning.")
    if context.update_document is None:
        return ToolResult.fail("Knowledge Base cannot be updated.")

    doc = context.find_document(name)
    if doc is None:
        return ToolResult.fail(f'File "{name}" not found. Use list_files to get exact names.')

    instruction = CLEAN_PROMPTS[mode]
    result = await context.transport.generate(
        context.settings,
        [AgentMessage(role="user", content=doc.content)],
        instruction,
    )
    if result.error:
        return ToolResult.fail(f"Cleaning failed: {result.error}")

    cleaned = result.text.strip()
    if not cleaned:
        return ToolResult.fail("AI returned empty response.")

    updated = replace(
        doc,
        content=cleaned,
        tokens=estimate_tokens(cleaned),
        clean_mode=mode,
        original_content=doc.original_content or doc.content,
    )
    context.update_document(updated)
    return ToolResult.ok(f'File "{name}" cleaned. Tokens: {doc.tokens} -> {updated.tokens}.')


clean_file_tool = ToolDefinition(
    name="clean_file",
    description="Clean or summarize a file in the Knowledge Base using AI to save tokens.",
    parameters={
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "Exact name of the file to clean"},
            "mode": {
                "type": "string",
                "enum": ["strip", "summary"],
                "description": "strip: remove formatting only; summary: condense the content",
            },
        },
        "required": ["name", "mode"],
    },
    execute=_clean_file,
)


def register_document_tools(registry: ToolRegistry) -> None:
    registry.register(list_files_tool)
    registry.register(clean_file_tool)
