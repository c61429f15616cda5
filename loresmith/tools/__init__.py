"""
Agent Tools
===========

Tools are the only way the agent changes anything. The model invokes them
with a command tag in its reply:

    <command name="update_character">
    {"name": "Saber", "personality": "Stern, honourable"}
    </command>

Each tool has a name, a description and a JSON Schema for its arguments,
all rendered into the system prompt by ``ToolRegistry.describe_prompt()``.
That text is the model's only reference for the syntax, so it lists every
registered tool, in registration order.

Tool Categories:
1. Research: wiki_search, read_page
2. Authoring: update_character, add_lorebook_entry
3. Knowledge base: list_files, clean_file

Failure handling:
    A tool that raises never crashes the run. The registry converts the
    exception into an error string that is fed back to the model as the
    tool's output, so the model can try something else.

This module provides:
- ToolDefinition for defining tools
- ToolResult for standardized results
- ToolRegistry for managing and executing tools
- create_default_registry() with the built-in tools
"""

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from loresmith.utils.logger import Logger

if TYPE_CHECKING:
    from loresmith.agent.context import ToolContext

logger = Logger("ToolRegistry")


class ToolNotFoundError(LookupError):
    """Raised by ToolRegistry.require() for an unregistered tool name."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' not found.")
        self.name = name


@dataclass
class ToolResult:
    """
    Standardized result from tool execution.

    Attributes:
        success: Whether the tool did what was asked
        data: The result (a string is passed to the model verbatim)
        error: Error message if success is False
    """
    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    def to_message(self) -> str:
        """Format as the text the model reads."""
        if not self.success:
            return f"Error: {self.error}"
        if isinstance(self.data, str):
            return self.data
        return json.dumps(self.data, indent=2, default=str, ensure_ascii=False)


ToolExecutorFn = Callable[[dict, "ToolContext"], Awaitable["ToolResult | str"]]


@dataclass
class ToolDefinition:
    """
    Definition of a tool.

    Attributes:
        name: Unique identifier, used in ``<command name="...">``
        description: What the tool does (shown to the model)
        parameters: JSON Schema for the arguments
        execute: Async function ``(arguments, context) -> ToolResult | str``

    Example:
        async def list_names(args: dict, context: ToolContext) -> ToolResult:
            return ToolResult.ok(", ".join(d.name for d in context.documents))

        tool = ToolDefinition(
            name="list_names",
            description="List document names",
            parameters={"type": "object", "properties": {}},
            execute=list_names,
        )
    """
    name: str
    description: str
    parameters: dict
    execute: ToolExecutorFn

    def describe(self) -> str:
        """Catalog entry for the system prompt."""
        schema = json.dumps(self.parameters, separators=(",", ":"), ensure_ascii=False)
        return f"- {self.name}: {self.description}\n  Params: {schema}"


COMMAND_SYNTAX = """\
To use a tool, output a command block strictly in this format:
<command name="tool_name">
{
  "param1": "value1"
}
</command>

To think or plan before acting, use a thought block:
<thought>
I need to check the wiki first.
</thought>"""


class ToolRegistry:
    """
    Registry of the tools available to an agent.

    Registering a name twice replaces the first tool (a warning is logged),
    so tools can be swapped between runs.

    Example:
        registry = create_default_registry()
        output = await registry.execute("list_files", {}, context)
    """

    def __init__(self):
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            logger.warning(f"Overwriting tool: {tool.name}")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> ToolDefinition | None:
        """Look up a tool; None when no tool has that name."""
        return self._tools.get(name)

    def require(self, name: str) -> ToolDefinition:
        """
        Look up a tool that must exist.

        Raises:
            ToolNotFoundError: No tool is registered under *name*
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    async def execute(self, name: str, arguments: dict, context: "ToolContext") -> str:
        """
        Run a tool and return the text the model should see.

        Never raises: an unknown tool and an exception inside the tool both
        come back as error strings.

        Args:
            name: Tool name
            arguments: Recovered argument object (may be empty)
            context: Snapshot of the project for this call

        Returns:
            The tool's output, or an error description
        """
        try:
            tool = self.require(name)
        except ToolNotFoundError as e:
            logger.warning(f"Model requested unknown tool: {name}")
            return f"Error: {e}"

        tool_logger = logger.child(name)
        try:
            tool_logger.info("Executing")
            result = await tool.execute(arguments, context)
        except Exception as e:
            tool_logger.error("Tool raised", e)
            return f"Error executing tool '{name}': {e}"

        if isinstance(result, ToolResult):
            if not result.success:
                tool_logger.warning(f"Failed: {result.error}")
            return result.to_message()
        return str(result)

    def describe_prompt(self) -> str:
        """The tool catalog and command syntax, embedded in the system prompt."""
        catalog = "\n\n".join(tool.describe() for tool in self._tools.values())
        return (
            "You have access to the following tools:\n\n"
            f"{catalog}\n\n"
            f"{COMMAND_SYNTAX}"
        )


def create_default_registry() -> ToolRegistry:
    """A registry holding every built-in tool."""
    from loresmith.tools.character_tools import register_character_tools
    from loresmith.tools.document_tools import register_document_tools
    from loresmith.tools.wiki_tools import register_wiki_tools

    registry = ToolRegistry()
    register_wiki_tools(registry)
    register_character_tools(registry)
    register_document_tools(registry)

    logger.debug(f"Registered {len(registry.list_names())} built-in tools")
    return registry


__all__ = [
    "COMMAND_SYNTAX",
    "ToolDefinition",
    "ToolNotFoundError",
    "ToolRegistry",
    "ToolResult",
    "create_default_registry",
]
