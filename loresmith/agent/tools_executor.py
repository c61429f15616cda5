"""
Tool Executor
=============

Runs the invocations the interpreter found and turns their results into
transcript messages for the next model request.

Tool Execution Loop:
    1. The model writes <command> tags in its reply
    2. The executor runs each invocation, in order, through the registry
    3. Each result is attached to its invocation for the UI
    4. Two messages are appended to the working transcript:
         assistant  <command name="wiki_search">...</command>
         system     Tool Output (wiki_search):\\n<result>
    5. The model is asked again and sees what its commands did

Invocations run one at a time: a later tool may depend on what an earlier
one stored (a page read into the Knowledge Base, a renamed character).
"""

from dataclasses import replace

from loresmith.agent.context import ToolContext, format_tool_output
from loresmith.agent.types import AgentMessage, ToolInvocation
from loresmith.tools import ToolRegistry
from loresmith.utils.logger import Logger

logger = Logger("ToolExecutor")


class ToolExecutor:
    """
    Executes tool invocations against a registry.

    Example:
        executor = ToolExecutor(registry)

        done = await executor.execute_one(invocation, context)
        transcript.extend(executor.feedback_messages(done))
    """

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def execute_one(self, invocation: ToolInvocation, context: ToolContext) -> ToolInvocation:
        """
        Run one invocation.

        Never raises for tool failures; the registry turns them into
        error text.

        Returns:
            A copy of *invocation* with ``result`` set
        """
        if invocation.is_pending:
            # Unterminated command; the arguments are not final
            logger.warning(f"Refusing to execute pending invocation {invocation.id}")
            return replace(invocation, result="Error: Command was not completed.")

        logger.debug(f"Executing {invocation.name} ({invocation.id})", invocation.arguments)
        result = await self.registry.execute(invocation.name, invocation.arguments, context)
        return replace(invocation, result=result)

    def feedback_messages(self, invocation: ToolInvocation) -> list[AgentMessage]:
        """The assistant placeholder and tool-output message for an executed invocation."""
        return [
            AgentMessage(role="assistant", content=f'<command name="{invocation.name}">...</command>'),
            AgentMessage(role="system", content=format_tool_output(invocation.name, invocation.result or "")),
        ]
