"""
Agent System
============

The agent researches and authors characters on its own. Each run it:
1. Builds a system prompt from the project state and the tool catalog
2. Streams a reply from the model
3. Interprets <thought> and <command> tags in the reply
4. Executes the commands and feeds the results back
5. Repeats until the model answers without acting (or runs out of steps)

This module provides:
- AgentLoop: the orchestrator
- ResponseInterpreter: tag parsing for (partial) replies
- PromptAssembler / ToolContext: what the model and the tools see
- ToolExecutor: runs invocations and formats their output
"""

from loresmith.agent.context import PromptAssembler, ToolContext, format_tool_output
from loresmith.agent.core import AgentLoop
from loresmith.agent.interpreter import ParsedResponse, ResponseInterpreter, parse_response
from loresmith.agent.tools_executor import ToolExecutor
from loresmith.agent.types import AgentMessage, AgentStatus, Thought, ToolInvocation

__all__ = [
    "AgentLoop",
    "AgentMessage",
    "AgentStatus",
    "ParsedResponse",
    "PromptAssembler",
    "ResponseInterpreter",
    "Thought",
    "ToolContext",
    "ToolExecutor",
    "ToolInvocation",
    "format_tool_output",
    "parse_response",
]
