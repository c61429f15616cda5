"""
Core types shared by the agent loop, the interpreter and the UI.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

PENDING_STATUS = "pending"


class AgentStatus(str, Enum):
    """What the agent loop is doing right now. ``IDLE`` is both initial and terminal."""
    IDLE = "idle"
    THINKING = "thinking"
    EXECUTING = "executing"
    OBSERVING = "observing"
    ERROR = "error"


@dataclass(frozen=True)
class Thought:
    """
    A piece of reasoning the model wrote inside ``<thought>`` tags (or sent on
    a provider's native reasoning channel). Purely informational.
    """
    text: str
    kind: str = "thought"
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class ToolInvocation:
    """
    A tool the model asked to run.

    Attributes:
        id: Unique within a run (e.g. "step_2_cmd_0")
        name: Registered tool name
        arguments: Recovered argument object; ``{"_raw": ..., "_status": "pending"}``
            while the command is still streaming
        result: Tool output, attached after execution
    """
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    result: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.arguments.get("_status") == PENDING_STATUS


@dataclass
class AgentMessage:
    """
    One message in the conversation transcript.

    Assistant messages produced by the loop also carry the thoughts and tool
    invocations of the run so far.
    """
    role: str
    content: str
    thoughts: list[Thought] = field(default_factory=list)
    tool_invocations: list[ToolInvocation] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Role and content only, the shape completion APIs expect."""
        return {"role": self.role, "content": self.content}
