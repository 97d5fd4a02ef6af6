"""Agent integration: prompts, message classification and run handles.

This module exports the key components needed to drive one agent run:
- Prompts for the single-file app generator
- AgentRunner / AgentRun wrapping claude_agent_sdk.query
- The message tagged union and the stream classifier
"""

from agents.prompts import (
    APP_GENERATOR_PROMPT,
    build_task_prompt,
    get_system_prompt,
)
from agents.runner import AgentRun, AgentRunner
from agents.stream import (
    AgentMessage,
    StreamClassifier,
    StreamState,
    TextBlock,
    to_agent_message,
)

__all__ = [
    # Prompts
    "APP_GENERATOR_PROMPT",
    "build_task_prompt",
    "get_system_prompt",
    # Runner
    "AgentRun",
    "AgentRunner",
    # Stream
    "AgentMessage",
    "StreamClassifier",
    "StreamState",
    "TextBlock",
    "to_agent_message",
]
