"""
Tool Executor
=============

Runs the tool calls of one round and formats the results for the next.

Tool Execution Loop:
    1. Model answers with tool calls
    2. Executor runs them (concurrently, results kept in call order)
    3. The assistant message and one tool message per result are appended
    4. Model is called again with the results
    5. Repeat until the model answers without tool calls

Tool failures never abort the round: they come back as "Error: ..." text
so the model can react to them.
"""

import asyncio
from dataclasses import dataclass

from zaruka.providers.base import ModelTurn, ToolCall
from zaruka.tools import ToolRegistry, ToolResult
from zaruka.utils.logger import Logger

logger = Logger("ToolExecutor")


@dataclass
class ToolCallResult:
    """
    Result of executing a tool call.

    Attributes:
        tool_call_id: The original tool call ID
        name: The tool name
        result: The tool result
    """
    tool_call_id: str
    name: str
    result: ToolResult

    def to_openai_message(self) -> dict:
        """Format as a tool result message."""
        return {
            "role": "tool",
            "tool_call_id": self.tool_call_id,
            "content": self.result.to_message()
        }


def assistant_message(turn: ModelTurn) -> dict:
    """The assistant message that issued a round's tool calls."""
    return {
        "role": "assistant",
        "content": turn.text or None,
        "tool_calls": [call.to_openai() for call in turn.tool_calls]
    }


class ToolExecutor:
    """
    Executes tool calls against a registry.

    Example:
        executor = ToolExecutor()
        results = await executor.execute_all(registry, turn.tool_calls)

        messages.append(assistant_message(turn))
        messages.extend(r.to_openai_message() for r in results)
    """

    async def execute_one(self, registry: ToolRegistry, tool_call: ToolCall) -> ToolCallResult:
        """Execute a single tool call."""
        logger.info(f"Executing tool: {tool_call.name}")

        result = await registry.execute(tool_call.name, tool_call.arguments)

        if result.success:
            logger.debug(f"Tool {tool_call.name} succeeded")
        else:
            logger.warning(f"Tool {tool_call.name} failed: {result.error}")

        return ToolCallResult(
            tool_call_id=tool_call.id,
            name=tool_call.name,
            result=result
        )

    async def execute_all(
        self,
        registry: ToolRegistry,
        tool_calls: list[ToolCall]
    ) -> list[ToolCallResult]:
        """
        Execute all tool calls of a round concurrently.

        Returns:
            Results in the same order as the calls
        """
        results = await asyncio.gather(
            *(self.execute_one(registry, call) for call in tool_calls)
        )
        return list(results)
