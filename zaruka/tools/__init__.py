"""
Capability Set
==============

Tools are functions the model may call mid-conversation. The agent core
does not decide which tools exist: the caller builds a ToolRegistry from
local capabilities and/or tools discovered on MCP servers and hands it to
the Assistant.

Each tool has:
- a unique name
- a description shown to the model
- a JSON Schema for its parameters
- an async execute(args) returning text

The core never validates arguments; that is the tool's job. Whatever a
tool returns (or raises) is turned into text and fed back to the model in
the next round.

This module provides:
- Tool dataclass for defining tools
- ToolResult for standardized responses
- ToolRegistry for managing the set handed to one Assistant
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from zaruka.utils.logger import Logger

logger = Logger("Tools")


@dataclass
class ToolResult:
    """
    Standardized result from tool execution.

    Attributes:
        success: Whether the tool executed successfully
        data: The result data (text or anything JSON-serializable)
        error: Error message if success is False
    """
    success: bool
    data: Any = None
    error: str | None = None

    def to_message(self) -> str:
        """Format as text for the model."""
        if not self.success:
            return f"Error: {self.error}"
        if isinstance(self.data, str):
            return self.data
        return json.dumps(self.data, default=str)


@dataclass
class Tool:
    """
    Definition of one capability.

    Example:
        async def get_weather(args: dict) -> str:
            return f"Sunny in {args['city']}"

        tool = Tool(
            name="get_weather",
            description="Current weather for a city",
            parameters={
                "type": "object",
                "properties": {"city": {"type": "string"}},
                "required": ["city"]
            },
            execute=get_weather
        )
    """
    name: str
    description: str
    parameters: dict
    execute: Callable[[dict], Awaitable["str | ToolResult"]]

    def to_openai_function(self) -> dict:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters
            }
        }


class ToolRegistry:
    """
    The set of tools available to one Assistant.

    Example:
        registry = ToolRegistry([weather_tool])
        registry.register(task_tool)

        functions = registry.get_openai_functions()
        result = await registry.execute("get_weather", {"city": "Oslo"})
    """

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """
        Register a tool.

        Raises:
            ValueError: If a tool with this name already exists
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def get_openai_functions(self) -> list[dict]:
        """All tools in OpenAI function format."""
        return [tool.to_openai_function() for tool in self._tools.values()]

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    async def execute(self, name: str, params: dict) -> ToolResult:
        """
        Execute a tool by name.

        Never raises: unknown tools and tool exceptions become error results
        so the model can see what went wrong and recover.

        Args:
            name: The tool name
            params: Arguments produced by the model

        Returns:
            ToolResult from the tool execution
        """
        tool = self.get(name)
        if not tool:
            return ToolResult(success=False, error=f"Tool '{name}' not found")

        try:
            result = await tool.execute(params)
        except Exception as e:
            logger.error(f"Tool execution failed: {name}", e)
            return ToolResult(success=False, error=str(e))

        if isinstance(result, ToolResult):
            return result
        return ToolResult(success=True, data=result)


__all__ = [
    "Tool",
    "ToolResult",
    "ToolRegistry",
]
