"""
Test doubles shared by the agent core tests.
"""

from zaruka.providers.base import ModelHandle, ModelTurn, ProviderConfig, StreamChunk, ToolCall, Usage


class ScriptedHandle(ModelHandle):
    """
    A model that plays back a fixed script.

    Each script item is a ModelTurn to return or an exception to raise,
    consumed one per round. Every call records the messages it was given.
    """

    def __init__(self, config: ProviderConfig, script=None, chunk_size: int = 3):
        super().__init__(config)
        self.script = list(script or [])
        self.chunk_size = chunk_size
        self.calls: list[list[dict]] = []

    def _next(self, messages):
        self.calls.append(list(messages))
        if not self.script:
            raise AssertionError(f"{self.label} called more often than scripted")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def generate(self, system_prompt, messages, tools):
        return self._next(messages)

    async def stream(self, system_prompt, messages, tools):
        turn = self._next(messages)
        text = turn.text
        for start in range(0, len(text), self.chunk_size):
            yield StreamChunk(text=text[start:start + self.chunk_size])
        yield StreamChunk(turn=turn)

    @property
    def call_count(self) -> int:
        return len(self.calls)


def answer(text: str, input_tokens: int = 10, output_tokens: int = 5) -> ModelTurn:
    """A terminal turn."""
    return ModelTurn(text=text, usage=Usage(input_tokens, output_tokens))


def call_tool(name: str, arguments: dict | None = None, text: str = "", call_id: str = "call_1") -> ModelTurn:
    """A turn requesting one tool call."""
    return ModelTurn(
        text=text,
        tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments or {})],
        usage=Usage(3, 2),
    )
