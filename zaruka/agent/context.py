"""
Context Assembly
================

Turns one request (system prompt, tool catalog, the user's new message,
its attachments and an unbounded history) into a conversation that fits
the model's context window.

Token Budget:
    context ceiling (180k by default)
    ├── system prompt
    ├── tool names + ~200 tokens per tool schema
    ├── response reserve (8k)
    ├── current user turn + attachments (image ≈ 1,500, file ≈ bytes/4)
    └── history: whatever is left, newest turns first

History selection is a greedy prefix walk from the newest turn backwards:
the first turn that does not fit stops the walk, so an older turn is never
included once a newer one was skipped. Accepted turns are reversed back to
chronological order.

Token counts come from a character heuristic (~4 characters per token),
which is close enough to keep a safety margin without a tokenizer.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Literal, Sequence

from zaruka.providers.base import to_data_url
from zaruka.utils.logger import Logger

logger = Logger("Context")

# Rough token budget for the context window; most models support 200K
MAX_CONTEXT_TOKENS = 180_000
RESPONSE_RESERVE = 8_000
TOKENS_PER_TOOL = 200
HISTORY_CHAR_CAP = 1_000
IMAGE_TOKENS = 1_500


@dataclass(frozen=True)
class AttachmentDescriptor:
    """
    What the history store remembers about a past attachment.

    Attributes:
        file_type: "photo" or "document"
        mime_type: Optional MIME type
        file_name: Optional original file name
    """
    file_type: Literal["photo", "document"]
    mime_type: str | None = None
    file_name: str | None = None

    def marker(self) -> str:
        """Text marker shown to the model, e.g. "[document attached: a.pdf]"."""
        if self.file_name:
            return f"[{self.file_type} attached: {self.file_name}]"
        return f"[{self.file_type} attached]"


@dataclass(frozen=True)
class ConversationTurn:
    """
    One stored message of the conversation.

    Attributes:
        role: "user" or "assistant"
        text: The message text
        attachment: Descriptor if the message carried a file
    """
    role: Literal["user", "assistant"]
    text: str
    attachment: AttachmentDescriptor | None = None


@dataclass
class Attachment:
    """
    A file sent with the current message.

    Attributes:
        kind: "image" or "file"
        data: Raw bytes
        media_type: MIME type, e.g. "image/jpeg"
        file_name: Optional original file name
    """
    kind: Literal["image", "file"]
    data: bytes
    media_type: str
    file_name: str | None = None

    def to_part(self) -> dict:
        """Encode as an OpenAI content part."""
        url = to_data_url(self.media_type, self.data)
        if self.kind == "image":
            return {"type": "image_url", "image_url": {"url": url}}
        return {
            "type": "file",
            "file": {"filename": self.file_name or "file", "file_data": url}
        }


def estimate_tokens(text: str) -> int:
    """Rough token estimate: ~4 characters per token."""
    return math.ceil(len(text) / 4)


def estimate_attachment_tokens(attachment: Attachment) -> int:
    """Images cost a flat amount; files cost by size."""
    if attachment.kind == "image":
        return IMAGE_TOKENS
    return math.ceil(len(attachment.data) / 4)


@dataclass
class BudgetedMessages:
    """
    The conversation handed to one attempt.

    Attributes:
        messages: OpenAI-format messages, chronological, current turn last
        history_included: Number of history turns kept
        history_dropped: Number of history turns left out
        estimated_tokens: Estimated prompt size including the fixed overhead
    """
    messages: list[dict]
    history_included: int = 0
    history_dropped: int = 0
    estimated_tokens: int = 0


@dataclass
class MessageBudgetBuilder:
    """
    Builds bounded message lists.

    Example:
        builder = MessageBudgetBuilder()
        built = builder.build(
            system_prompt="You are Zaruka...",
            tool_names=["create_task", "get_weather"],
            user_message="What's on my list today?",
            history=turns,
        )
        await handle.generate(system_prompt, built.messages, tools)
    """
    context_ceiling: int = MAX_CONTEXT_TOKENS
    response_reserve: int = RESPONSE_RESERVE
    per_tool_tokens: int = TOKENS_PER_TOOL
    history_char_cap: int = HISTORY_CHAR_CAP
    ellipsis: str = field(default="...", repr=False)

    def fixed_overhead(self, system_prompt: str, tool_names: Sequence[str]) -> int:
        """System prompt + tool catalog + response reserve."""
        return (
            estimate_tokens(system_prompt)
            + estimate_tokens(json.dumps(list(tool_names)))
            + len(tool_names) * self.per_tool_tokens
            + self.response_reserve
        )

    def render_turn(self, turn: ConversationTurn) -> str:
        """History text as sent to the model: capped and marked."""
        text = turn.text
        if len(text) > self.history_char_cap:
            text = text[: self.history_char_cap] + self.ellipsis
        if turn.attachment is not None:
            text = f"{turn.attachment.marker()} {text}" if text else turn.attachment.marker()
        return text

    def build(
        self,
        system_prompt: str,
        tool_names: Sequence[str],
        user_message: str,
        history: Sequence[ConversationTurn] | None = None,
        attachments: Sequence[Attachment] | None = None
    ) -> BudgetedMessages:
        """
        Assemble the conversation for one attempt.

        Never raises; when space runs out history is dropped.

        Args:
            system_prompt: System instructions (sent separately, but counted)
            tool_names: Names of the available tools
            user_message: The new user message
            history: Prior turns, oldest first
            attachments: Files sent with the new message

        Returns:
            BudgetedMessages with the current turn last
        """
        history = history or []
        attachments = attachments or []

        fixed = self.fixed_overhead(system_prompt, tool_names)
        current = estimate_tokens(user_message) + sum(
            estimate_attachment_tokens(a) for a in attachments
        )
        budget = self.context_ceiling - fixed - current
        used = 0

        # Newest first; stop at the first turn that does not fit
        fitting: list[dict] = []
        if budget > 0:
            for turn in reversed(history):
                text = self.render_turn(turn)
                tokens = estimate_tokens(text)
                if tokens > budget:
                    break
                budget -= tokens
                used += tokens
                fitting.append({"role": turn.role, "content": text})

        fitting.reverse()
        included = len(fitting)
        messages = list(fitting)

        if attachments:
            content = [a.to_part() for a in attachments]
            content.append({"type": "text", "text": user_message})
            messages.append({"role": "user", "content": content})
        else:
            messages.append({"role": "user", "content": user_message})

        dropped = len(history) - included
        if dropped:
            logger.debug(f"Dropped {dropped} of {len(history)} history turns to fit context")

        return BudgetedMessages(
            messages=messages,
            history_included=included,
            history_dropped=dropped,
            estimated_tokens=fixed - self.response_reserve + current + used,
        )
