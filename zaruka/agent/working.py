"""
Working Phrases
===============

Short "still working on it" messages a chat front-end can show when a
reply takes a while. The phrases are generated by the model itself, once
per language, and kept in an injected TTLCache until they expire.

Example:
    pool = WorkingPhrasePool.from_config(assistant, get_config())

    pool.ensure("German")        # fire-and-forget generation
    ...
    await reply(pool.pick("German"))
"""

import asyncio
import random
from typing import TYPE_CHECKING

from zaruka.utils.cache import TTLCache
from zaruka.utils.config import AppConfig
from zaruka.utils.logger import Logger

if TYPE_CHECKING:
    from zaruka.agent.core import Assistant

logger = Logger("WorkingPhrases")

FALLBACK_PHRASE = "⏳…"
MIN_PHRASES = 5

PHRASE_PROMPT = (
    "[SYSTEM: not a user message, no greeting, no conversation]\n"
    "Generate 20 short (2-5 words each) status messages in {language} meaning "
    "\"I'm busy working on your request, please wait\". "
    "The tone: playful, warm, varied (e.g. short phrases like \"working on it…\", "
    "\"one moment…\", \"almost there…\" but in {language}). "
    "Each starts with one emoji. All different. One per line, no numbering, "
    "no quotes, ONLY the messages."
)


def parse_phrases(text: str) -> list[str]:
    """Keep non-trivial lines shorter than 60 characters."""
    lines = (line.strip() for line in text.split("\n"))
    return [line for line in lines if 1 < len(line) < 60]


class WorkingPhrasePool:
    """
    Per-language pool of generated phrases.

    Generation runs at most once at a time per language; a failed or too
    short generation is simply retried on the next ensure().
    """

    def __init__(self, assistant: "Assistant", cache: TTLCache, rng: random.Random | None = None):
        self.assistant = assistant
        self.cache = cache
        self._rng = rng or random.Random()
        self._pending: dict[str, asyncio.Task] = {}

    @classmethod
    def from_config(cls, assistant: "Assistant", config: AppConfig) -> "WorkingPhrasePool":
        """Pool whose phrases live for ZARUKA_WORKING_TTL_HOURS."""
        return cls(assistant, TTLCache(ttl_seconds=config.agent.working_ttl_hours * 3600))

    def pick(self, language: str) -> str:
        """A random cached phrase, or a neutral hourglass."""
        phrases = self.cache.get(language)
        if not phrases:
            return FALLBACK_PHRASE
        return self._rng.choice(phrases)

    def ensure(self, language: str) -> asyncio.Task | None:
        """
        Start generating phrases for a language unless cached or pending.

        Must be called from a running event loop.

        Returns:
            The generation task, or None if nothing had to be started
        """
        if language in self.cache or language in self._pending:
            return None

        task = asyncio.create_task(self._generate(language))
        self._pending[language] = task
        task.add_done_callback(lambda _: self._pending.pop(language, None))
        return task

    async def _generate(self, language: str) -> None:
        try:
            result = await self.assistant.process(PHRASE_PROMPT.format(language=language))
        except Exception as e:
            logger.warning(f"Working phrase generation failed for {language}: {e}")
            return

        phrases = parse_phrases(result.text)
        if len(phrases) < MIN_PHRASES:
            logger.debug(f"Only {len(phrases)} phrases generated for {language}, not caching")
            return

        self.cache.set(language, phrases)
        logger.info(f"Generated {len(phrases)} working messages for {language}")
