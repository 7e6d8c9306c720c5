"""Conversation memory with a short-term log and a summarized long-term memory.

New conversations are appended to the short-term log. Once the log reaches
`compact_threshold` entries, the oldest half is summarized together with the
existing long-term memory, and the summary replaces the long-term memory.
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import TypeAdapter

from miso_agent.agents.memory_summarizer import MemorySummarizer
from miso_agent.config import settings
from miso_agent.memory.store import KeyValueStore
from miso_agent.models import Conversation, MemorySummarizerInput
from miso_agent.utils.logging import get_logger, DIM, RESET

log = get_logger()

_SHORT_TERM_KEY = "miso-agent:memory:short-term:{}"
_LONG_TERM_KEY = "miso-agent:memory:long-term:{}"
_LOCK_KEY = "miso-agent:memory:memory-store:{}"

_conversations = TypeAdapter(list[Conversation])


def format_conversations(conversations: list[Conversation]) -> str:
    blocks = []
    for c in conversations:
        blocks.append(
            f"{c.time.strftime('%Y-%m-%d %H:%M:%S')}\n"
            f"User: {c.user}\n"
            f"Assistant: {c.assistant}\n"
        )
    return "\n".join(blocks)


class TempMemory:
    """Memory for one conversation key.

    By default compaction triggers at 4 conversations (2 are summarized) and
    both memories expire after 30 days without writes.
    """

    def __init__(
        self,
        key: str,
        summarizer: MemorySummarizer,
        store: KeyValueStore,
        compact_threshold: int | None = None,
        long_term_ttl: timedelta | None = None,
        short_term_ttl: timedelta | None = None,
    ):
        if compact_threshold is None:
            compact_threshold = settings.memory_compact_threshold
        compact_threshold = max(compact_threshold, 2)
        default_ttl = timedelta(days=settings.memory_ttl_days)

        self.key = key
        self.summarizer = summarizer
        self.store = store
        self.compact_threshold = compact_threshold
        self.compact_count = compact_threshold // 2
        self.long_term_ttl = long_term_ttl or default_ttl
        self.short_term_ttl = short_term_ttl or default_ttl

    async def _load_short_term(self) -> list[Conversation]:
        raw = await self.store.load(_SHORT_TERM_KEY.format(self.key))
        if not raw:
            return []
        return _conversations.validate_json(raw)

    async def _load_long_term(self) -> str:
        return await self.store.load(_LONG_TERM_KEY.format(self.key)) or ""

    async def load(self) -> tuple[str, list[Conversation]]:
        """(long-term summary, short-term conversations newest first)."""
        async with self.store.lock(_LOCK_KEY.format(self.key)):
            short_term = await self._load_short_term()
            long_term = await self._load_long_term()
        short_term.reverse()
        return long_term, short_term

    async def load_formatted(self) -> tuple[str, str]:
        long_term, short_term = await self.load()
        return long_term, format_conversations(short_term)

    async def append(self, conversation: Conversation) -> None:
        async with self.store.lock(_LOCK_KEY.format(self.key)):
            short_term = await self._load_short_term()
            long_term = await self._load_long_term()

            short_term.append(conversation)
            if len(short_term) >= self.compact_threshold:
                trimmed = short_term[:self.compact_count]
                short_term = short_term[self.compact_count:]
                trimmed.reverse()

                log.info(f"  {DIM}Compacting {len(trimmed)} conversations for {self.key}{RESET}")
                summarized = await self.summarizer.execute(MemorySummarizerInput(
                    long_term_memory=long_term,
                    recent_conversation=format_conversations(trimmed),
                ))
                await self.store.store(
                    _LONG_TERM_KEY.format(self.key), summarized.summary, self.long_term_ttl,
                )

            await self.store.store(
                _SHORT_TERM_KEY.format(self.key),
                _conversations.dump_json(short_term).decode(),
                self.short_term_ttl,
            )
