import asyncio
from datetime import datetime, timedelta

import pytest
from langchain_core.messages import AIMessage

from miso_agent.agents.memory_summarizer import MemorySummarizer, strip_think
from miso_agent.memory.store import InMemoryStore
from miso_agent.memory.temp_memory import TempMemory, format_conversations
from miso_agent.models import Conversation, MemorySummarizerInput, MemorySummarizerOutput


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class RecordingSummarizer:
    def __init__(self):
        self.requests = []

    async def execute(self, request: MemorySummarizerInput) -> MemorySummarizerOutput:
        self.requests.append(request)
        return MemorySummarizerOutput(summary=f"summary #{len(self.requests)}")


def _conv(i: int) -> Conversation:
    return Conversation(time=datetime(2026, 1, 1, 9, i), user=f"question {i}", assistant=f"answer {i}")


@pytest.mark.asyncio
async def test_store_expires_entries():
    clock = FakeClock()
    store = InMemoryStore(clock=clock)
    await store.store("k", "v", timedelta(seconds=10))
    assert await store.load("k") == "v"
    clock.now += 10
    assert await store.load("k") is None
    assert await store.load("missing") is None


@pytest.mark.asyncio
async def test_store_zero_ttl_never_expires():
    clock = FakeClock()
    store = InMemoryStore(clock=clock)
    await store.store("k", "v", timedelta(0))
    clock.now += 10 ** 9
    assert await store.load("k") == "v"


@pytest.mark.asyncio
async def test_load_returns_newest_first():
    memory = TempMemory("chat-1", RecordingSummarizer(), InMemoryStore(), compact_threshold=10)
    for i in range(3):
        await memory.append(_conv(i))
    long_term, short_term = await memory.load()
    assert long_term == ""
    assert [c.user for c in short_term] == ["question 2", "question 1", "question 0"]


@pytest.mark.asyncio
async def test_append_compacts_oldest_half():
    summarizer = RecordingSummarizer()
    memory = TempMemory("chat-1", summarizer, InMemoryStore(), compact_threshold=4)
    for i in range(4):
        await memory.append(_conv(i))

    assert len(summarizer.requests) == 1
    recent = summarizer.requests[0].recent_conversation
    # the compacted pair is summarized newest first
    assert recent.index("question 1") < recent.index("question 0")
    assert summarizer.requests[0].long_term_memory == ""

    long_term, short_term = await memory.load()
    assert long_term == "summary #1"
    assert [c.user for c in short_term] == ["question 3", "question 2"]


@pytest.mark.asyncio
async def test_keys_are_isolated():
    store = InMemoryStore()
    a = TempMemory("a", RecordingSummarizer(), store)
    b = TempMemory("b", RecordingSummarizer(), store)
    await a.append(_conv(0))
    _, short_term = await b.load()
    assert short_term == []


def test_threshold_floor():
    memory = TempMemory("k", RecordingSummarizer(), InMemoryStore(), compact_threshold=1)
    assert memory.compact_threshold == 2
    assert memory.compact_count == 1


def test_format_conversations():
    text = format_conversations([_conv(5)])
    assert text == "2026-01-01 09:05:00\nUser: question 5\nAssistant: answer 5\n"


def test_strip_think():
    assert strip_think("<think>\nplanning...\n</think>\n\nThe summary.") == "The summary."


@pytest.mark.asyncio
async def test_summarizer_strips_reasoning(scripted_model, prompt_of):
    model = scripted_model(AIMessage(content="<think>hmm</think>User wants a refund."))
    out = await MemorySummarizer(model).execute(MemorySummarizerInput(
        long_term_memory="Prior summary.",
        recent_conversation="User: refund please",
    ))
    assert out.summary == "User wants a refund."
    prompt = prompt_of(model.calls[0])
    assert "User: refund please" in prompt
    assert "Prior summary." in prompt


class SlowStore(InMemoryStore):
    """Yields to the event loop on every read, widening read-modify-write races."""

    async def load(self, key):
        await asyncio.sleep(0.01)
        return await super().load(key)


@pytest.mark.asyncio
async def test_concurrent_appends_keep_every_conversation():
    memory = TempMemory("chat-1", RecordingSummarizer(), SlowStore(), compact_threshold=100)
    await asyncio.gather(*(memory.append(_conv(i)) for i in range(10)))

    _, short_term = await memory.load()
    assert len(short_term) == 10
    assert {c.user for c in short_term} == {f"question {i}" for i in range(10)}


@pytest.mark.asyncio
async def test_concurrent_appends_compact_once_per_threshold():
    summarizer = RecordingSummarizer()
    memory = TempMemory("chat-1", summarizer, SlowStore(), compact_threshold=4)
    await asyncio.gather(*(memory.append(_conv(i)) for i in range(4)))

    assert len(summarizer.requests) == 1
    long_term, short_term = await memory.load()
    assert long_term == "summary #1"
    assert len(short_term) == 2
