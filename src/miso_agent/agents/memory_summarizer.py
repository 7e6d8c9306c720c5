"""Compacts recent conversation turns into a long-term memory summary."""

from __future__ import annotations

import re
import time

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser

from miso_agent.agents.prompting import AgentPrompts
from miso_agent.agents.tracing import build_callbacks
from miso_agent.models import MemorySummarizerInput, MemorySummarizerOutput
from miso_agent.utils.logging import get_logger, DIM, RESET

log = get_logger()

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)


def strip_think(text: str) -> str:
    """Drop <think>...</think> blocks emitted by reasoning models."""
    return _THINK_RE.sub("", text).strip()


class MemorySummarizer:
    name = "MemorySummarizer"

    def __init__(self, model: BaseChatModel, prompts: AgentPrompts | None = None):
        prompts = prompts or AgentPrompts.load("memory_summarizer")
        self.chain = prompts.template() | model | StrOutputParser()

    async def execute(self, request: MemorySummarizerInput) -> MemorySummarizerOutput:
        start = time.monotonic()
        config = {}
        callbacks = build_callbacks(self.name)
        if callbacks:
            config["callbacks"] = callbacks

        text = await self.chain.ainvoke(
            {
                "recent_conversation": request.recent_conversation,
                "long_term_memory": request.long_term_memory,
            },
            config=config,
        )
        log.info(f"  {DIM}{self.name} took {time.monotonic() - start:.1f}s{RESET}")
        return MemorySummarizerOutput(summary=strip_think(text))
