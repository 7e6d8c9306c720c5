"""Chat model construction from settings."""

from __future__ import annotations

from langchain_openai import ChatOpenAI

from miso_agent.config import settings


def build_chat_model(model: str | None = None, temperature: float | None = None) -> ChatOpenAI:
    """Create an OpenAI-compatible chat model (DashScope, OpenRouter, Ollama, ...)."""
    return ChatOpenAI(
        model=model or settings.llm_model,
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        temperature=settings.llm_temperature if temperature is None else temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout_s,
    )
