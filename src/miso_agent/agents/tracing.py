"""Run tracing: log-based node tracing plus optional Langfuse Cloud integration."""

from __future__ import annotations

import os
from typing import Any

from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.outputs import LLMResult

from miso_agent.config import settings
from miso_agent.utils.logging import get_logger, YELLOW, DIM, RESET

log = get_logger()


class TraceCallbackHandler(BaseCallbackHandler):
    """Logs every graph node start and the token usage of every model call."""

    def __init__(self, name: str, log_inputs: bool = False):
        self.name = name
        self.log_inputs = log_inputs

    def on_chain_start(self, serialized: dict[str, Any] | None, inputs: Any, **kwargs: Any) -> None:
        node = kwargs.get("name") or (serialized or {}).get("name") or "?"
        if self.log_inputs:
            log.info(f"  {DIM}Graph exec {self.name} start, node: {node}, input: {inputs}{RESET}")
        else:
            log.info(f"  {DIM}Graph exec {self.name} start, node: {node}{RESET}")

    def on_chat_model_start(self, serialized: dict[str, Any] | None, messages: Any, **kwargs: Any) -> None:
        model = kwargs.get("name") or (serialized or {}).get("name") or "chat model"
        log.info(f"  {DIM}Graph exec {self.name} calling {model}{RESET}")

    def on_llm_end(self, response: LLMResult, **kwargs: Any) -> None:
        usage = token_usage(response)
        if usage is not None:
            log.info(
                f"  {DIM}Graph exec {self.name} usage: {usage[0]} (input), {usage[1]} (output){RESET}"
            )


def token_usage(response: LLMResult) -> tuple[int, int] | None:
    """(input, output) token counts reported by the model, if any."""
    for generations in response.generations:
        for gen in generations:
            usage = getattr(getattr(gen, "message", None), "usage_metadata", None)
            if usage:
                return usage.get("input_tokens", 0), usage.get("output_tokens", 0)
    token_counts = (response.llm_output or {}).get("token_usage")
    if token_counts:
        return token_counts.get("prompt_tokens", 0), token_counts.get("completion_tokens", 0)
    return None


def get_langfuse_handler():
    """Initialize Langfuse callback handler for LangChain tracing.

    Returns None if Langfuse is not configured or initialization fails.
    Runs continue without tracing in either case.
    """
    if not settings.langfuse_public_key or not settings.langfuse_secret_key:
        return None

    try:
        from langfuse.langchain import CallbackHandler

        # Langfuse v3 reads config from env vars
        os.environ.setdefault("LANGFUSE_PUBLIC_KEY", settings.langfuse_public_key)
        os.environ.setdefault("LANGFUSE_SECRET_KEY", settings.langfuse_secret_key)
        os.environ.setdefault("LANGFUSE_HOST", settings.langfuse_base_url)

        handler = CallbackHandler()
        log.info(f"  {DIM}Langfuse tracing enabled{RESET}")
        return handler
    except Exception as e:
        log.warning(f"  {YELLOW}Langfuse init failed: {e}{RESET}")
        return None


def build_callbacks(name: str) -> list[BaseCallbackHandler]:
    """Callbacks to attach to one run of the graph called `name`."""
    callbacks: list[BaseCallbackHandler] = []
    if settings.log_on_start:
        callbacks.append(TraceCallbackHandler(name, settings.log_inputs))
    langfuse_handler = get_langfuse_handler()
    if langfuse_handler is not None:
        callbacks.append(langfuse_handler)
    return callbacks
