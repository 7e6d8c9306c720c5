"""LangGraph state schema for the sequential accumulation engine."""

from __future__ import annotations

from typing import Any, TypedDict

from langchain_core.messages import BaseMessage

from miso_agent.agents.turns import TurnResult


class EngineState(TypedDict):
    """State threaded through one engine run.

    Every node returns the keys it changes; nothing is mutated in place, so
    a single turn can be replayed from any recorded state.
    """

    # Caller input for the whole run (instruction, context, fields, ...)
    request: Any
    units: list
    # Index of the unit the next turn will read
    cursor: int
    now: str
    # Prompt for the current turn; None once the units are exhausted
    prompt: list[BaseMessage] | None
    # Messages the model returned for the current turn
    response: list[BaseMessage]
    # Parsed result of the current turn; None between turns
    turn: TurnResult | None
    accumulated: Any
    output: Any
