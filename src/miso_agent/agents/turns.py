"""Per-turn results and the reader that pulls them out of model messages.

A turn either produced something (`ExtractedTurn`, `VerdictTurn`) or it did
not (`EmptyTurn`). Missing or malformed tool output is never an error: it is
logged and reported as an EmptyTurn so the run can move on.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Sequence, Union

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
from langchain_core.utils.json import parse_json_markdown
from pydantic import BaseModel, Field

from miso_agent.models import RuleResult
from miso_agent.utils.logging import get_logger, DIM, YELLOW, RESET

log = get_logger()


class ExtractedTurn(BaseModel):
    kind: Literal["extracted"] = "extracted"
    values: dict[str, str] = Field(default_factory=dict)


class VerdictTurn(BaseModel):
    kind: Literal["verdict"] = "verdict"
    verdict: RuleResult


class EmptyTurn(BaseModel):
    kind: Literal["empty"] = "empty"
    note: str = ""


TurnResult = Annotated[
    Union[ExtractedTurn, VerdictTurn, EmptyTurn],
    Field(discriminator="kind"),
]


def _tool_payloads(messages: Sequence[BaseMessage]):
    """Yield (tool name, raw payload) for every tool invocation in the turn."""
    for m in messages:
        if m is None:
            continue
        if isinstance(m, AIMessage):
            for call in m.tool_calls:
                yield call["name"], call["args"]
            for call in m.invalid_tool_calls:
                yield call.get("name"), call.get("args")
        elif isinstance(m, ToolMessage):
            yield m.name, m.content


def _decode(raw: Any) -> dict:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        decoded = parse_json_markdown(raw)
        if isinstance(decoded, dict):
            return decoded
        raise ValueError(f"expected a JSON object, got {type(decoded).__name__}")
    raise ValueError(f"unsupported payload type {type(raw).__name__}")


def read_tool_payload(messages: Sequence[BaseMessage], tool_name: str) -> dict | None:
    """Find the payload of `tool_name` among one turn's messages.

    Returns None when the tool was not invoked, or when its payload is not a
    JSON object (logged as a warning).
    """
    for name, raw in _tool_payloads(messages):
        if name != tool_name:
            continue
        try:
            payload = _decode(raw)
        except (ValueError, json.JSONDecodeError) as e:
            log.warning(f"  {YELLOW}Failed to parse {tool_name} output: {e}{RESET}")
            return None
        log.info(f"  {DIM}Parsed {tool_name} output: {payload}{RESET}")
        return payload
    log.info(f"  {DIM}{tool_name} was not called this turn{RESET}")
    return None
