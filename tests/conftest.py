import asyncio
import itertools
from typing import Any, Callable, Optional

import pytest
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from pydantic import Field

_call_ids = itertools.count(1)


class ScriptedChatModel(BaseChatModel):
    """Chat model whose replies come from a Python callable.

    `responder(messages)` returns the reply message, or raises to simulate a
    failing model call. `delay(messages)` optionally returns seconds to wait
    before answering.
    """

    responder: Callable[[list[BaseMessage]], BaseMessage]
    delay: Optional[Callable[[list[BaseMessage]], float]] = None
    supports_tools: bool = True
    calls: list = Field(default_factory=list)
    bound_tools: list = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def bind_tools(self, tools, **kwargs: Any):
        if not self.supports_tools:
            raise NotImplementedError("tool calling is not supported")
        self.bound_tools = [t.name for t in tools]
        return self

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        self.calls.append(list(messages))
        reply = self.responder(list(messages))
        return ChatResult(generations=[ChatGeneration(message=reply)])

    async def _agenerate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        self.calls.append(list(messages))
        if self.delay is not None:
            await asyncio.sleep(self.delay(list(messages)))
        reply = self.responder(list(messages))
        return ChatResult(generations=[ChatGeneration(message=reply)])


def tool_reply(name: str, args: dict) -> AIMessage:
    return AIMessage(
        content="",
        tool_calls=[{"name": name, "args": args, "id": f"call_{next(_call_ids)}"}],
    )


def human_text(messages: list[BaseMessage]) -> str:
    return next(m.content for m in messages if isinstance(m, HumanMessage))


@pytest.fixture
def scripted_model():
    """Build a ScriptedChatModel replaying `replies` in order (exceptions are raised)."""

    def _make(*replies, **kwargs) -> ScriptedChatModel:
        queue = list(replies)

        def _respond(messages):
            reply = queue.pop(0)
            if isinstance(reply, BaseException):
                raise reply
            return reply

        return ScriptedChatModel(responder=_respond, **kwargs)

    return _make


@pytest.fixture
def responder_model():
    """Build a ScriptedChatModel from a responder callable."""

    def _make(responder, **kwargs) -> ScriptedChatModel:
        return ScriptedChatModel(responder=responder, **kwargs)

    return _make


@pytest.fixture
def reply():
    return tool_reply


@pytest.fixture
def prompt_of():
    return human_text
