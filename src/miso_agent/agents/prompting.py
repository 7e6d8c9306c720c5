"""Prompt loading and rendering shared by all agents.

Templates live in `prompts/<agent>_<version>.yaml` with a `system` and a
`user` entry, written as LangChain f-string templates.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml
from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel

from miso_agent.config import settings

_PROMPTS_DIR = Path(__file__).parent / "prompts"


class AgentPrompts(BaseModel):
    """System and user message templates for one agent."""

    system: str
    user: str

    @classmethod
    def load(cls, agent: str, version: str | None = None) -> AgentPrompts:
        return _load_prompts(agent, version or settings.prompt_version)

    def template(self) -> ChatPromptTemplate:
        return ChatPromptTemplate.from_messages([
            ("system", self.system),
            ("human", self.user),
        ])


@lru_cache(maxsize=None)
def _load_prompts(agent: str, version: str) -> AgentPrompts:
    path = _PROMPTS_DIR / f"{agent}_{version}.yaml"
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return AgentPrompts(system=data["system"], user=data["user"])


def render(template: ChatPromptTemplate, **variables) -> list[BaseMessage]:
    """Render the template and trim surrounding whitespace from every message."""
    messages = template.format_messages(**variables)
    return [m.model_copy(update={"content": m.content.strip()}) for m in messages]


def indent_lines(text: str, prefix: str) -> str:
    """Prefix every line after the first, so multi-line text stays inside its list item."""
    lines = text.split("\n")
    return "\n".join([lines[0]] + [prefix + line for line in lines[1:]])
