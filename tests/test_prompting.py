import re

from langchain_core.messages import HumanMessage, SystemMessage

from miso_agent.agents.prompting import AgentPrompts, indent_lines, render
from miso_agent.utils.clock import now_text


def test_bundled_prompts_load():
    for agent in ("material_extract", "rule_matcher", "memory_summarizer"):
        prompts = AgentPrompts.load(agent, "v1")
        assert prompts.system.strip()
        assert prompts.user.strip()


def test_render_trims_and_unescapes_braces():
    prompts = AgentPrompts.load("material_extract", "v1")
    system, user = render(
        prompts.template(),
        context="",
        language="English",
        now="2026-01-01 00:00:00",
        material="Material 1 (Source: doc1):\n{not a variable}",
        fields="1. amount: total",
        extracted_info="{}",
    )
    assert isinstance(system, SystemMessage)
    assert isinstance(user, HumanMessage)
    assert system.content == system.content.strip()
    assert '{"field1": "value1", "field2": "value2"}' in system.content
    assert "Current Time: 2026-01-01 00:00:00" in system.content
    assert "{not a variable}" in user.content


def test_custom_prompts_override():
    prompts = AgentPrompts(system="Be brief in {language}.", user="  {rule}  ")
    system, user = render(prompts.template(), language="French", rule="Rule Name: r1")
    assert system.content == "Be brief in French."
    assert user.content == "Rule Name: r1"


def test_indent_lines():
    assert indent_lines("a\nb\nc", " ") == "a\n b\n c"
    assert indent_lines("single", " ") == "single"


def test_now_text_format():
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", now_text(5.5))
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", now_text(0))
