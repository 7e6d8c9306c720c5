"""Rule matching: decide, rule by rule, whether each rule matches the context.

The model checks one rule per turn and records its verdict through the
`record_rule_match` tool. Verdicts are appended in processing order. Large
rule sets can be split across concurrent runs with `parallel_execute`.
"""

from __future__ import annotations

from typing import Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.tools import BaseTool, tool
from pydantic import ValidationError

from miso_agent.agents.batch import fan_out
from miso_agent.agents.engine import AccumulationTask, SequentialEngine
from miso_agent.agents.prompting import AgentPrompts, render
from miso_agent.agents.turns import EmptyTurn, TurnResult, VerdictTurn
from miso_agent.config import settings
from miso_agent.models import Rule, RuleMatcherInput, RuleMatcherOutput, RuleResult
from miso_agent.utils.logging import get_logger, BOLD, YELLOW, RESET
from miso_agent.utils.pool import WorkerPool

log = get_logger()

TOOL_NAME = "record_rule_match"


@tool(TOOL_NAME, args_schema=RuleResult)
def record_rule_match(name: str, matched: bool, reason: str) -> dict:
    """Call this tool to record whether the current rule matched and why."""
    return {"name": name, "matched": matched, "reason": reason}


def format_rule(rule: Rule) -> str:
    return f"Rule Name: {rule.name}\nRule Content: {rule.content}"


def merge_verdicts(verdicts: list[RuleResult], turn: TurnResult, rule: Rule) -> list[RuleResult]:
    """Append the turn's verdict, if it has one. Never dedupes or reorders."""
    if not isinstance(turn, VerdictTurn):
        return verdicts
    verdict = turn.verdict
    if not verdict.name.strip():
        verdict = verdict.model_copy(update={"name": rule.name})
    return verdicts + [verdict]


class RuleMatcherTask(AccumulationTask[Rule, list, RuleMatcherOutput]):
    name = "RuleMatcher"

    def __init__(self, prompts: AgentPrompts, language: str):
        self.template = prompts.template()
        self.language = language

    @property
    def tool(self) -> BaseTool:
        return record_rule_match

    def initial_state(self, request: RuleMatcherInput) -> list:
        return []

    def compose(
        self,
        cursor: int,
        units: Sequence[Rule],
        request: RuleMatcherInput,
        accumulated: list,
        now: str,
    ) -> list[BaseMessage] | None:
        if cursor >= len(units):
            return None
        return render(
            self.template,
            task_instruction=request.task_instruction,
            language=self.language,
            now=now,
            rule=format_rule(units[cursor]),
            context=request.context,
        )

    def parse(self, payload: dict | None) -> VerdictTurn | EmptyTurn:
        if payload is None:
            return EmptyTurn(note=f"{TOOL_NAME} not called")
        try:
            verdict = RuleResult.model_validate(payload)
        except ValidationError as e:
            log.warning(f"  {YELLOW}Invalid {TOOL_NAME} payload: {e.error_count()} errors{RESET}")
            return EmptyTurn(note=f"invalid {TOOL_NAME} payload")
        return VerdictTurn(verdict=verdict)

    def merge(self, accumulated: list, turn: TurnResult, unit: Rule) -> list:
        return merge_verdicts(accumulated, turn, unit)

    def finalize(self, accumulated: list, request: RuleMatcherInput) -> RuleMatcherOutput:
        return RuleMatcherOutput(rules=list(accumulated))

    def describe_unit(self, unit: Rule) -> str:
        return unit.name


class RuleMatcher:
    """Check a context against a list of rules.

    Usage:
        matcher = RuleMatcher(build_chat_model())
        out = await matcher.execute(RuleMatcherInput(context="...", rules=[...]))
        out = await matcher.parallel_execute(request, batch_size=5, pool=WorkerPool(4))
    """

    def __init__(
        self,
        model: BaseChatModel,
        prompts: AgentPrompts | None = None,
        language: str | None = None,
    ):
        task = RuleMatcherTask(
            prompts or AgentPrompts.load("rule_matcher"),
            language or settings.language,
        )
        self.engine = SequentialEngine(model, task)

    async def execute(self, request: RuleMatcherInput) -> RuleMatcherOutput:
        """Check every rule in one sequential run. Prefer `parallel_execute` for many rules."""
        return await self.engine.run(request.rules, request)

    async def parallel_execute(
        self,
        request: RuleMatcherInput,
        batch_size: int | None = None,
        pool: WorkerPool | None = None,
        ordered: bool = False,
    ) -> RuleMatcherOutput:
        """Split the rules into batches and check each batch in its own concurrent run.

        Verdicts are concatenated in batch completion order, so the output
        order may differ from the rule order; pass `ordered=True` to merge by
        batch position instead. If any batch fails, its exception is raised
        and no verdicts are returned.
        """
        if batch_size is None:
            batch_size = settings.batch_size
        if pool is None:
            pool = WorkerPool(settings.max_concurrency)

        async def _run(sub: list[Rule]) -> RuleMatcherOutput:
            return await self.execute(request.model_copy(update={"rules": sub}))

        log.info(f"{BOLD}RuleMatcher{RESET} — parallel over {len(request.rules)} rules")
        finished = await fan_out(request.rules, batch_size, pool, _run)
        if ordered:
            finished = sorted(finished, key=lambda item: item[0])

        merged: list[RuleResult] = []
        for _, out in finished:
            merged.extend(out.rules)
        return RuleMatcherOutput(rules=merged)
