"""Click CLI entry point.

Usage:
    miso-agent extract materials.yaml
    miso-agent match rules.yaml --batch-size 5 --concurrency 4
    miso-agent match rules.yaml --sequential

Input files are YAML (or JSON) shaped like MaterialExtractInput /
RuleMatcherInput. Results are printed to stdout as JSON.
"""

from __future__ import annotations

import asyncio
import json

import click
import yaml

from miso_agent.errors import AgentError
from miso_agent.models import MaterialExtractInput, RuleMatcherInput
from miso_agent.utils.logging import get_logger, RED, RESET

log = get_logger()


def _read_input(path: str) -> dict:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path} must contain a mapping", param_hint="INPUT")
    return data


def _echo_json(model) -> None:
    click.echo(json.dumps(model.model_dump(), ensure_ascii=False, indent=2))


def _run_or_fail(coro):
    try:
        return asyncio.run(coro)
    except AgentError as e:
        log.error(f"{RED}✗ {e}{RESET}")
        log.debug("Failure detail", exc_info=e)
        raise click.ClickException(str(e)) from e


@click.group()
def cli() -> None:
    """Sequential LLM extraction and rule matching."""
    pass


@cli.command()
@click.argument("input_file", metavar="INPUT", type=click.Path(exists=True, dir_okay=False))
@click.option("--model", default=None, help="Override the configured chat model")
def extract(input_file: str, model: str | None) -> None:
    """Extract fields from the materials in INPUT."""
    request = MaterialExtractInput.model_validate(_read_input(input_file))
    out = _run_or_fail(_extract(request, model))
    _echo_json(out)


async def _extract(request: MaterialExtractInput, model: str | None):
    from miso_agent.agents.llm import build_chat_model
    from miso_agent.agents.material_extract import MaterialExtract

    extractor = MaterialExtract(build_chat_model(model))
    return await extractor.execute(request)


@cli.command()
@click.argument("input_file", metavar="INPUT", type=click.Path(exists=True, dir_okay=False))
@click.option("--model", default=None, help="Override the configured chat model")
@click.option("--batch-size", default=None, type=int, help="Rules per concurrent run (default from settings)")
@click.option("--concurrency", default=None, type=int, help="Concurrent runs (default from settings)")
@click.option("--ordered", is_flag=True, help="Keep verdicts in rule order instead of completion order")
@click.option("--sequential", is_flag=True, help="Check all rules in a single run")
def match(
    input_file: str,
    model: str | None,
    batch_size: int | None,
    concurrency: int | None,
    ordered: bool,
    sequential: bool,
) -> None:
    """Check the context in INPUT against each of its rules."""
    request = RuleMatcherInput.model_validate(_read_input(input_file))
    out = _run_or_fail(_match(request, model, batch_size, concurrency, ordered, sequential))
    _echo_json(out)


async def _match(
    request: RuleMatcherInput,
    model: str | None,
    batch_size: int | None,
    concurrency: int | None,
    ordered: bool,
    sequential: bool,
):
    from miso_agent.agents.llm import build_chat_model
    from miso_agent.agents.rule_matcher import RuleMatcher
    from miso_agent.config import settings
    from miso_agent.utils.pool import WorkerPool

    matcher = RuleMatcher(build_chat_model(model))
    if sequential:
        return await matcher.execute(request)
    pool = WorkerPool(concurrency or settings.max_concurrency)
    return await matcher.parallel_execute(request, batch_size, pool, ordered=ordered)
