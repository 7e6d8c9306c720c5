"""Field extraction across a list of materials.

The model reads one material per turn and reports what it found through the
`fill_extracted_info` tool. Every requested field gets a companion
`<name>Reason` field so each value comes with its justification. Values
accumulate across turns: once a field is filled, later turns can refine it
but never blank it out.
"""

from __future__ import annotations

import json
from typing import Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.tools import BaseTool, tool
from pydantic import ValidationError

from miso_agent.agents.engine import AccumulationTask, SequentialEngine
from miso_agent.agents.prompting import AgentPrompts, indent_lines, render
from miso_agent.agents.turns import EmptyTurn, ExtractedTurn, TurnResult
from miso_agent.config import settings
from miso_agent.errors import InvalidInputError
from miso_agent.models import (
    FieldSpec,
    FillExtractedInfo,
    Material,
    MaterialExtractInput,
    MaterialExtractOutput,
    is_reason_field,
    reason_field,
)
from miso_agent.utils.logging import get_logger, YELLOW, RESET

log = get_logger()

TOOL_NAME = "fill_extracted_info"


@tool(TOOL_NAME, args_schema=FillExtractedInfo)
def fill_extracted_info(extracted_info: dict[str, str]) -> dict[str, str]:
    """Call this tool to fill in the extracted information."""
    return extracted_info


def with_reason_fields(fields: Sequence[FieldSpec]) -> list[FieldSpec]:
    """Reason companions first, then the requested fields."""
    reasons = [
        FieldSpec(name=reason_field(f.name), description=f"Based on what and how you extract field {f.name}")
        for f in fields
    ]
    return reasons + list(fields)


def format_fields(fields: Sequence[FieldSpec]) -> str:
    if not fields:
        return "No specific fields specified. Extract all relevant information."
    lines = []
    for i, f in enumerate(fields, start=1):
        if f.example:
            lines.append(f"{i}. {f.name}: {f.description} (E.g., {indent_lines(f.example, ' ')})")
        else:
            lines.append(f"{i}. {f.name}: {f.description}")
    return "\n".join(lines)


def format_material(index: int, material: Material) -> str:
    return f"Material {index + 1} (Source: {material.source}):\n{material.content}"


def merge_extracted(accumulated: dict[str, str], turn: TurnResult) -> dict[str, str]:
    """Fold one turn's extracted values into the accumulated map.

    1. Non-empty values of non-reason keys are written and marked touched.
    2. Each touched key takes its `<key>Reason` from the same turn, even if empty.
    Nothing is ever removed, and no value is overwritten with "".
    """
    if not isinstance(turn, ExtractedTurn) or not turn.values:
        return accumulated

    merged = dict(accumulated)
    touched = []
    for k, v in turn.values.items():
        if is_reason_field(k) or not v:
            continue
        merged[k] = v
        touched.append(k)

    for k in touched:
        rk = reason_field(k)
        merged[rk] = turn.values.get(rk, "")
    return merged


class MaterialExtractTask(AccumulationTask[Material, dict, MaterialExtractOutput]):
    name = "MaterialExtract"

    def __init__(self, prompts: AgentPrompts, language: str):
        self.template = prompts.template()
        self.language = language

    @property
    def tool(self) -> BaseTool:
        return fill_extracted_info

    def initial_state(self, request: MaterialExtractInput) -> dict:
        return {}

    def compose(
        self,
        cursor: int,
        units: Sequence[Material],
        request: MaterialExtractInput,
        accumulated: dict,
        now: str,
    ) -> list[BaseMessage] | None:
        if cursor >= len(units):
            return None
        context = f"\n{request.context}" if request.context else ""
        return render(
            self.template,
            context=context,
            language=self.language,
            now=now,
            material=format_material(cursor, units[cursor]),
            fields=format_fields(with_reason_fields(request.fields)),
            extracted_info=json.dumps(accumulated, ensure_ascii=False),
        )

    def parse(self, payload: dict | None) -> ExtractedTurn | EmptyTurn:
        if payload is None:
            return EmptyTurn(note=f"{TOOL_NAME} not called")
        try:
            args = FillExtractedInfo.model_validate(payload)
        except ValidationError as e:
            log.warning(f"  {YELLOW}Invalid {TOOL_NAME} payload: {e.error_count()} errors{RESET}")
            return EmptyTurn(note=f"invalid {TOOL_NAME} payload")
        return ExtractedTurn(values=args.extracted_info)

    def merge(self, accumulated: dict, turn: TurnResult, unit: Material) -> dict:
        return merge_extracted(accumulated, turn)

    def finalize(self, accumulated: dict, request: MaterialExtractInput) -> MaterialExtractOutput:
        if request.fields:
            names = [f.name for f in request.fields]
        else:
            names = [k for k in accumulated if not is_reason_field(k)]
        return MaterialExtractOutput(
            extracted_info={name: accumulated.get(name, "") for name in names},
            reasons={name: accumulated.get(reason_field(name), "") for name in names},
        )

    def describe_unit(self, unit: Material) -> str:
        return unit.source or "(no source)"


class MaterialExtract:
    """Extract the requested fields from a list of materials, one material per turn.

    Usage:
        extractor = MaterialExtract(build_chat_model())
        out = await extractor.execute(MaterialExtractInput(materials=[...], fields=[...]))
        out.extracted_info["amount"]
    """

    def __init__(
        self,
        model: BaseChatModel,
        prompts: AgentPrompts | None = None,
        language: str | None = None,
    ):
        task = MaterialExtractTask(
            prompts or AgentPrompts.load("material_extract"),
            language or settings.language,
        )
        self.engine = SequentialEngine(model, task)

    async def execute(self, request: MaterialExtractInput) -> MaterialExtractOutput:
        """Run extraction over every material.

        The returned `extracted_info` always holds every requested field name,
        with "" for fields no material resolved.
        """
        for f in request.fields:
            if is_reason_field(f.name):
                raise InvalidInputError(
                    f"field name {f.name!r} ends with the reserved suffix 'Reason'"
                )
        return await self.engine.run(request.materials, request)
