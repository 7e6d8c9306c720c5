"""Pydantic models for agent inputs, outputs and tool payloads."""

from __future__ import annotations

import json
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

REASON_SUFFIX = "Reason"


class Material(BaseModel):
    """One document to read during extraction."""

    model_config = ConfigDict(frozen=True)

    content: str
    source: str = ""


class Rule(BaseModel):
    """One policy rule to check during matching."""

    model_config = ConfigDict(frozen=True)

    name: str
    content: str


class FieldSpec(BaseModel):
    """A named output slot the model is asked to fill."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    example: str = ""


def reason_field(name: str) -> str:
    return name + REASON_SUFFIX


def is_reason_field(name: str) -> bool:
    return name.endswith(REASON_SUFFIX)


def as_text(value) -> str:
    """Tool argument as a string: None is "", strings pass, anything else is JSON."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


class MaterialExtractInput(BaseModel):
    context: str = ""
    materials: list[Material] = Field(default_factory=list)
    fields: list[FieldSpec] = Field(default_factory=list)


class MaterialExtractOutput(BaseModel):
    # Exactly the requested field names; "" when the materials never resolved one
    extracted_info: dict[str, str] = Field(default_factory=dict)
    # Justification per requested field, as recorded alongside its value
    reasons: dict[str, str] = Field(default_factory=dict)


class RuleMatcherInput(BaseModel):
    # How the model should decide whether the target matches a rule
    task_instruction: str = ""
    # Information about the target, e.g. the company under background check
    context: str = ""
    rules: list[Rule] = Field(default_factory=list)


class RuleResult(BaseModel):
    """Verdict recorded by the model for a single rule."""

    name: str = Field(default="", description="current rule name")
    matched: bool = Field(description="Whether current rule matches")
    reason: str = Field(default="", description="How you make your decision")

    @field_validator("name", "reason", mode="before")
    @classmethod
    def _stringify(cls, value):
        return as_text(value)


class RuleMatcherOutput(BaseModel):
    rules: list[RuleResult] = Field(default_factory=list)


class FillExtractedInfo(BaseModel):
    """Call this tool to fill in the extracted information."""

    extracted_info: dict[str, str] = Field(
        description="Extracted information as a JSON object, both keys and values are strings",
    )

    @field_validator("extracted_info", mode="before")
    @classmethod
    def _stringify_values(cls, value):
        # Models routinely answer numbers or booleans for string fields
        if not isinstance(value, dict):
            return value
        return {str(k): as_text(v) for k, v in value.items()}


class Conversation(BaseModel):
    time: datetime
    user: str
    assistant: str


class MemorySummarizerInput(BaseModel):
    long_term_memory: str = ""
    recent_conversation: str = ""


class MemorySummarizerOutput(BaseModel):
    summary: str
