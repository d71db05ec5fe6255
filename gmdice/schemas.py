"""Pydantic request and response bodies for the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from gmdice.config import settings
from gmdice.results import StructuredResult


class RollRequest(BaseModel):
    spec: str = Field(
        min_length=1,
        description=(
            "A die-roll specification such as 'Attack=d20+7|c' or '40% hit'. "
            "See GET /syntax for the full grammar."
        ),
    )

    @field_validator("spec")
    @classmethod
    def _check_length(cls, value: str) -> str:
        if len(value) > settings.max_spec_length:
            raise ValueError(f"die-roll spec is longer than {settings.max_spec_length} characters")
        return value


class SecretRollRequest(RollRequest):
    notice: str = Field(
        default="secret roll",
        description="Why the roll is secret; shown to the requester in place of the result.",
    )


class RollResponse(BaseModel):
    title: str = ""
    results: list[StructuredResult]


class SingleRollResponse(BaseModel):
    title: str = ""
    result: StructuredResult


class SyntaxResponse(BaseModel):
    syntax: str


class PresetOut(BaseModel):
    name: str
    description: str = ""
    spec: str


class PresetListResponse(BaseModel):
    presets: list[PresetOut]
    comment: str = ""
