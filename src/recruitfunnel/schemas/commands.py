"""Closed set of shortlist and funnel commands."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .records import ApplicationStatus


class GenerateShortlist(BaseModel):
    action: Literal["generate"] = "generate"

    model_config = ConfigDict(extra="forbid")


class ManualOverride(BaseModel):
    action: Literal["manual_override"] = "manual_override"
    candidate_ids: list[str] = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")


class BulkTransition(BaseModel):
    action: Literal["bulk_transition"] = "bulk_transition"
    application_ids: list[str] = Field(min_length=1)
    target_status: ApplicationStatus

    model_config = ConfigDict(extra="forbid")


FunnelCommand = Annotated[
    Union[GenerateShortlist, ManualOverride, BulkTransition],
    Field(discriminator="action"),
]

_COMMAND_ADAPTER: TypeAdapter[FunnelCommand] = TypeAdapter(FunnelCommand)


def parse_command(payload: Any) -> GenerateShortlist | ManualOverride | BulkTransition:
    """Validate a raw request body into one of the command variants."""
    return _COMMAND_ADAPTER.validate_python(payload)


__all__ = [
    "BulkTransition",
    "FunnelCommand",
    "GenerateShortlist",
    "ManualOverride",
    "parse_command",
]
