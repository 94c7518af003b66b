"""Shared pydantic plumbing for wire-facing models."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from crewboard.timeutil import ensure_utc, to_iso

# Aware UTC instant; serialized to JSON as ``2024-04-01T02:00:00.000Z``.
UtcDatetime = Annotated[
    datetime,
    AfterValidator(ensure_utc),
    PlainSerializer(to_iso, return_type=str, when_used="json"),
]


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python; either accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
