"""Staff members: one lane per person on the weekly timeline."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import ConfigDict

from .base import WireModel


class StaffType(str, Enum):
    """The single specialty a staff member is booked for."""

    PHOTOGRAPHER = "PHOTOGRAPHER"
    EDITOR = "EDITOR"


class Staff(WireModel):
    """A bookable person. Immutable for the duration of a session."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    staff_type: StaffType
    color: Optional[str] = None  # lane header accent, e.g. "#dbeafe"
