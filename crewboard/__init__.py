"""Weekly staff timeline core: availability, lane layout and drag rescheduling."""

from crewboard.availability import is_available
from crewboard.layout import compute_lane_placement
from crewboard.reschedule import plan_reschedule
from crewboard.view import compute_visible_week

__all__ = [
    "compute_lane_placement",
    "compute_visible_week",
    "is_available",
    "plan_reschedule",
]
