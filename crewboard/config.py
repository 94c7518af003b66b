"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("crewboard.config")


class Settings(BaseSettings):
    # Timeline grid
    visible_start_hour: int = 7
    visible_end_hour: int = 19
    snap_minutes: int = 30

    # Zoom (pixels per minute)
    default_px_per_minute: float = 1.2
    min_px_per_minute: float = 0.8
    max_px_per_minute: float = 2.0

    # Display offset from UTC for labels; unset = host offset at load time
    display_utc_offset_minutes: int | None = None

    # Booking backend
    api_base_url: str = "http://localhost:8080"
    api_token: str = ""
    api_timeout: float = 15.0

    # Drop / edit policy
    block_conflicting_drops: bool = False
    protect_terminal_bookings: bool = False

    # Server
    host: str = "127.0.0.1"
    port: int = 8090
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        if not 0 <= self.visible_start_hour < self.visible_end_hour <= 24:
            raise ValueError(
                f"Visible hours {self.visible_start_hour:02d}:00-"
                f"{self.visible_end_hour:02d}:00 are not a valid range within one day."
            )

        if self.snap_minutes <= 0 or (24 * 60) % self.snap_minutes:
            raise ValueError(
                f"SNAP_MINUTES={self.snap_minutes} must be positive and divide a day evenly."
            )

        if not 0 < self.min_px_per_minute <= self.max_px_per_minute:
            raise ValueError(
                "MIN_PX_PER_MINUTE must be positive and not exceed MAX_PX_PER_MINUTE."
            )

        if not self.min_px_per_minute <= self.default_px_per_minute <= self.max_px_per_minute:
            warnings.append(
                f"DEFAULT_PX_PER_MINUTE={self.default_px_per_minute} is outside the zoom "
                "range and will be clamped."
            )

        if not self.api_token:
            warnings.append(
                "API_TOKEN not set. Requests to the booking backend are unauthenticated."
            )

        if self.block_conflicting_drops:
            warnings.append(
                "BLOCK_CONFLICTING_DROPS is on. Drops onto busy lanes will be rejected."
            )

        return warnings


settings = Settings()
