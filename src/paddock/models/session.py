"""Secondary-provider session model."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, field_validator


class Session(BaseModel):
    """A session (practice, qualifying, sprint, race) on the telemetry provider."""

    model_config = ConfigDict(frozen=True)

    circuit_short_name: str | None = None
    country_name: str | None = None
    date_end: datetime | None = None
    date_start: datetime | None = None
    location: str | None = None
    meeting_key: int | None = None
    session_key: int
    session_name: str | None = None
    session_type: str | None = None
    year: int | None = None

    @field_validator("date_start", "date_end")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # Older records carry no offset; the provider publishes UTC
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
