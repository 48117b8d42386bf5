"""Lap models: the canonical lap record and raw telemetry laps."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from paddock.laptime import format_lap_time, normalize_lap_time, parse_lap_time


class LapRecord(BaseModel):
    """One lap of one driver, with its time in canonical ``M:SS.mmm`` form."""

    model_config = ConfigDict(frozen=True)

    lap_number: int = Field(gt=0)
    time: str

    @field_validator("time")
    @classmethod
    def _canonical_time(cls, value: str) -> str:
        canonical = normalize_lap_time(value)
        if canonical is None:
            raise ValueError(f"unparsable lap time {value!r}")
        return canonical

    @property
    def millis(self) -> int:
        return parse_lap_time(self.time)  # type: ignore[return-value]

    def to_dict(self) -> dict[str, int | str]:
        """Snapshot form used by the file store."""
        return {"lap": self.lap_number, "time": self.time}


class TelemetryLap(BaseModel):
    """Individual lap data from the secondary provider."""

    model_config = ConfigDict(frozen=True)

    date_start: datetime | None = None
    driver_number: int | None = None
    duration_sector_1: float | None = None
    duration_sector_2: float | None = None
    duration_sector_3: float | None = None
    is_pit_out_lap: bool | None = None
    lap_duration: float | None = None
    lap_number: int | None = None
    meeting_key: int | None = None
    session_key: int | None = None

    def to_record(self) -> LapRecord | None:
        """Convert to a canonical record, or None without a number or duration."""
        formatted = format_lap_time(self.lap_duration)
        if formatted is None or self.lap_number is None or self.lap_number <= 0:
            return None
        return LapRecord(lap_number=self.lap_number, time=formatted)
