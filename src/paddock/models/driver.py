"""Driver identity models for both providers."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict

from paddock.models._base import ProviderModel


class DriverRef(ProviderModel):
    """Driver as identified by the primary provider.

    ``driver_id`` is only a stable join key within the primary provider.
    """

    driver_id: str
    given_name: str | None = None
    family_name: str | None = None
    nationality: str | None = None
    permanent_number: int | None = None
    code: str | None = None
    url: str | None = None
    date_of_birth: date | None = None

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.given_name, self.family_name) if p) or self.driver_id


class SessionDriver(BaseModel):
    """Driver info for a specific secondary-provider session."""

    model_config = ConfigDict(frozen=True)

    broadcast_name: str | None = None
    country_code: str | None = None
    driver_number: int | None = None
    first_name: str | None = None
    full_name: str | None = None
    last_name: str | None = None
    meeting_key: int | None = None
    name_acronym: str | None = None
    session_key: int | None = None
    team_name: str | None = None
