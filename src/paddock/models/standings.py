"""Championship standings models (drivers and constructors)."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from paddock.models._base import ProviderModel
from paddock.models.constructor import ConstructorRef
from paddock.models.driver import DriverRef


class DriverStanding(ProviderModel):
    """Driver championship entry as of a season-to-date snapshot."""

    position: int | None = None
    position_text: str | None = None
    points: Decimal = Decimal(0)
    wins: int = 0
    driver: DriverRef = Field(alias="Driver")
    constructors: list[ConstructorRef] = Field(default_factory=list, alias="Constructors")

    @property
    def constructor(self) -> ConstructorRef | None:
        """The team the driver raced for most recently."""
        return self.constructors[-1] if self.constructors else None


class ConstructorStanding(ProviderModel):
    position: int | None = None
    position_text: str | None = None
    points: Decimal = Decimal(0)
    wins: int = 0
    constructor: ConstructorRef = Field(alias="Constructor")


class ConstructorSeason(BaseModel):
    """A constructor's final championship standing in one season."""

    model_config = ConfigDict(frozen=True)

    season: int
    position: int | None = None
    points: Decimal = Decimal(0)
    wins: int = 0
