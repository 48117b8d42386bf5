"""Constructor (team) model."""

from __future__ import annotations

from paddock.models._base import ProviderModel
from paddock.teams import canonical_team_id


class ConstructorRef(ProviderModel):
    constructor_id: str
    name: str | None = None
    nationality: str | None = None
    url: str | None = None

    @property
    def canonical_id(self) -> str:
        """Alias-table id for branding lookups, falling back to the raw id."""
        return canonical_team_id(self) or self.constructor_id
