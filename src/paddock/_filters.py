"""Query parameter builder shared by both providers.

Plain values become equality parameters (``limit=100``); ``Filter`` instances
become the secondary provider's comparison operators (``lap_number>=5``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Filter:
    """A comparison filter for secondary-provider query parameters.

    Usage:
        Filter(gte=5, lte=10)  # produces: lap_number>=5&lap_number<=10
    """

    gt: int | float | str | None = None
    gte: int | float | str | None = None
    lt: int | float | str | None = None
    lte: int | float | str | None = None

    def to_params(self, key: str) -> list[tuple[str, str]]:
        """Convert this filter to a list of (key_with_operator, value) pairs."""
        params: list[tuple[str, str]] = []
        for operator, value in ((">", self.gt), (">=", self.gte), ("<", self.lt), ("<=", self.lte)):
            if value is not None:
                params.append((f"{key}{operator}", str(value)))
        return params


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query_params(**kwargs: Any) -> list[tuple[str, str]]:
    """Build a list of query parameter tuples from keyword arguments.

    ``None`` values are skipped, booleans are lower-cased, and ``Filter``
    instances expand into comparison operators.
    """
    params: list[tuple[str, str]] = []
    for key, value in kwargs.items():
        if value is None:
            continue
        if isinstance(value, Filter):
            params.extend(value.to_params(key))
        else:
            params.append((key, _format_value(value)))
    return params
