"""Shared model configuration and list validation for provider records."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic.alias_generators import to_camel

from paddock.exceptions import ResponseValidationError

T = TypeVar("T")


class ProviderModel(BaseModel):
    """Frozen record parsed from the primary provider's camelCase JSON."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


def validate_list(model_type: type[T], data: list[dict[str, Any]]) -> list[T]:
    """Validate a list of dicts against a Pydantic model."""
    try:
        adapter = TypeAdapter(list[model_type])
        return adapter.validate_python(data)
    except Exception as exc:
        raise ResponseValidationError(
            f"Failed to validate {model_type.__name__} response: {exc}"
        ) from exc
