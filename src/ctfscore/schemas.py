"""Shared pydantic base for the camelCase wire format."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serializes as camelCase, accepts either camelCase or snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
