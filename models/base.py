"""Base models with camelCase aliases matching the upstream API payloads."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for API-facing models: accepts snake_case or camelCase, dumps camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class EntityModel(CamelModel):
    """Canonical entity held by the store.  Frozen so snapshots cannot drift."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )
