"""Shared schema configuration."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """camelCase on the wire, snake_case in Python; readable from ORM objects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


INTERNAL_FIELDS = frozenset({"version"})


def dump(schema: type[BaseModel], obj: Any) -> dict[str, Any]:
    """Serialize an ORM object for a response body, without internal fields."""
    return schema.model_validate(obj).model_dump(by_alias=True, mode="json", exclude=set(INTERNAL_FIELDS))
