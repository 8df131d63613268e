"""Shared Pydantic base model for the camelCase JSON API."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model whose fields are snake_case in Python and camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        """Dump to a JSON-safe dict using camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")
