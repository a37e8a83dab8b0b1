"""Shared configuration for schemas that mirror stored documents."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Fields are camelCase on the wire and accepted in either case on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentResponse(CamelModel):
    """A stored document; its ``_id`` is exposed as ``id``."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
