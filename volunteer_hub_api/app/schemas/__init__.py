"""
Pydantic schema definitions for domain objects and API payloads.

Domain models use snake_case attributes in Python and camelCase in
their JSON form; both spellings are accepted on input.  The flat
snake_case records the storage backends deal in are produced and
consumed by ``core.codec`` only, so schemas stay decoupled from
persistence.
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model whose JSON form uses camelCase field names."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
