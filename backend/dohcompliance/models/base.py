"""Shared pydantic base for models that cross the JSON boundary.

The UI and the external validation API speak camelCase; Python code uses
snake_case attributes. Models accept either on input and emit camelCase.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """BaseModel with camelCase aliases and enum values in dumps."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_json_dict(self) -> dict:
        """JSON-safe dict with camelCase keys and ISO timestamps."""
        return self.model_dump(mode="json", by_alias=True)
