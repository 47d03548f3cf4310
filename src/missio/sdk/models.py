"""Base Pydantic models for the missio SDK.

Two bases are provided:

- ``SdkBaseModel`` for records produced and owned by the SDK (tokens, resolved
  variables, status reports). Unknown fields are rejected and instances are
  immutable.
- ``CollectionModel`` for records read from collection files. Those files use
  camelCase keys and may carry fields this engine does not interpret, so
  unknown keys are ignored and snake_case field names are accepted as well.

Example:
    >>> from missio.sdk.models import SdkBaseModel
    >>>
    >>> class MyModel(SdkBaseModel):
    ...     name: str
    >>>
    >>> MyModel(name="test").model_dump()
    {'name': 'test'}
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SdkBaseModel(BaseModel):
    """Base model for all missio SDK Pydantic models.

    - extra="forbid": Rejects any fields not defined in the model
    - frozen=True: Makes instances immutable; updates go through ``model_copy``
    """

    model_config = ConfigDict(extra="forbid", frozen=True)


class CollectionModel(BaseModel):
    """Base model for records parsed from collection/environment files."""

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )
