from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models whose wire and store names are camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
