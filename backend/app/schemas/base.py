"""Base schema classes with camelCase alias generation.

Python code stays snake_case; API JSON (attachments, file tree nodes,
stats) goes out as camelCase: originalName, storedName, mimeType, ...
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for request schemas (Create/Update). Accepts and outputs camelCase."""
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class CamelORMModel(BaseModel):
    """Base for response schemas. Reads from ORM rows or dataclasses, outputs camelCase."""
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }
