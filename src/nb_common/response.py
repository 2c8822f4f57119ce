"""JSON body helpers shared by all routers.

Success bodies carry ``"success": true`` next to their payload fields;
error bodies look like:
{
    "error": "Insufficient credits",
    "code": 2002,
    "currentBalance": 0,     // optional, error-specific details
    "required": 2
}

Keys are camelCase on the wire; Python models use snake_case and
serialize through ``CamelModel``.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for response bodies: snake_case attributes, camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuccessBody(CamelModel):
    success: bool = True


def error_body(code: int, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": message, "code": code}
    for key, value in (details or {}).items():
        if value is not None:
            body[key] = value
    return body
