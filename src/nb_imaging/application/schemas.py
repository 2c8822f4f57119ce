"""Pydantic schemas for nb_imaging."""

from typing import Any

from src.nb_common.response import CamelModel, SuccessBody


class GenerateRequest(CamelModel):
    # Any JSON value accepted; the service answers wrong types with a 400.
    image: Any = None
    prompt: Any = None


class GenerateResponse(SuccessBody):
    image_url: str
