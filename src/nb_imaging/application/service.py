"""ImageGenerationService — one image + one instruction in, one image URL out."""

import logging
from typing import Any

from openai import APIError, APIStatusError

from src.nb_common.errors import (
    GenerationFailedError,
    GenerationNotConfiguredError,
    InvalidGenerationRequestError,
    NoImageReturnedError,
)
from src.nb_imaging.domain.extraction import extract_image_url, extract_text, json_preview
from src.nb_imaging.infrastructure.openrouter_client import OpenRouterImageClient

logger = logging.getLogger(__name__)


def _debug_block(message: dict[str, Any] | None) -> dict[str, Any]:
    content = message.get("content") if message else None
    if isinstance(content, list):
        content_type = "array"
    elif content is None:
        content_type = "undefined"
    elif isinstance(content, str):
        content_type = "string"
    else:
        content_type = "object"
    return {
        "messagePreview": json_preview(message),
        "messageContentType": content_type,
        "messageKeys": list(message.keys()) if message else [],
    }


class ImageGenerationService:
    def __init__(self, client: OpenRouterImageClient | None, *, include_debug: bool = False) -> None:
        self._client = client
        self._include_debug = include_debug

    async def generate(self, image: Any, prompt: Any) -> str:
        if self._client is None:
            raise GenerationNotConfiguredError()
        if (
            not isinstance(image, str)
            or not isinstance(prompt, str)
            or not image
            or not prompt.strip()
        ):
            raise InvalidGenerationRequestError("Image and prompt are required")
        if not image.startswith("data:image") and not image.startswith("http"):
            raise InvalidGenerationRequestError("Invalid image format")

        try:
            message = await self._client.edit_image(image, prompt)
        except APIStatusError as exc:
            logger.error("Image generation failed: status=%s %s", exc.status_code, exc.message)
            raise GenerationFailedError(exc.message, exc.status_code) from exc
        except APIError as exc:
            logger.error("Image generation failed: %s", exc.message)
            raise GenerationFailedError(exc.message or "Unknown error") from exc

        image_url = extract_image_url(message)
        if image_url:
            return image_url

        model_text = extract_text(message)
        logger.warning("Model returned no image: text=%r", (model_text or "")[:200])
        details = (
            f"模型未返回图片，返回内容：{model_text}"
            if model_text
            else "Could not extract an image URL from the model response."
        )
        raise NoImageReturnedError(details, _debug_block(message) if self._include_debug else None)
