"""OpenRouter chat-completions client for image-to-image generation."""

import logging
from typing import Any

import httpx
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

_TIMEOUT_S = 120.0

# Appended to every prompt; asks the model for the image only, no commentary.
IMAGE_ONLY_SUFFIX = "\n\n请只返回生成后的图片，不要返回解释文字。"


class OpenRouterImageClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        model: str,
        site_url: str | None = None,
        site_name: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        headers: dict[str, str] = {}
        if site_url:
            headers["HTTP-Referer"] = site_url
        if site_name:
            headers["X-Title"] = site_name
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            default_headers=headers or None,
            http_client=http_client or httpx.AsyncClient(timeout=httpx.Timeout(_TIMEOUT_S)),
        )
        self._model = model

    async def aclose(self) -> None:
        await self._client.close()

    async def edit_image(self, image_url: str, prompt: str) -> dict[str, Any] | None:
        """Send one image + instruction; return the first choice's message as a dict."""
        completion = await self._client.chat.completions.create(
            model=self._model,
            temperature=0,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": f"{prompt.strip()}{IMAGE_ONLY_SUFFIX}"},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                }
            ],
        )
        usage = getattr(completion, "usage", None)
        logger.info(
            "openrouter.request_done model=%s prompt_tokens=%s completion_tokens=%s",
            self._model,
            getattr(usage, "prompt_tokens", None),
            getattr(usage, "completion_tokens", None),
        )
        if not completion.choices:
            return None
        message = completion.choices[0].message
        return message.model_dump() if message is not None else None
