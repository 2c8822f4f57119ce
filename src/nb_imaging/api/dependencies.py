"""Image generation service for FastAPI DI; the OpenRouter client is built lazily."""

from config.settings import settings
from src.nb_imaging.application.service import ImageGenerationService
from src.nb_imaging.infrastructure.openrouter_client import OpenRouterImageClient

_client: OpenRouterImageClient | None = None


def get_openrouter_client() -> OpenRouterImageClient | None:
    global _client
    if _client is None and settings.OPENROUTER_API_KEY:
        _client = OpenRouterImageClient(
            api_key=settings.OPENROUTER_API_KEY,
            base_url=settings.OPENROUTER_BASE_URL,
            model=settings.OPENROUTER_MODEL,
            site_url=settings.OPENROUTER_SITE_URL,
            site_name=settings.OPENROUTER_SITE_NAME,
        )
    return _client


def get_generation_service() -> ImageGenerationService:
    return ImageGenerationService(
        get_openrouter_client(), include_debug=not settings.is_production
    )


async def close_openrouter_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
