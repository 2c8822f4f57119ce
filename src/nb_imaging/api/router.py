"""nb_imaging REST API — POST /generate."""

from typing import Annotated

from fastapi import APIRouter, Depends

from src.nb_imaging.api.dependencies import get_generation_service
from src.nb_imaging.application.schemas import GenerateRequest, GenerateResponse
from src.nb_imaging.application.service import ImageGenerationService

router = APIRouter(tags=["imaging"])


@router.post("/generate")
async def generate(
    body: GenerateRequest,
    service: Annotated[ImageGenerationService, Depends(get_generation_service)],
) -> GenerateResponse:
    image_url = await service.generate(body.image, body.prompt)
    return GenerateResponse(image_url=image_url)
