from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.adapters.storage.base import AbstractImageRepository
from app.core.auth import verify_api_key
from app.core.errors import NotFoundAppError
from app.schemas.image import ImageResponse

router = APIRouter(
    prefix="/images",
    tags=["Images"],
    dependencies=[Depends(verify_api_key)],
)


def get_image_repository(request: Request) -> AbstractImageRepository:
    return request.app.state.image_repository


ImageRepository = Annotated[AbstractImageRepository, Depends(get_image_repository)]


@router.get("", response_model=list[ImageResponse])
async def list_images(repository: ImageRepository) -> list[ImageResponse]:
    """List all image records."""

    return [ImageResponse.model_validate(image) for image in repository.list_images()]


@router.get("/{image_id}", response_model=ImageResponse)
async def get_image(image_id: int, repository: ImageRepository) -> ImageResponse:
    """Fetch a single image record.

    Raises:
        NotFoundAppError: 404 when no image has this id.
    """

    image = repository.get_image(image_id)
    if image is None:
        raise NotFoundAppError(
            code="image_not_found",
            message="Image not found",
            details={"resource_id": image_id},
        )
    return ImageResponse.model_validate(image)
