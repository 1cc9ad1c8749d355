"""Pydantic schemas for image responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ImageResponse(BaseModel):
    """A catalogued image record."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Image identifier.")
    species_name: str = Field(..., description="Species shown in the image.")
    gps_long: float = Field(..., description="Longitude where the image was taken.")
    gps_lat: float = Field(..., description="Latitude where the image was taken.")
    image_path: str = Field(..., description="Storage path or URL of the image file.")
    user_id: int = Field(..., description="Id of the user who uploaded the image.")
