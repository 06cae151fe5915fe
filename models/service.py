"""Service models for salon treatments."""

from typing import Optional

from pydantic import BaseModel, Field


class Service(BaseModel):
    """Service model."""

    id: int
    name: str
    duration: int = Field(..., gt=0, le=600, description="Duration in minutes")
    price: Optional[int] = Field(None, ge=0, description="Price in cents")
    description: Optional[str] = None
    is_active: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "id": 3,
                "name": "Piega",
                "duration": 45,
                "price": 2500,
            }
        }
