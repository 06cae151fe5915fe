"""Client models for salon customers."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator


class Client(BaseModel):
    """Client model. `phone` is stored as typed by staff, not normalized."""

    id: int
    first_name: str
    last_name: str = ""
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    notes: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": 5,
                "first_name": "Enea",
                "last_name": "Muja",
                "phone": "376 102 4080",
                "email": "enea@example.com",
            }
        }

    @field_validator("email", "phone", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """The salon form saves untouched fields as empty strings."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
