from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional


class UserBase(BaseModel):
    firstname: str = Field(..., min_length=2, max_length=30, pattern=r"^[a-zA-Z\s]+$")
    lastname: str = Field(..., min_length=2, max_length=30, pattern=r"^[a-zA-Z\s]+$")
    username: str = Field(..., min_length=3, max_length=20, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr


class UserCreate(UserBase):
    password: str = Field(..., min_length=6, max_length=72)
    phone: Optional[str] = None

    @field_validator("email", "username", mode="after")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.lower()


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    firstname: str
    lastname: str
    username: str
    email: str
    phone: Optional[str] = None
    is_admin: bool = Field(default=False, serialization_alias="isAdmin")
    created_at: datetime
    updated_at: datetime
