from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class LoginRequest(BaseModel):
    # Email or username
    email: str = Field(..., min_length=1, description="Email or username")
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    token: str
    user: dict


class RefreshResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    message: str = "Token refreshed successfully"
    expires_in: str = Field(default="24h", alias="expiresIn")


class LogoutResponse(BaseModel):
    message: str = "Logged out successfully"
    success: bool = True


class TokenData(BaseModel):
    user_id: Optional[int] = None
    is_admin: bool = False
