"""Login / session schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=1024)


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: str
    client_slug: Optional[str] = None
    source: str


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse
