from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserCreate(BaseModel):
    # Rules are enforced by the register route so it can answer with 400
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str]
    email: str
    created_at: Optional[datetime] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class NameUpdate(BaseModel):
    # Rules are enforced by the profile route so it can answer with 400
    name: Optional[str] = None


class ProfileUpdateResponse(BaseModel):
    message: str
    user: UserResponse
