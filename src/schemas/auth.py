"""Pydantic schemas for registration, login and token refresh."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegisterRequest(BaseModel):
    """Schema for registering a new account."""

    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)


class LoginRequest(BaseModel):
    """Schema for logging in with email and password."""

    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    """Schema for exchanging a refresh token for a new access token."""

    refresh_token: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Public view of a user. Never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    created_at: datetime


class AuthResponse(BaseModel):
    """Response for register and login: the user plus both tokens."""

    message: str
    user: UserResponse
    token: str = Field(..., description="Access token for the Authorization header.")
    refresh_token: str = Field(
        ...,
        description="Refresh token, only accepted by /auth/refresh.",
    )


class RefreshResponse(BaseModel):
    """Response for a successful refresh."""

    message: str
    token: str
