from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime

from app.core.config import settings


class UserRegister(BaseModel):
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < settings.MIN_USERNAME_LENGTH:
            raise ValueError(f"Username must be at least {settings.MIN_USERNAME_LENGTH} characters long")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long")
        return v


class UserLogin(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class PasswordChange(BaseModel):
    """Accepts the camelCase keys the web client sends"""
    model_config = ConfigDict(populate_by_name=True)

    old_password: str = Field(..., alias="oldPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        if len(v) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(f"New password must be at least {settings.MIN_PASSWORD_LENGTH} characters long")
        return v


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    created_at: datetime


class AuthResponse(BaseModel):
    success: bool = True
    message: str
    token: str
    user: UserResponse
