from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
import re

from civicconnect.models.user import UserRole


def _check_password(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", v):
        raise ValueError("Password must contain at least one digit")
    return v


# Shared properties
class UserBase(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = None
    address: Optional[str] = Field(None, max_length=255)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v is None:
            return v
        if not re.match(r"^\+?[0-9]{10,15}$", v):
            raise ValueError("Invalid phone number format")
        return v


# Properties to receive on registration
class UserCreate(UserBase):
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v):
        return _check_password(v)


# Properties to receive on user update
class UserUpdate(UserBase):
    password: Optional[str] = Field(None, min_length=8)
    # Only admins may change roles
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v):
        return _check_password(v)


# Properties to return to client
class User(UserBase):
    id: int
    email: EmailStr
    role: UserRole
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Identity attached to an authenticated request
class UserBrief(BaseModel):
    id: int
    email: str
    role: UserRole
    name: str = Field(validation_alias="full_name")

    model_config = ConfigDict(from_attributes=True)


# Token response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[UserBrief] = None


# Token payload
class TokenPayload(BaseModel):
    sub: Optional[int] = None
