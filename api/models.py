"""
API models and schemas for the FastAPI application.
"""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-zA-Z])(?=.*[0-9]).{6,}$")


class UserCredentials(BaseModel):
    """Name/password pair used by signup and signin."""
    name: str = Field(..., min_length=5, max_length=50, description="Unique user name")
    password: str = Field(..., min_length=6, max_length=50, description="Plain text password")

    model_config = {"str_strip_whitespace": True}

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        """Passwords need at least one letter and one digit."""
        if not PASSWORD_PATTERN.match(v):
            raise ValueError("Senha deve conter letras e números")
        return v


class UserRecord(BaseModel):
    """Stored user document. Never returned to clients."""
    id: str = Field(..., description="Store generated identifier")
    name: str = Field(..., description="Unique user name")
    password_hash: str = Field(..., description="bcrypt hash of the password")
    refresh_token: Optional[str] = Field(None, description="Currently valid refresh token")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")


class TokenPair(BaseModel):
    """Access/refresh token pair issued at signin or guest creation."""
    access_token: str = Field(..., description="Short lived access token")
    refresh_token: str = Field(..., description="Long lived refresh token")


class TokenClaims(BaseModel):
    """Claims of a verified token."""
    sub: str = Field(..., min_length=1, description="Identifier of the user the token speaks for")
    exp: int = Field(..., description="Expiry as a unix timestamp")
    iat: Optional[int] = Field(None, description="Issue time as a unix timestamp")
    jti: Optional[str] = Field(None, description="Unique token identifier")


class Caller(BaseModel):
    """Identity resolved by the access or refresh guard."""
    user_id: str
    access_token: Optional[str] = None


class BookCreate(BaseModel):
    """Payload for adding a book to the caller's catalog."""
    isbn: str = Field(..., min_length=1, max_length=20, pattern=r"^[\d\-X]+$")
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=1000)
    author: str = Field(..., min_length=1, max_length=100)
    stock: int = Field(0, ge=0)

    model_config = {"str_strip_whitespace": True}


class BookUpdate(BaseModel):
    """Payload for replacing a book's editable fields."""
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=1000)
    author: str = Field(..., min_length=1, max_length=100)
    stock: int = Field(0, ge=0)

    model_config = {"str_strip_whitespace": True}


class BookResponse(BaseModel):
    """Book as returned to its owner."""
    isbn: str
    name: str
    description: str = ""
    author: str
    stock: int = 0
    is_favorite: bool = Field(False, alias="isFavorite")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    model_config = {"populate_by_name": True}


class SuccessResponse(BaseModel):
    """Envelope for successful responses."""
    success: bool = True
    data: Any = Field(default_factory=list)
    message: str = ""


class ErrorResponse(BaseModel):
    """Envelope for failed responses."""
    success: bool = False
    message: str = Field(..., description="Error message")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
