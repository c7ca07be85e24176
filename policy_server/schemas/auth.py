"""
Schemas - Auth Models

Pydantic models for users, activities, credentials and API keys.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class User(BaseModel):
    """Stored user account."""
    id: int
    username: str
    name: str
    email: str
    password_hash: str


class UserOut(BaseModel):
    """User as returned to clients (no password hash)."""
    id: int
    username: str
    name: str
    email: str

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(id=user.id, username=user.username, name=user.name, email=user.email)


class LoginRequest(BaseModel):
    """Username/password credentials."""
    username: str = Field(default="", max_length=200)
    password: str = Field(default="", max_length=500)


class ApiKeyRecord(BaseModel):
    """The single active API key of a user, stored by digest."""
    key_hash: str
    key_prefix: str
    owner_user_id: int
    issued_at: datetime
    expires_at: Optional[datetime] = None

    model_config = {"frozen": True}


class ApiKeyResponse(BaseModel):
    """Freshly issued API key (plaintext is only ever returned here)."""
    api_key: str = Field(alias="apiKey")

    model_config = {"populate_by_name": True}


class ExtensionLoginResponse(BaseModel):
    """Extension login result: user plus a freshly issued API key."""
    success: bool = True
    user: UserOut
    api_key: str = Field(alias="apiKey")

    model_config = {"populate_by_name": True}


class Activity(BaseModel):
    """Audit log entry."""
    id: int
    user_id: int = Field(alias="userId")
    action: str
    resource_type: str = Field(alias="resourceType")
    resource_id: Optional[int] = Field(None, alias="resourceId")
    details: Optional[str] = None
    timestamp: datetime

    model_config = {"frozen": True, "populate_by_name": True}
