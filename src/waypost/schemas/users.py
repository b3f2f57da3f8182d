# src/waypost/schemas/users.py
"""Admin user management schemas."""

from pydantic import BaseModel, ConfigDict, Field


class AdminUserCreate(BaseModel):
    """Body of ``POST /api/users``.

    Fields are optional at the schema level so the handler can answer a
    missing field with its own 400 message before anything else happens.
    """

    email: str | None = None
    password: str | None = None
    username: str | None = None


class AdminUserUpdate(BaseModel):
    """Body of ``PATCH /api/users/{id}``."""

    username: str | None = None
    avatar_url: str | None = None


class AdminUserCreated(BaseModel):
    """Response for a successful account creation."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    user_id: str = Field(alias="userId")


class MessageResponse(BaseModel):
    message: str
