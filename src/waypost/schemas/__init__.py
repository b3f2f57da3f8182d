"""Pydantic schemas for request and response bodies."""

from .users import AdminUserCreate, AdminUserCreated, AdminUserUpdate, MessageResponse

__all__ = ["AdminUserCreate", "AdminUserCreated", "AdminUserUpdate", "MessageResponse"]
