# src/waypost/models/identity.py
"""Identity records owned by the identity gateway."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from waypost.db.session import Base
from waypost.db.time import isoformat, utcnow


def _new_identity_id() -> str:
    return str(uuid.uuid4())


class Identity(Base):
    """An authenticated account with exactly one password credential."""

    __tablename__ = "identities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_identity_id)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    email_confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    user_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def to_row(self) -> dict[str, Any]:
        """Return the public identity fields; the credential never leaves the gateway."""
        return {
            "id": self.id,
            "email": self.email,
            "email_confirmed_at": isoformat(self.email_confirmed_at),
            "user_metadata": dict(self.user_metadata or {}),
            "created_at": isoformat(self.created_at),
        }
