# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/db.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Local user storage.
Defines the SQLAlchemy declarative base, the ``User`` model that directory
identities are synchronized into, and the engine/session factory built from
``settings.database_url``.

Examples:
    >>> from ldapbridge.db import User
    >>> user = User(email="jdoe@email.com", name="John Doe")
    >>> user.is_trashed
    False
"""

# Standard
from datetime import datetime, timezone
from typing import Optional
import uuid

# Third-Party
from sqlalchemy import create_engine, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

# First-Party
from ldapbridge.config import settings


def utc_now() -> datetime:
    """Return the current UTC time.

    Returns:
        datetime: Timezone-aware current time.

    Examples:
        >>> utc_now().tzinfo is not None
        True
    """
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all models."""


class User(Base):
    """A local user record, optionally linked to a directory entry.

    ``ldap_identifier`` holds the value of the directory's identifying
    attribute and is used to re-resolve the entry on later logins.
    ``deleted_at`` is the soft-delete marker.

    Examples:
        >>> user = User(email="jdoe@email.com", name="John Doe")
        >>> user.soft_delete()
        >>> user.is_trashed
        True
        >>> user.restore()
        >>> user.is_trashed
        False
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, index=True, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Back-reference to the directory entry
    ldap_identifier: Mapped[Optional[str]] = mapped_column(String(255), unique=True, index=True, nullable=True)

    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    @property
    def is_trashed(self) -> bool:
        """Whether the record has been soft-deleted.

        Returns:
            bool: True if ``deleted_at`` is set.
        """
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        """Mark the record as deleted without removing the row."""
        self.deleted_at = utc_now()

    def restore(self) -> None:
        """Clear the soft-delete marker."""
        self.deleted_at = None

    def __repr__(self) -> str:
        """Return a debug representation.

        Returns:
            str: Representation with the login key and back-reference.
        """
        return f"<User email={self.email!r} ldap_identifier={self.ldap_identifier!r}>"


connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
