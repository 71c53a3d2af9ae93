# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/services/user_repository.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Persistence of local ``User`` records.
Lookups are by login key or by directory back-reference. Trashed (soft-deleted)
records are excluded unless ``with_trashed=True`` is passed.

Examples:
    >>> from unittest.mock import MagicMock
    >>> repo = UserRepository(db=MagicMock())
    >>> repo.login_key
    'email'
"""

# Standard
from typing import Any, Dict, Optional

# Third-Party
from sqlalchemy import select
from sqlalchemy.orm import Session

# First-Party
from ldapbridge.db import User
from ldapbridge.services.logging_service import LoggingService

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


class UserRepository:
    """Reads and writes ``User`` rows through a SQLAlchemy session.

    Attributes:
        db: SQLAlchemy database session
        login_key: ``User`` column holding the login value
    """

    def __init__(self, db: Session, login_key: str = "email"):
        """Initialize the repository.

        Args:
            db: SQLAlchemy database session
            login_key: Name of the ``User`` column used as login key.

        Raises:
            ValueError: If ``login_key`` is not a ``User`` column.
        """
        if login_key not in User.__table__.columns:
            raise ValueError(f"User has no column named '{login_key}'")
        self.db = db
        self.login_key = login_key

    def find_by_key(self, value: Any, with_trashed: bool = False) -> Optional[User]:
        """Find a user by login value.

        Args:
            value: Login value, e.g. an email address.
            with_trashed: Include soft-deleted users.

        Returns:
            Optional[User]: The user, or None.
        """
        if value is None:
            return None
        stmt = select(User).where(getattr(User, self.login_key) == value)
        if not with_trashed:
            stmt = stmt.where(User.deleted_at.is_(None))
        return self.db.execute(stmt).scalar_one_or_none()

    def find_by_identifier(self, identifier: Optional[str], with_trashed: bool = False) -> Optional[User]:
        """Find a user by directory back-reference.

        Args:
            identifier: Value of the directory identifying attribute.
            with_trashed: Include soft-deleted users.

        Returns:
            Optional[User]: The user, or None.
        """
        if not identifier:
            return None
        stmt = select(User).where(User.ldap_identifier == identifier)
        if not with_trashed:
            stmt = stmt.where(User.deleted_at.is_(None))
        return self.db.execute(stmt).scalar_one_or_none()

    def create(self, attributes: Dict[str, Any]) -> User:
        """Create and flush a new user.

        Args:
            attributes: Column values.

        Returns:
            User: The new user.
        """
        user = User(**attributes)
        self.db.add(user)
        self.db.flush()
        logger.info("Created local user %s", getattr(user, self.login_key))
        return user

    def update(self, user: User, attributes: Dict[str, Any]) -> User:
        """Apply column values to an existing user and flush.

        Args:
            user: User to modify.
            attributes: Column values.

        Returns:
            User: The same user.
        """
        for name, value in attributes.items():
            setattr(user, name, value)
        return self.save(user)

    def save(self, user: User) -> User:
        """Add ``user`` to the session (if new) and flush.

        Args:
            user: User to persist.

        Returns:
            User: The same user.
        """
        self.db.add(user)
        self.db.flush()
        return user

    def soft_delete(self, user: User) -> User:
        """Mark ``user`` as deleted and flush.

        Args:
            user: User to trash.

        Returns:
            User: The same user.
        """
        user.soft_delete()
        logger.info("Soft-deleted local user %s", getattr(user, self.login_key))
        return self.save(user)

    def commit(self) -> None:
        """Commit the current transaction."""
        self.db.commit()

    def rollback(self) -> None:
        """Roll back the current transaction."""
        self.db.rollback()
