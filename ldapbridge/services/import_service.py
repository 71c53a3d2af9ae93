# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/services/import_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Bulk import of directory users.
Searches the directory with the resolver's base query (or a caller supplied
filter) and synchronizes every entry into the local ``users`` table without
touching passwords of existing users. Each entry is committed on its own so
one bad entry does not abort the run.

Examples:
    >>> result = ImportResult()
    >>> result.created, result.updated, result.skipped, result.errors
    (0, 0, 0, [])
"""

# Standard
from dataclasses import dataclass, field
from typing import List, Optional

# Third-Party
from sqlalchemy.orm import Session

# First-Party
from ldapbridge.config import settings, Settings
from ldapbridge.services.attribute_sync import AttributeSynchronizer
from ldapbridge.services.directory_gateway import DirectoryUnavailableError
from ldapbridge.services.logging_service import LoggingService
from ldapbridge.services.resolver import IdentityResolver
from ldapbridge.services.user_repository import UserRepository

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


@dataclass
class ImportResult:
    """Counters of a directory import run."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Entries that were written.

        Returns:
            int: ``created + updated``.
        """
        return self.created + self.updated

    def to_dict(self) -> dict:
        """Serialize for CLI output.

        Returns:
            dict: Counters and errors.
        """
        return {"created": self.created, "updated": self.updated, "skipped": self.skipped, "errors": list(self.errors)}


class ImportService:
    """Imports every matching directory user into local storage.

    Attributes:
        db: SQLAlchemy database session
        resolver: Identity resolver providing the gateway and base query
        synchronizer: Attribute synchronizer
    """

    def __init__(self, db: Session, resolver: IdentityResolver, synchronizer: AttributeSynchronizer, config: Optional[Settings] = None):
        """Initialize the import service.

        Args:
            db: SQLAlchemy database session
            resolver: Identity resolver
            synchronizer: Attribute synchronizer
            config: Settings; defaults to the module-level settings.
        """
        self.db = db
        self.config = config or settings
        self.resolver = resolver
        self.synchronizer = synchronizer
        self.repository = UserRepository(db, login_key=self.config.auth_login_key)

    def import_users(self, query: Optional[str] = None) -> ImportResult:
        """Import all users matching ``query``.

        Args:
            query: Filter string; defaults to the resolver's base query.

        Returns:
            ImportResult: Counters and per-entry errors.
        """
        result = ImportResult()
        query = query or self.resolver.query().get_query()

        try:
            entries = self.resolver.gateway.search_all(query)
        except DirectoryUnavailableError as exc:
            result.errors.append(f"Directory search failed: {exc}")
            return result

        for entry in entries:
            if not entry.identifier:
                logger.info("Skipping %s: no %s attribute", entry.dn, entry.identifier_attribute)
                result.skipped += 1
                continue
            try:
                existing = self.repository.find_by_identifier(entry.identifier, with_trashed=True)
                user = self.synchronizer.sync(entry, existing)
                self.repository.save(user)
                self.repository.commit()
            except Exception as exc:
                self.repository.rollback()
                logger.error("Failed to import %s: %s", entry.dn, exc)
                result.errors.append(f"Failed to import {entry.identifier}: {exc}")
                continue

            if existing is None:
                result.created += 1
            else:
                result.updated += 1

        logger.info(
            "Directory import completed: %d created, %d updated, %d skipped, %d errors",
            result.created,
            result.updated,
            result.skipped,
            len(result.errors),
        )
        return result
