# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/services/resolver.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Identity resolution.
Locates the directory entry for a set of login credentials, or for a local
user through its stored back-reference. Every query starts from the same
base (person objects) followed by the configured scopes, so two resolvers
with the same settings always emit the same filter.

Examples:
    >>> from unittest.mock import MagicMock
    >>> from ldapbridge.config import Settings
    >>> resolver = IdentityResolver(MagicMock(), Settings(auth_scopes=[]))
    >>> resolver.query().get_query()
    '(&(objectclass=\\\\70\\\\65\\\\72\\\\73\\\\6f\\\\6e)(objectcategory=\\\\70\\\\65\\\\72\\\\73\\\\6f\\\\6e))'
"""

# Standard
from typing import Any, List, Mapping, Optional

# First-Party
from ldapbridge.config import settings, Settings
from ldapbridge.db import User
from ldapbridge.services.directory_gateway import DirectoryEntry, DirectoryUnavailableError, ResolutionAmbiguousError
from ldapbridge.services.logging_service import LoggingService
from ldapbridge.services.query_builder import FilterBuilder, get_scope, Scope

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


class IdentityResolver:
    """Finds directory entries for credentials and local users.

    Attributes:
        gateway: Object exposing ``search(filter)`` and ``bind(dn, password)``.
        config: Settings with the login mapping and scopes.
    """

    def __init__(self, gateway: Any, config: Optional[Settings] = None):
        """Initialize the resolver.

        Scopes are looked up and applied to the base query here, so an unknown
        scope name fails at startup.

        Args:
            gateway: Directory gateway.
            config: Settings; defaults to the module-level settings.
        """
        self.gateway = gateway
        self.config = config or settings
        self.scopes: List[Scope] = [get_scope(name) for name in self.config.auth_scopes]
        self._base = FilterBuilder().where("objectclass", "person").where("objectcategory", "person")
        for scope in self.scopes:
            scope.apply(self._base)

    def query(self) -> FilterBuilder:
        """Start a user query with the base clauses and every configured scope.

        Returns:
            FilterBuilder: A copy of the base query, safe to extend.
        """
        return self._base.copy()

    def _search(self, builder: FilterBuilder) -> Optional[DirectoryEntry]:
        query = builder.get_query()
        try:
            return self.gateway.search(query)
        except ResolutionAmbiguousError as exc:
            logger.warning("Directory resolution ambiguous, treating as not found: %s", exc)
        except DirectoryUnavailableError as exc:
            logger.error("Directory unavailable during resolution: %s", exc)
        return None

    def by_credentials(self, credentials: Mapping[str, Any]) -> Optional[DirectoryEntry]:
        """Find the entry matching the login value in ``credentials``.

        Args:
            credentials: Login key value plus ``password``.

        Returns:
            Optional[DirectoryEntry]: The entry, or None if missing, ambiguous or unreachable.
        """
        username = credentials.get(self.config.auth_login_key)
        if not username or not credentials.get("password"):
            return None
        return self._search(self.query().where(self.config.auth_login_attribute, username))

    def by_model(self, user: User) -> Optional[DirectoryEntry]:
        """Re-resolve the entry a local user was imported from.

        Args:
            user: Local user with a back-reference.

        Returns:
            Optional[DirectoryEntry]: A fresh entry, or None.
        """
        identifier = getattr(user, "ldap_identifier", None)
        if not identifier:
            return None
        return self._search(self.query().where(self.config.ldap_identifier_attribute, identifier))

    def authenticate(self, entry: DirectoryEntry, password: str) -> bool:
        """Bind as ``entry`` with ``password``.

        Args:
            entry: Resolved directory entry.
            password: Plaintext password.

        Returns:
            bool: Whether the directory accepted the password.
        """
        try:
            return bool(self.gateway.bind(entry.dn, password))
        except DirectoryUnavailableError as exc:
            logger.error("Directory unavailable during bind for %s: %s", entry.dn, exc)
            return False
