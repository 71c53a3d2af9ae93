# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/services/auth_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Directory Authentication Service.
Decides a login attempt end to end: resolve the directory entry, bind with
the supplied password, synchronize the entry into the local ``users`` table,
check the configured rules, and fall back to the locally stored password
when the directory cannot resolve the user and fallback is enabled.

A login never leaves a partially synchronized user behind: the synchronized
record is only flushed and committed once every rule has allowed it.

Examples:
    >>> from ldapbridge.services.auth_service import AuthResult
    >>> AuthResult.fail("nope", "USER_NOT_FOUND").success
    False
"""

# Standard
from dataclasses import dataclass
from typing import Any, Mapping, Optional

# Third-Party
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

# First-Party
from ldapbridge.config import LdapBridgeError, require_ldap_settings, settings, Settings
from ldapbridge.db import User
from ldapbridge.services.attribute_sync import AttributeSynchronizer
from ldapbridge.services.directory_gateway import DirectoryEntry, LdapDirectoryGateway
from ldapbridge.services.logging_service import LoggingService
from ldapbridge.services.password_service import PasswordHasher
from ldapbridge.services.resolver import IdentityResolver
from ldapbridge.services.rules import AuthorizationRuleEngine
from ldapbridge.services.user_repository import UserRepository

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


class UserConflictError(LdapBridgeError):
    """Raised when a local user owning the login key is linked to another directory entry.

    Examples:
        >>> str(UserConflictError("jdoe@email.com is linked to guid-old"))
        'jdoe@email.com is linked to guid-old'
    """


@dataclass
class AuthResult:
    """Outcome of a login attempt.

    Attributes:
        success: Whether the login was admitted
        user: Local user (on success)
        entry: Directory entry used for the decision, if any
        error: Human readable reason (on failure)
        error_code: Machine readable reason (on failure)
        via_fallback: Whether the local password admitted the login

    Examples:
        >>> result = AuthResult.ok(User(email="jdoe@email.com"))
        >>> result.success, result.via_fallback
        (True, False)
    """

    success: bool
    user: Optional[User] = None
    entry: Optional[DirectoryEntry] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    via_fallback: bool = False

    @classmethod
    def ok(cls, user: User, entry: Optional[DirectoryEntry] = None, via_fallback: bool = False) -> "AuthResult":
        """Create an admitted result.

        Args:
            user: Admitted user.
            entry: Directory entry, if any.
            via_fallback: Whether the local password admitted the login.

        Returns:
            AuthResult: Successful result.
        """
        return cls(success=True, user=user, entry=entry, via_fallback=via_fallback)

    @classmethod
    def fail(cls, error: str, error_code: str = "AUTH_FAILED") -> "AuthResult":
        """Create a denied result.

        Args:
            error: Reason.
            error_code: Machine readable reason.

        Returns:
            AuthResult: Failed result.
        """
        return cls(success=False, error=error, error_code=error_code)


class AuthenticationService:
    """Directory-backed login with optional local fallback.

    Attributes:
        db: SQLAlchemy database session
        config: Settings driving the fallback and sync policy
        resolver: Identity resolver
        synchronizer: Attribute synchronizer
        rules: Authorization rule engine
        hasher: Password hasher used for fallback verification
        repository: Local user persistence
    """

    def __init__(
        self,
        db: Session,
        resolver: IdentityResolver,
        synchronizer: AttributeSynchronizer,
        rules: AuthorizationRuleEngine,
        hasher: PasswordHasher,
        config: Optional[Settings] = None,
    ):
        """Initialize the service from its collaborators.

        Args:
            db: SQLAlchemy database session
            resolver: Identity resolver
            synchronizer: Attribute synchronizer
            rules: Authorization rule engine
            hasher: Password hasher
            config: Settings; defaults to the module-level settings.
        """
        self.db = db
        self.config = config or settings
        self.resolver = resolver
        self.synchronizer = synchronizer
        self.rules = rules
        self.hasher = hasher
        self.repository = UserRepository(db, login_key=self.config.auth_login_key)

    @classmethod
    def from_settings(cls, db: Session, config: Optional[Settings] = None, gateway: Any = None, hasher: Optional[PasswordHasher] = None) -> "AuthenticationService":
        """Wire a service from settings.

        Configuration problems (missing directory settings, unknown scopes,
        rules or handlers) raise here, before any login is attempted.

        Args:
            db: SQLAlchemy database session
            config: Settings; defaults to the module-level settings.
            gateway: Directory gateway; defaults to ``LdapDirectoryGateway``.
            hasher: Password hasher; defaults to ``PasswordHasher()``.

        Returns:
            AuthenticationService: Ready to use service.
        """
        config = require_ldap_settings(config or settings)
        hasher = hasher or PasswordHasher()
        return cls(
            db,
            resolver=IdentityResolver(gateway or LdapDirectoryGateway(config), config),
            synchronizer=AttributeSynchronizer(hasher, config),
            rules=AuthorizationRuleEngine.from_names(config.auth_rules),
            hasher=hasher,
            config=config,
        )

    def attempt(self, credentials: Mapping[str, Any]) -> AuthResult:
        """Decide a login attempt.

        Args:
            credentials: Login key value plus ``password``.

        Returns:
            AuthResult: Admitted with the local user, or denied with a reason.
        """
        login_value = credentials.get(self.config.auth_login_key)
        password = credentials.get("password")
        if not login_value or not password:
            return AuthResult.fail(f"{self.config.auth_login_key} and password are required", "MISSING_CREDENTIALS")

        entry = self.resolver.by_credentials(credentials)
        if entry is None:
            logger.info("No directory entry for %s", login_value)
            return self._fallback(login_value, password, AuthResult.fail("User not found in directory", "USER_NOT_FOUND"))

        if not self.resolver.authenticate(entry, password):
            denied = AuthResult.fail("Invalid directory credentials", "LDAP_AUTH_FAILED")
            if self.config.auth_fallback_on_bind_failure:
                return self._fallback(login_value, password, denied)
            return denied

        return self._admit(entry, login_value, password)

    def _find_existing(self, entry: DirectoryEntry, login_value: Any) -> Optional[User]:
        """Locate the local user previously imported for ``entry``.

        A local user with the same login key and no back-reference yet is
        adopted.

        Args:
            entry: Directory entry.
            login_value: Login value from the credentials.

        Returns:
            Optional[User]: Existing user (trashed included), or None.

        Raises:
            UserConflictError: If the login key belongs to a user linked to a different entry.
        """
        existing = self.repository.find_by_identifier(entry.identifier, with_trashed=True)
        if existing is None:
            candidate = self.repository.find_by_key(login_value, with_trashed=True)
            if candidate is not None:
                if candidate.ldap_identifier:
                    raise UserConflictError(f"{login_value} is linked to {candidate.ldap_identifier}, directory returned {entry.identifier}")
                existing = candidate
        return existing

    def _admit(self, entry: DirectoryEntry, login_value: Any, password: str) -> AuthResult:
        """Synchronize, check rules and persist an authenticated directory user.

        Args:
            entry: Authenticated directory entry.
            login_value: Login value from the credentials.
            password: Plaintext password, used for password sync.

        Returns:
            AuthResult: Admitted, denied by rules, or denied on a local user conflict.
        """
        try:
            existing = self._find_existing(entry, login_value)
            user = self.synchronizer.sync(entry, existing, password)
            fresh = self.resolver.by_model(user) or entry

            if not self.rules.passes(fresh, existing):
                self.repository.rollback()
                return AuthResult.fail("Login denied by authorization rules", "RULE_DENIED")

            self.repository.save(user)
            self.repository.commit()
        except (UserConflictError, IntegrityError) as exc:
            self.repository.rollback()
            logger.warning("Directory login for %s conflicts with an existing local user: %s", login_value, exc)
            return AuthResult.fail("Local user conflicts with directory entry", "USER_CONFLICT")
        except Exception:
            self.repository.rollback()
            raise

        logger.info("Directory login admitted for %s", login_value)
        return AuthResult.ok(user, entry=fresh)

    def _fallback(self, login_value: Any, password: str, denied: AuthResult) -> AuthResult:
        """Try the locally stored password when fallback is enabled.

        Args:
            login_value: Login value from the credentials.
            password: Plaintext password.
            denied: Result to return when fallback is disabled.

        Returns:
            AuthResult: Admitted via fallback, or denied.
        """
        if not self.config.auth_login_fallback:
            return denied

        user = self.repository.find_by_key(login_value)
        if user is None or not self.hasher.verify_password(password, user.password_hash):
            logger.info("Local fallback login failed for %s", login_value)
            return AuthResult.fail("Invalid credentials", "FALLBACK_FAILED")

        if not self.rules.passes(None, user):
            return AuthResult.fail("Login denied by authorization rules", "RULE_DENIED")

        logger.info("Local fallback login admitted for %s", login_value)
        return AuthResult.ok(user, via_fallback=True)
