# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/services/attribute_sync.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Directory to local attribute synchronization.
The configured attribute map (``settings.auth_sync_attributes``) is applied
first, followed by every named handler in ``settings.auth_attribute_handlers``
in order; a later handler overrides fields set by an earlier one. Handlers are
contract-checked when registered and again when a synchronizer is built, so a
broken handler is reported at startup rather than in the middle of a login.

Examples:
    >>> from ldapbridge.services.attribute_sync import AttributeMapHandler
    >>> from ldapbridge.services.directory_gateway import DirectoryEntry
    >>> entry = DirectoryEntry(dn="cn=John Doe,dc=corp", attributes={"cn": ["John Doe"], "userprincipalname": ["jdoe@email.com"]})
    >>> AttributeMapHandler({"email": "userprincipalname", "name": "cn"}).handle(entry)
    {'email': 'jdoe@email.com', 'name': 'John Doe'}
"""

# Standard
from abc import ABC, abstractmethod
import inspect
from typing import Any, Callable, Dict, List, Mapping, Optional

# First-Party
from ldapbridge.config import LdapBridgeError, settings, Settings
from ldapbridge.db import User
from ldapbridge.services.directory_gateway import DirectoryEntry
from ldapbridge.services.logging_service import LoggingService
from ldapbridge.services.password_service import generate_placeholder_password, PasswordHasher

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)

# Columns handlers may never write
PROTECTED_FIELDS = frozenset({"id", "ldap_identifier", "password_hash", "deleted_at", "created_at", "updated_at"})


class InvalidAttributeHandlerError(LdapBridgeError):
    """Raised when an attribute handler is unknown or breaks the handler contract.

    Examples:
        >>> try:
        ...     raise InvalidAttributeHandlerError("Unknown attribute handler: nope")
        ... except InvalidAttributeHandlerError as e:
        ...     str(e)
        'Unknown attribute handler: nope'
    """


class AttributeHandler(ABC):
    """Maps a directory entry to local ``User`` field values."""

    @abstractmethod
    def handle(self, entry: DirectoryEntry) -> Dict[str, Any]:
        """Return the fields to write for ``entry``.

        Args:
            entry: Directory entry being synchronized.

        Returns:
            Dict[str, Any]: ``User`` field name to value.
        """


class AttributeMapHandler(AttributeHandler):
    """Copies the first value of each mapped directory attribute.

    Attributes the entry does not carry are left out, so an existing local
    value is kept.
    """

    def __init__(self, mapping: Mapping[str, str]):
        """Create the handler.

        Args:
            mapping: ``User`` field name to directory attribute.
        """
        self.mapping = dict(mapping)

    def handle(self, entry: DirectoryEntry) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for field_name, attribute in self.mapping.items():
            value = entry.get_first(attribute)
            if value is not None:
                values[field_name] = value
        return values


def check_handler_contract(name: str, handler: Any) -> None:
    """Verify ``handler`` exposes ``handle(entry)`` taking exactly one argument.

    Args:
        name: Handler name, used in the error message.
        handler: Handler instance.

    Raises:
        InvalidAttributeHandlerError: If the contract is not met.

    Examples:
        >>> check_handler_contract("map", AttributeMapHandler({}))
        >>> check_handler_contract("plain", object())
        Traceback (most recent call last):
        ...
        ldapbridge.services.attribute_sync.InvalidAttributeHandlerError: Attribute handler 'plain' does not define a handle(entry) method
    """
    handle = getattr(handler, "handle", None)
    if not callable(handle):
        raise InvalidAttributeHandlerError(f"Attribute handler '{name}' does not define a handle(entry) method")
    try:
        signature = inspect.signature(handle)
    except (TypeError, ValueError) as exc:
        raise InvalidAttributeHandlerError(f"Attribute handler '{name}' has an unreadable handle() signature: {exc}") from exc
    try:
        signature.bind(None)
    except TypeError as exc:
        raise InvalidAttributeHandlerError(f"Attribute handler '{name}' handle() must accept exactly one entry argument") from exc
    if any(p.kind == p.VAR_POSITIONAL for p in signature.parameters.values()):
        raise InvalidAttributeHandlerError(f"Attribute handler '{name}' handle() must accept exactly one entry argument")


_HANDLERS: Dict[str, Callable[[], Any]] = {}


def register_attribute_handler(name: str, factory: Callable[[], Any]) -> None:
    """Register a handler factory under ``name``.

    Args:
        name: Identifier used in ``settings.auth_attribute_handlers``.
        factory: Handler class or zero-argument callable returning a handler.

    Raises:
        InvalidAttributeHandlerError: If the produced handler breaks the contract.
    """
    check_handler_contract(name, factory())
    _HANDLERS[name] = factory


def unregister_attribute_handler(name: str) -> None:
    """Remove a registered handler, ignoring unknown names.

    Args:
        name: Handler identifier.
    """
    _HANDLERS.pop(name, None)


def get_attribute_handler(name: str) -> Any:
    """Instantiate and check the handler registered under ``name``.

    Args:
        name: Handler identifier.

    Returns:
        A handler instance.

    Raises:
        InvalidAttributeHandlerError: If the name is unknown or the handler breaks the contract.
    """
    try:
        factory = _HANDLERS[name]
    except KeyError:
        raise InvalidAttributeHandlerError(f"Unknown attribute handler: {name}") from None
    handler = factory()
    check_handler_contract(name, handler)
    return handler


class AttributeSynchronizer:
    """Builds or updates a local ``User`` from a directory entry.

    Attributes:
        config: Settings with the attribute map, handler names and password policy.
        hasher: Password hasher for placeholder and synced passwords.
        handlers: Handlers in application order.
    """

    def __init__(self, hasher: PasswordHasher, config: Optional[Settings] = None):
        """Resolve and check every configured handler.

        Args:
            hasher: Password hasher.
            config: Settings; defaults to the module-level settings.
        """
        self.config = config or settings
        self.hasher = hasher
        self.handlers: List[Any] = [AttributeMapHandler(self.config.auth_sync_attributes)]
        self.handlers.extend(get_attribute_handler(name) for name in self.config.auth_attribute_handlers)

    def collect(self, entry: DirectoryEntry) -> Dict[str, Any]:
        """Run every handler and merge their output.

        Args:
            entry: Directory entry.

        Returns:
            Dict[str, Any]: Merged field values, later handlers winning.

        Raises:
            InvalidAttributeHandlerError: If a handler returns a non-mapping or an unknown/protected field.
        """
        columns = User.__table__.columns
        values: Dict[str, Any] = {}
        for handler in self.handlers:
            name = type(handler).__name__
            result = handler.handle(entry)
            if not isinstance(result, Mapping):
                raise InvalidAttributeHandlerError(f"Attribute handler '{name}' returned {type(result).__name__}, expected a mapping")
            for field_name in result:
                if field_name not in columns or field_name in PROTECTED_FIELDS:
                    raise InvalidAttributeHandlerError(f"Attribute handler '{name}' wrote unsupported field '{field_name}'")
            values.update(result)
        return values

    def sync(self, entry: DirectoryEntry, existing: Optional[User] = None, password: Optional[str] = None) -> User:
        """Apply the entry's attributes to ``existing`` or a new transient user.

        Nothing is written to the user until every handler has run.

        Args:
            entry: Directory entry.
            existing: Previously imported user, if any.
            password: Plaintext password from the current login, if any.

        Returns:
            User: The synchronized user (not added to any session).
        """
        values = self.collect(entry)

        if self.config.auth_passwords_sync and password:
            values["password_hash"] = self.hasher.hash_password(password)

        if existing is None:
            user = User(ldap_identifier=entry.identifier)
            if "password_hash" not in values:
                values["password_hash"] = self.hasher.hash_password(generate_placeholder_password())
            logger.debug("Importing directory user %s", entry.identifier)
        else:
            user = existing
            if not user.ldap_identifier:
                user.ldap_identifier = entry.identifier

        for field_name, value in values.items():
            setattr(user, field_name, value)
        return user
