# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/services/query_builder.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

LDAP search filter builder.
Builds RFC 4515 filter strings from equality, presence and OR clauses.
Every byte of an equality value is written as a ``\\xx`` hex escape, so the
rendered filter never depends on which characters a value happens to contain.
Scopes are small named classes that add clauses to a builder; they are
registered once and referenced by name from ``settings.auth_scopes``.

Examples:
    >>> from ldapbridge.services.query_builder import FilterBuilder
    >>> FilterBuilder().where("cn", "Jo").where_has("mail").get_query()
    '(&(cn=\\\\4a\\\\6f)(mail=*))'
"""

# Standard
from typing import Callable, Dict, List, Tuple

# First-Party
from ldapbridge.config import LdapBridgeError
from ldapbridge.services.directory_gateway import _get_ldap3


class InvalidScopeError(LdapBridgeError):
    """Raised when a scope is unknown or does not expose ``apply(builder)``.

    Examples:
        >>> try:
        ...     raise InvalidScopeError("Unknown scope: nope")
        ... except InvalidScopeError as e:
        ...     str(e)
        'Unknown scope: nope'
    """


def escape_filter_value(value: str) -> str:
    """Hex-escape every UTF-8 byte of a filter value with ``ldap3.utils.conv.escape_bytes``.

    Args:
        value: Raw attribute value.

    Returns:
        str: Escaped value, two lowercase hex digits per byte.

    Examples:
        >>> escape_filter_value("person")
        '\\\\70\\\\65\\\\72\\\\73\\\\6f\\\\6e'
        >>> escape_filter_value("a*")
        '\\\\61\\\\2a'
        >>> escape_filter_value("")
        ''
    """
    ldap3 = _get_ldap3()
    return ldap3.utils.conv.escape_bytes(str(value).encode("utf-8"))


class FilterBuilder:
    """Accumulates filter clauses and renders them in insertion order.

    Examples:
        >>> FilterBuilder().where_has("userprincipalname").get_query()
        '(userprincipalname=*)'
        >>> FilterBuilder().or_where("cn", "a").or_where("cn", "b").get_query()
        '(&(|(cn=\\\\61)(cn=\\\\62)))'
        >>> FilterBuilder().get_query()
        ''
    """

    def __init__(self):
        """Create an empty builder."""
        self._wheres: List[Tuple[str, str]] = []
        self._or_wheres: List[Tuple[str, str]] = []

    def where(self, attribute: str, value: str) -> "FilterBuilder":
        """Add an AND equality clause.

        Args:
            attribute: Directory attribute name.
            value: Value to match, escaped on render.

        Returns:
            FilterBuilder: self, for chaining.
        """
        self._wheres.append((attribute, escape_filter_value(value)))
        return self

    def where_has(self, attribute: str) -> "FilterBuilder":
        """Add an AND presence clause (``attr=*``).

        Args:
            attribute: Directory attribute name.

        Returns:
            FilterBuilder: self, for chaining.
        """
        self._wheres.append((attribute, "*"))
        return self

    def or_where(self, attribute: str, value: str) -> "FilterBuilder":
        """Add an equality clause to the OR group.

        Args:
            attribute: Directory attribute name.
            value: Value to match, escaped on render.

        Returns:
            FilterBuilder: self, for chaining.
        """
        self._or_wheres.append((attribute, escape_filter_value(value)))
        return self

    def copy(self) -> "FilterBuilder":
        """Return an independent builder with the same clauses.

        Returns:
            FilterBuilder: Copy of this builder.
        """
        clone = FilterBuilder()
        clone._wheres = list(self._wheres)
        clone._or_wheres = list(self._or_wheres)
        return clone

    @staticmethod
    def _render(clauses: List[Tuple[str, str]]) -> str:
        return "".join(f"({attribute}={value})" for attribute, value in clauses)

    def get_query(self) -> str:
        """Render the filter string.

        Returns:
            str: The filter, or an empty string when no clause was added.
        """
        if not self._wheres and not self._or_wheres:
            return ""
        if len(self._wheres) == 1 and not self._or_wheres:
            return self._render(self._wheres)

        rendered = self._render(self._wheres)
        if self._or_wheres:
            rendered += f"(|{self._render(self._or_wheres)})"
        return f"(&{rendered})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FilterBuilder):
            return NotImplemented
        return self.get_query() == other.get_query()

    # Builders are mutable
    __hash__ = None

    def __repr__(self) -> str:
        return f"FilterBuilder({self.get_query()!r})"


class Scope:
    """Base class for named query scopes."""

    def apply(self, builder: FilterBuilder) -> None:
        """Add this scope's clauses to ``builder``.

        Args:
            builder: Builder to modify in place.

        Raises:
            NotImplementedError: Always, subclasses must override.
        """
        raise NotImplementedError


class UpnScope(Scope):
    """Only users that carry a user principal name."""

    def apply(self, builder: FilterBuilder) -> None:
        builder.where_has("userprincipalname")


_SCOPES: Dict[str, Callable[[], Scope]] = {}


def register_scope(name: str, factory: Callable[[], Scope]) -> None:
    """Register a scope factory under ``name``.

    The factory is called once here so a scope that cannot be applied is
    rejected at registration instead of during a login.

    Args:
        name: Identifier used in ``settings.auth_scopes``.
        factory: Scope class or zero-argument callable returning a scope.

    Raises:
        InvalidScopeError: If the produced object has no callable ``apply``.
    """
    instance = factory()
    if not callable(getattr(instance, "apply", None)):
        raise InvalidScopeError(f"Scope '{name}' does not define an apply(builder) method")
    _SCOPES[name] = factory


def unregister_scope(name: str) -> None:
    """Remove a registered scope, ignoring unknown names.

    Args:
        name: Scope identifier.
    """
    _SCOPES.pop(name, None)


def get_scope(name: str) -> Scope:
    """Instantiate the scope registered under ``name``.

    Args:
        name: Scope identifier.

    Returns:
        Scope: A fresh scope instance.

    Raises:
        InvalidScopeError: If no scope is registered under ``name``.

    Examples:
        >>> isinstance(get_scope("upn"), UpnScope)
        True
    """
    try:
        factory = _SCOPES[name]
    except KeyError:
        raise InvalidScopeError(f"Unknown scope: {name}") from None
    return factory()


def registered_scopes() -> Dict[str, Callable[[], Scope]]:
    """Return a snapshot of the scope registry.

    Returns:
        Dict[str, Callable[[], Scope]]: Name to factory mapping.
    """
    return dict(_SCOPES)


register_scope("upn", UpnScope)
