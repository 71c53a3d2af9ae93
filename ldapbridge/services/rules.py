# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/services/rules.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Login authorization rules.
A rule looks at the directory entry and the local user of a login and says
whether the login may proceed. Rules run in configured order and the first
rule that denies stops the evaluation.

Examples:
    >>> from ldapbridge.db import User
    >>> engine = AuthorizationRuleEngine.from_names(["deny_trashed", "only_imported"])
    >>> engine.passes(None, User(email="jdoe@email.com"))
    True
    >>> engine.passes(None, None)
    False
    >>> AuthorizationRuleEngine([]).passes(None, None)
    True
"""

# Standard
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Optional

# First-Party
from ldapbridge.config import LdapBridgeError
from ldapbridge.db import User
from ldapbridge.services.directory_gateway import DirectoryEntry
from ldapbridge.services.logging_service import LoggingService

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


class InvalidRuleError(LdapBridgeError):
    """Raised when a rule is unknown or does not expose ``is_valid(entry, user)``.

    Examples:
        >>> try:
        ...     raise InvalidRuleError("Unknown rule: nope")
        ... except InvalidRuleError as e:
        ...     str(e)
        'Unknown rule: nope'
    """


class Rule(ABC):
    """A single allow/deny check."""

    name: str = "rule"

    @abstractmethod
    def is_valid(self, entry: Optional[DirectoryEntry], user: Optional[User]) -> bool:
        """Decide whether the login may proceed.

        Args:
            entry: Directory entry, or None if it could not be resolved.
            user: Local user as it existed before this login, or None.

        Returns:
            bool: True to allow, False to deny.
        """


class DenyTrashed(Rule):
    """Deny users whose local record is soft-deleted."""

    name = "deny_trashed"

    def is_valid(self, entry: Optional[DirectoryEntry], user: Optional[User]) -> bool:
        return not (user is not None and user.is_trashed)


class OnlyImported(Rule):
    """Deny directory users that have never been imported locally."""

    name = "only_imported"

    def is_valid(self, entry: Optional[DirectoryEntry], user: Optional[User]) -> bool:
        return user is not None


_RULES: Dict[str, Callable[[], Rule]] = {}


def _check_rule(name: str, rule: object) -> None:
    if not callable(getattr(rule, "is_valid", None)):
        raise InvalidRuleError(f"Rule '{name}' does not define an is_valid(entry, user) method")


def register_rule(name: str, factory: Callable[[], Rule]) -> None:
    """Register a rule factory under ``name``.

    Args:
        name: Identifier used in ``settings.auth_rules``.
        factory: Rule class or zero-argument callable returning a rule.

    Raises:
        InvalidRuleError: If the produced object has no callable ``is_valid``.
    """
    _check_rule(name, factory())
    _RULES[name] = factory


def unregister_rule(name: str) -> None:
    """Remove a registered rule, ignoring unknown names.

    Args:
        name: Rule identifier.
    """
    _RULES.pop(name, None)


def get_rule(name: str) -> Rule:
    """Instantiate the rule registered under ``name``.

    Args:
        name: Rule identifier.

    Returns:
        Rule: A fresh rule instance.

    Raises:
        InvalidRuleError: If no rule is registered under ``name``.
    """
    try:
        factory = _RULES[name]
    except KeyError:
        raise InvalidRuleError(f"Unknown rule: {name}") from None
    return factory()


class AuthorizationRuleEngine:
    """Evaluates rules in order with short-circuit AND semantics.

    Attributes:
        rules: Rules in evaluation order.
    """

    def __init__(self, rules: Iterable[Rule]):
        """Create the engine.

        Args:
            rules: Rule instances in evaluation order.

        Raises:
            InvalidRuleError: If a rule has no callable ``is_valid``.
        """
        self.rules: List[Rule] = list(rules)
        for rule in self.rules:
            _check_rule(type(rule).__name__, rule)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "AuthorizationRuleEngine":
        """Build an engine from registered rule names.

        Args:
            names: Rule identifiers in evaluation order.

        Returns:
            AuthorizationRuleEngine: The engine.
        """
        return cls(get_rule(name) for name in names)

    def passes(self, entry: Optional[DirectoryEntry], user: Optional[User]) -> bool:
        """Whether every rule allows the login.

        Args:
            entry: Directory entry, or None.
            user: Local user, or None.

        Returns:
            bool: False as soon as one rule denies.
        """
        for rule in self.rules:
            if not rule.is_valid(entry, user):
                logger.info("Login denied by rule %s", getattr(rule, "name", type(rule).__name__))
                return False
        return True


register_rule(DenyTrashed.name, DenyTrashed)
register_rule(OnlyImported.name, OnlyImported)
