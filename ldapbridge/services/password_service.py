# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/services/password_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Password hashing with Argon2id.

Examples:
    >>> from ldapbridge.services.password_service import PasswordHasher
    >>> hasher = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)
    >>> digest = hasher.hash_password("Password123")
    >>> digest.startswith("$argon2id$")
    True
    >>> hasher.verify_password("Password123", digest)
    True
    >>> hasher.verify_password("Invalid", digest)
    False
"""

# Standard
import secrets
import string
from typing import Optional

# Third-Party
import argon2
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

# First-Party
from ldapbridge.services.logging_service import LoggingService

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


class PasswordHasher:
    """Argon2id hash/verify wrapper used for local passwords."""

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 1):
        """Create the hasher.

        Args:
            time_cost: Argon2 iterations.
            memory_cost: Argon2 memory in KiB.
            parallelism: Argon2 lanes.
        """
        self._hasher = argon2.PasswordHasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)

    def hash_password(self, password: str) -> str:
        """Hash a plaintext password.

        Args:
            password: Plaintext password.

        Returns:
            str: Encoded Argon2id hash.
        """
        return self._hasher.hash(password)

    def verify_password(self, password: str, digest: Optional[str]) -> bool:
        """Check a plaintext password against a stored hash.

        Args:
            password: Plaintext password.
            digest: Stored hash, may be None.

        Returns:
            bool: True only if the password matches.

        Examples:
            >>> PasswordHasher().verify_password("x", None)
            False
            >>> PasswordHasher().verify_password("x", "not-a-hash")
            False
        """
        if not password or not digest:
            return False
        try:
            return self._hasher.verify(digest, password)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as exc:
            logger.warning("Password verification failed on malformed hash: %s", exc)
            return False


def generate_placeholder_password(length: int = 64) -> str:
    """Generate a random password for directory-provisioned users.

    Directory users authenticate by bind, so this value is never typed by
    anyone; it only keeps the local password column from being guessable.

    Args:
        length: Number of characters.

    Returns:
        str: Random password.

    Examples:
        >>> len(generate_placeholder_password())
        64
        >>> generate_placeholder_password() != generate_placeholder_password()
        True
    """
    chars = string.ascii_letters + string.digits + string.punctuation
    return "".join(secrets.choice(chars) for _ in range(length))
