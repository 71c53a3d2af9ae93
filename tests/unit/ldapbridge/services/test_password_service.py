# -*- coding: utf-8 -*-
"""Unit tests for the Argon2 password hasher."""

# Standard
import logging

# First-Party
from ldapbridge.services.password_service import generate_placeholder_password


class TestPasswordHasher:
    def test_hash_and_verify(self, hasher):
        digest = hasher.hash_password("12345")

        assert digest != "12345"
        assert hasher.verify_password("12345", digest) is True
        assert hasher.verify_password("54321", digest) is False

    def test_hashes_are_salted(self, hasher):
        assert hasher.hash_password("12345") != hasher.hash_password("12345")

    def test_missing_input_is_rejected(self, hasher):
        digest = hasher.hash_password("12345")

        assert hasher.verify_password("", digest) is False
        assert hasher.verify_password("12345", None) is False
        assert hasher.verify_password("12345", "") is False

    def test_malformed_hash_is_logged(self, hasher, caplog):
        with caplog.at_level(logging.WARNING):
            assert hasher.verify_password("12345", "not-a-hash") is False
        assert "malformed hash" in caplog.text


class TestPlaceholderPassword:
    def test_length(self):
        assert len(generate_placeholder_password()) == 64
        assert len(generate_placeholder_password(16)) == 16

    def test_random(self):
        assert generate_placeholder_password() != generate_placeholder_password()
