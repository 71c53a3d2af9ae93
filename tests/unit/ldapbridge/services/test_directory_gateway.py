# -*- coding: utf-8 -*-
"""Unit tests for LdapDirectoryGateway - ldap3 search and bind."""

# Standard
from unittest.mock import MagicMock, patch

# Third-Party
import pytest

# First-Party
from ldapbridge.config import ConfigurationMissingError, Settings
from ldapbridge.services.directory_gateway import (
    _get_ldap3,
    DirectoryEntry,
    DirectoryUnavailableError,
    LdapDirectoryGateway,
    ResolutionAmbiguousError,
)

GATEWAY_LDAP3 = "ldapbridge.services.directory_gateway._get_ldap3"


def _raw_entry(dn="cn=John Doe,ou=Users,dc=corp,dc=local", **attributes):
    """Create a mock ldap3 search entry."""
    entry = MagicMock()
    entry.entry_dn = dn
    entry.entry_attributes_as_dict = attributes or {"cn": ["John Doe"], "userPrincipalName": ["jdoe@email.com"]}
    return entry


@pytest.fixture
def gateway(test_settings):
    return LdapDirectoryGateway(test_settings)


# ── Construction ────────────────────────────────────────────────────


class TestConstruction:
    """Test configuration checks at construction."""

    def test_missing_configuration_raises(self):
        with pytest.raises(ConfigurationMissingError, match="ldap_uri, ldap_base_dn"):
            LdapDirectoryGateway(Settings(_env_file=None, ldap_uri=None, ldap_base_dn=None))

    def test_partial_configuration_names_missing_key(self):
        with pytest.raises(ConfigurationMissingError, match="ldap_base_dn"):
            LdapDirectoryGateway(Settings(_env_file=None, ldap_uri="ldap://localhost", ldap_base_dn=None))


class TestGetLdap3:
    """Test ldap3 lazy import."""

    def test_import_failure_raises(self):
        with patch.dict("sys.modules", {"ldap3": None}):
            with pytest.raises(ImportError, match="ldap3 is required"):
                _get_ldap3()


# ── Directory entries ───────────────────────────────────────────────


class TestDirectoryEntry:
    """Test entry normalization."""

    def test_attribute_names_are_lowercased(self):
        entry = DirectoryEntry.from_attributes("cn=a,dc=x", {"userPrincipalName": "a@x.org"})
        assert entry.get_first("userprincipalname") == "a@x.org"
        assert entry.identifier == "a@x.org"

    def test_bytes_values_are_decoded(self):
        entry = DirectoryEntry.from_attributes("cn=a,dc=x", {"cn": [b"Alice"]})
        assert entry.get_all("cn") == ["Alice"]

    def test_custom_identifier_attribute(self):
        entry = DirectoryEntry.from_attributes("cn=a,dc=x", {"objectGUID": "abc"}, identifier_attribute="objectGUID")
        assert entry.identifier == "abc"

    def test_entry_is_immutable(self):
        entry = DirectoryEntry(dn="cn=a,dc=x")
        with pytest.raises(Exception):
            entry.dn = "cn=b,dc=x"


# ── Search ──────────────────────────────────────────────────────────


class TestSearch:
    """Test single-entry search."""

    def test_search_returns_single_entry(self, gateway, mock_ldap3):
        conn = MagicMock()
        conn.entries = [_raw_entry()]
        mock_ldap3.Connection.return_value = conn

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            entry = gateway.search("(cn=*)")

        assert entry.dn == "cn=John Doe,ou=Users,dc=corp,dc=local"
        assert entry.identifier == "jdoe@email.com"
        conn.unbind.assert_called_once()
        kwargs = conn.search.call_args.kwargs
        assert kwargs["search_base"] == "ou=Users,dc=corp,dc=local"
        assert kwargs["search_filter"] == "(cn=*)"
        assert "paged_size" not in kwargs

    def test_search_binds_with_service_account(self, gateway, mock_ldap3):
        conn = MagicMock()
        conn.entries = []
        mock_ldap3.Connection.return_value = conn

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            gateway.search("(cn=*)")

        kwargs = mock_ldap3.Connection.call_args.kwargs
        assert kwargs["user"] == "cn=admin,dc=corp,dc=local"
        assert kwargs["password"] == "admin"
        assert kwargs["read_only"] is True

    def test_search_returns_none_when_nothing_matches(self, gateway, mock_ldap3):
        conn = MagicMock()
        conn.entries = []
        mock_ldap3.Connection.return_value = conn

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            assert gateway.search("(cn=*)") is None

    def test_search_ignores_configuration_referrals(self, gateway, mock_ldap3):
        conn = MagicMock()
        conn.entries = [_raw_entry(), _raw_entry(dn="CN=Configuration,dc=corp,dc=local", cn=["x"])]
        mock_ldap3.Connection.return_value = conn

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            entry = gateway.search("(cn=*)")

        assert entry.identifier == "jdoe@email.com"

    def test_search_with_multiple_matches_is_ambiguous(self, gateway, mock_ldap3):
        conn = MagicMock()
        conn.entries = [_raw_entry(), _raw_entry(dn="cn=Jane Doe,ou=Users,dc=corp,dc=local", cn=["Jane Doe"])]
        mock_ldap3.Connection.return_value = conn

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            with pytest.raises(ResolutionAmbiguousError, match="2 entries"):
                gateway.search("(cn=*)")

        conn.unbind.assert_called_once()

    def test_search_server_unreachable(self, gateway, mock_ldap3):
        mock_ldap3.Connection.side_effect = mock_ldap3.core.exceptions.LDAPSocketOpenError("Connection refused")

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            with pytest.raises(DirectoryUnavailableError, match="Cannot connect"):
                gateway.search("(cn=*)")

    def test_search_failure_is_reported_and_connection_closed(self, gateway, mock_ldap3):
        conn = MagicMock()
        conn.search.side_effect = mock_ldap3.core.exceptions.LDAPException("timeLimitExceeded")
        mock_ldap3.Connection.return_value = conn

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            with pytest.raises(DirectoryUnavailableError, match="search failed"):
                gateway.search("(cn=*)")

        conn.unbind.assert_called_once()

    def test_search_all_uses_paging(self, gateway, mock_ldap3):
        conn = MagicMock()
        conn.entries = [_raw_entry(), _raw_entry(dn="cn=Jane Doe,ou=Users,dc=corp,dc=local", cn=["Jane Doe"])]
        mock_ldap3.Connection.return_value = conn

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            entries = gateway.search_all("(cn=*)")

        assert len(entries) == 2
        assert conn.search.call_args.kwargs["paged_size"] == 500


# ── Bind ────────────────────────────────────────────────────────────


class TestBind:
    """Test user bind."""

    def test_bind_success(self, gateway, mock_ldap3):
        conn = MagicMock()
        mock_ldap3.Connection.return_value = conn

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            assert gateway.bind("cn=John Doe,dc=corp,dc=local", "12345") is True

        assert mock_ldap3.Connection.call_args.kwargs["user"] == "cn=John Doe,dc=corp,dc=local"
        conn.unbind.assert_called_once()

    def test_bind_empty_password_rejected_without_contacting_server(self, gateway, mock_ldap3):
        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            assert gateway.bind("cn=John Doe,dc=corp,dc=local", "") is False
        mock_ldap3.Connection.assert_not_called()

    def test_bind_invalid_credentials(self, gateway, mock_ldap3):
        mock_ldap3.Connection.side_effect = mock_ldap3.core.exceptions.LDAPBindError("invalidCredentials")

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            assert gateway.bind("cn=John Doe,dc=corp,dc=local", "wrong") is False

    def test_bind_server_unreachable_is_false(self, gateway, mock_ldap3):
        mock_ldap3.Connection.side_effect = mock_ldap3.core.exceptions.LDAPSocketOpenError("Connection refused")

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            assert gateway.bind("cn=John Doe,dc=corp,dc=local", "12345") is False

    def test_bind_unexpected_error_is_false(self, gateway, mock_ldap3):
        mock_ldap3.Connection.side_effect = RuntimeError("boom")

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            assert gateway.bind("cn=John Doe,dc=corp,dc=local", "12345") is False

    def test_bind_uses_start_tls_auto_bind(self, test_settings, mock_ldap3):
        test_settings.ldap_start_tls = True
        mock_ldap3.AUTO_BIND_TLS_BEFORE_BIND = "AUTO_BIND_TLS_BEFORE_BIND"
        gateway = LdapDirectoryGateway(test_settings)

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            gateway.bind("cn=John Doe,dc=corp,dc=local", "12345")

        assert mock_ldap3.Connection.call_args.kwargs["auto_bind"] == "AUTO_BIND_TLS_BEFORE_BIND"
        mock_ldap3.Tls.assert_called_once()


# ── Connection Check ────────────────────────────────────────────────


class TestCheckConnection:
    """Test LDAP connection checking."""

    def test_check_connection_success(self, gateway, mock_ldap3):
        conn = MagicMock()
        mock_ldap3.Connection.return_value = conn

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            connected, error = gateway.check_connection()

        assert connected is True
        assert error is None
        conn.unbind.assert_called_once()

    def test_check_connection_failure(self, gateway, mock_ldap3):
        mock_ldap3.Connection.side_effect = Exception("Connection refused")

        with patch(GATEWAY_LDAP3, return_value=mock_ldap3):
            connected, error = gateway.check_connection()

        assert connected is False
        assert "Connection refused" in error
