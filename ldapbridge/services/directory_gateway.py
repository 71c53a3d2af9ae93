# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/services/directory_gateway.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

LDAP / Active Directory Gateway.
This module wraps ldap3 behind two operations used by the authentication
pipeline: searching for a single user entry with a filter and binding as a
user to verify a password. Transport failures during search surface as
``DirectoryUnavailableError``; bind never raises and reports every failure
as ``False``.

Examples:
    >>> from ldapbridge.services.directory_gateway import DirectoryEntry
    >>> entry = DirectoryEntry(dn="cn=John Doe,dc=corp,dc=local", attributes={"cn": ["John Doe"], "userprincipalname": ["jdoe@email.com"]})
    >>> entry.identifier
    'jdoe@email.com'
"""

# Standard
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# First-Party
from ldapbridge.config import LdapBridgeError, require_ldap_settings, settings, Settings
from ldapbridge.services.logging_service import LoggingService

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


class DirectoryUnavailableError(LdapBridgeError):
    """Raised when the directory cannot be reached or a search fails.

    Examples:
        >>> try:
        ...     raise DirectoryUnavailableError("Cannot connect")
        ... except DirectoryUnavailableError as e:
        ...     str(e)
        'Cannot connect'
    """


class ResolutionAmbiguousError(LdapBridgeError):
    """Raised when a search that must identify one user matches several.

    Examples:
        >>> try:
        ...     raise ResolutionAmbiguousError("2 entries matched")
        ... except ResolutionAmbiguousError as e:
        ...     str(e)
        '2 entries matched'
    """


@dataclass(frozen=True)
class DirectoryEntry:
    """A user entry fetched from the directory.

    Attribute names are lower-cased; every attribute maps to a list of values.

    Examples:
        >>> entry = DirectoryEntry(dn="cn=a,dc=x", attributes={"mail": ["a@x.org", "alias@x.org"]})
        >>> entry.get_first("mail")
        'a@x.org'
        >>> entry.get_all("MAIL")
        ['a@x.org', 'alias@x.org']
        >>> entry.get_first("cn") is None
        True
        >>> entry.identifier is None
        True
    """

    dn: str
    attributes: Dict[str, List[str]] = field(default_factory=dict)
    identifier_attribute: str = "userprincipalname"

    def get_all(self, attribute: str) -> List[str]:
        """Return every value of ``attribute``.

        Args:
            attribute: Attribute name, any case.

        Returns:
            List[str]: Values, empty if absent.
        """
        return list(self.attributes.get(attribute.lower(), []))

    def get_first(self, attribute: str) -> Optional[str]:
        """Return the first value of ``attribute``.

        Args:
            attribute: Attribute name, any case.

        Returns:
            Optional[str]: First value, or None if absent.
        """
        values = self.attributes.get(attribute.lower())
        return values[0] if values else None

    @property
    def identifier(self) -> Optional[str]:
        """Value of the identifying attribute stored as back-reference.

        Returns:
            Optional[str]: Identifier, or None if the entry lacks it.
        """
        return self.get_first(self.identifier_attribute)

    @classmethod
    def from_attributes(cls, dn: str, attributes: Dict[str, Any], identifier_attribute: str = "userprincipalname") -> "DirectoryEntry":
        """Build an entry from a raw attribute mapping.

        Args:
            dn: Distinguished name.
            attributes: Mapping of attribute name to a value or list of values.
            identifier_attribute: Name of the identifying attribute.

        Returns:
            DirectoryEntry: Entry with normalized attributes.

        Examples:
            >>> e = DirectoryEntry.from_attributes("cn=a,dc=x", {"CN": "a", "objectClass": ["top", "person"], "empty": None})
            >>> e.attributes
            {'cn': ['a'], 'objectclass': ['top', 'person'], 'empty': []}
        """
        normalized: Dict[str, List[str]] = {}
        for name, value in attributes.items():
            if value is None:
                values: List[str] = []
            elif isinstance(value, (list, tuple, set)):
                values = [v.decode("utf-8", "replace") if isinstance(v, bytes) else str(v) for v in value]
            else:
                values = [value.decode("utf-8", "replace") if isinstance(value, bytes) else str(value)]
            normalized[name.lower()] = values
        return cls(dn=str(dn), attributes=normalized, identifier_attribute=identifier_attribute.lower())


def _get_ldap3():
    """Lazy import ldap3 so the gateway module stays importable for tests.

    Returns:
        The ldap3 module.

    Raises:
        ImportError: If ldap3 is not installed.
    """
    try:
        import ldap3  # noqa: F811

        return ldap3
    except ImportError:
        raise ImportError("ldap3 is required for directory access. Install with: pip install ldap3")


class LdapDirectoryGateway:
    """Search and bind operations against the configured directory.

    Attributes:
        config: Settings with the directory connection parameters.

    Examples:
        >>> from ldapbridge.config import Settings
        >>> gateway = LdapDirectoryGateway(Settings(ldap_uri="ldap://localhost:389", ldap_base_dn="dc=example,dc=org"))
        >>> gateway.config.ldap_base_dn
        'dc=example,dc=org'
    """

    def __init__(self, config: Optional[Settings] = None):
        """Initialize the gateway.

        Args:
            config: Settings to use; defaults to the module-level settings.
        """
        self.config = require_ldap_settings(config or settings)

    def _build_server(self) -> Any:
        """Build an ldap3 Server object from configuration.

        Returns:
            ldap3.Server instance configured from settings.
        """
        ldap3 = _get_ldap3()

        tls = None
        if self.config.ldap_use_ssl or self.config.ldap_start_tls:
            tls = ldap3.Tls(
                validate=2 if self.config.ldap_tls_validate else 0,  # ssl.CERT_REQUIRED=2, ssl.CERT_NONE=0
            )

        return ldap3.Server(
            self.config.ldap_uri,
            use_ssl=self.config.ldap_use_ssl,
            tls=tls,
            connect_timeout=self.config.ldap_connect_timeout,
            get_info=ldap3.ALL,
        )

    def _get_auto_bind(self) -> Any:
        """Return the auto_bind constant matching the TLS configuration.

        With StartTLS the handshake must complete before credentials are sent.

        Returns:
            ldap3 auto_bind constant.
        """
        ldap3 = _get_ldap3()
        if self.config.ldap_start_tls:
            return ldap3.AUTO_BIND_TLS_BEFORE_BIND
        return True

    def _connect(self, user: Optional[str], password: Optional[str], receive_timeout: int) -> Any:
        """Open and bind a read-only connection.

        Args:
            user: DN to bind as.
            password: Password for ``user``.
            receive_timeout: Socket receive timeout in seconds.

        Returns:
            ldap3.Connection bound as ``user``.
        """
        ldap3 = _get_ldap3()
        return ldap3.Connection(
            self._build_server(),
            user=user,
            password=password,
            auto_bind=self._get_auto_bind(),
            read_only=True,
            receive_timeout=receive_timeout,
        )

    def _service_connection(self) -> Any:
        """Bind with the service account used for searches.

        Returns:
            ldap3.Connection bound as the service account.
        """
        return self._connect(
            self.config.ldap_bind_dn,
            self.config.ldap_bind_password.get_secret_value(),
            self.config.ldap_search_timeout,
        )

    def _to_entry(self, raw: Any) -> DirectoryEntry:
        return DirectoryEntry.from_attributes(raw.entry_dn, dict(raw.entry_attributes_as_dict), self.config.ldap_identifier_attribute)

    def _run_search(self, query: str, paged: bool) -> List[DirectoryEntry]:
        """Execute a subtree search under the user search base.

        Args:
            query: Filter string.
            paged: Whether to request paged results.

        Returns:
            List[DirectoryEntry]: Entries with a DN, referral objects dropped.

        Raises:
            DirectoryUnavailableError: If binding or searching fails.
        """
        ldap3 = _get_ldap3()
        try:
            conn = self._service_connection()
        except ldap3.core.exceptions.LDAPException as exc:
            logger.error("LDAP connection failed: %s", exc)
            raise DirectoryUnavailableError(f"Cannot connect to LDAP server: {exc}") from exc

        search_kwargs: Dict[str, Any] = {
            "search_base": self.config.get_user_search_dn(),
            "search_filter": query,
            "search_scope": ldap3.SUBTREE,
            "attributes": ldap3.ALL_ATTRIBUTES,
            "time_limit": self.config.ldap_search_timeout,
        }
        if paged:
            search_kwargs["paged_size"] = self.config.ldap_page_size

        try:
            conn.search(**search_kwargs)
            return [self._to_entry(e) for e in conn.entries if e.entry_dn and "CN=Configuration" not in str(e.entry_dn)]
        except ldap3.core.exceptions.LDAPException as exc:
            logger.error("LDAP search failed for filter %s: %s", query, exc)
            raise DirectoryUnavailableError(f"LDAP search failed: {exc}") from exc
        finally:
            conn.unbind()

    def search(self, query: str) -> Optional[DirectoryEntry]:
        """Find the single entry matching ``query``.

        Args:
            query: Filter string.

        Returns:
            Optional[DirectoryEntry]: The entry, or None if nothing matched.

        Raises:
            ResolutionAmbiguousError: If more than one entry matched.
            DirectoryUnavailableError: If the directory cannot be searched.
        """
        entries = self._run_search(query, paged=False)
        if not entries:
            logger.info("LDAP search returned no entry for filter %s", query)
            return None
        if len(entries) > 1:
            raise ResolutionAmbiguousError(f"LDAP search matched {len(entries)} entries for filter {query}")
        return entries[0]

    def search_all(self, query: str) -> List[DirectoryEntry]:
        """Return every entry matching ``query``, using paged results.

        Args:
            query: Filter string.

        Returns:
            List[DirectoryEntry]: Matching entries.

        Raises:
            DirectoryUnavailableError: If the directory cannot be searched.
        """
        entries = self._run_search(query, paged=True)
        logger.info("LDAP search returned %d entries", len(entries))
        return entries

    def bind(self, dn: str, password: str) -> bool:
        """Verify a password by binding as ``dn``.

        Args:
            dn: Distinguished name of the user.
            password: The user's password.

        Returns:
            bool: True if the bind succeeded, False for bad credentials or any connection failure.
        """
        if not password:
            # An empty password would be an unauthenticated (anonymous) bind
            logger.warning("LDAP bind rejected: empty password for %s", dn)
            return False

        ldap3 = _get_ldap3()
        try:
            conn = self._connect(dn, password, self.config.ldap_connect_timeout)
            conn.unbind()
        except ldap3.core.exceptions.LDAPBindError:
            logger.info("LDAP bind failed for %s (invalid credentials)", dn)
            return False
        except ldap3.core.exceptions.LDAPSocketOpenError as exc:
            logger.error("LDAP server unreachable during bind for %s: %s", dn, exc)
            return False
        except Exception as exc:
            logger.error("LDAP bind error for %s: %s", dn, exc)
            return False

        logger.info("LDAP bind successful for %s", dn)
        return True

    def check_connection(self) -> Tuple[bool, Optional[str]]:
        """Check if the LDAP server is reachable using service account bind.

        Returns:
            Tuple of (connected: bool, error_message: Optional[str])
        """
        try:
            conn = self._service_connection()
            conn.unbind()
            return True, None
        except Exception as exc:
            logger.warning("LDAP connection check failed: %s", exc)
            return False, str(exc)
