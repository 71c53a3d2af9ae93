# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/config.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

LDAP Bridge Configuration.
Settings are read from environment variables (or a ``.env`` file) through
pydantic-settings. A module-level ``settings`` instance is shared by every
service; tests build their own ``Settings`` objects and pass them in.

Examples:
    >>> from ldapbridge.config import Settings
    >>> s = Settings(ldap_uri="ldap://localhost:389", ldap_base_dn="dc=example,dc=org")
    >>> s.auth_login_key
    'email'
    >>> s.auth_sync_attributes == {"email": "userprincipalname", "name": "cn"}
    True
"""

# Standard
from functools import lru_cache
from typing import Dict, List, Literal, Optional

# Third-Party
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LdapBridgeError(Exception):
    """Base class for every error raised by the bridge.

    Examples:
        >>> issubclass(ConfigurationMissingError, LdapBridgeError)
        True
    """


class ConfigurationMissingError(LdapBridgeError):
    """Raised when a required configuration section is absent.

    Examples:
        >>> try:
        ...     raise ConfigurationMissingError("ldap_uri is not configured")
        ... except ConfigurationMissingError as e:
        ...     str(e)
        'ldap_uri is not configured'
    """


class Settings(BaseSettings):
    """Bridge settings.

    Examples:
        >>> s = Settings(auth_rules=["deny_trashed"])
        >>> s.auth_rules
        ['deny_trashed']
        >>> s.auth_login_fallback
        False
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Directory connection
    ldap_uri: Optional[str] = Field(default=None, description="LDAP server URI, e.g. ldap://ad.example.org:389")
    ldap_base_dn: Optional[str] = Field(default=None, description="Base DN for all searches")
    ldap_bind_dn: Optional[str] = Field(default=None, description="Service account DN used for searches")
    ldap_bind_password: SecretStr = Field(default=SecretStr(""), description="Service account password")
    ldap_user_search_base: Optional[str] = Field(default=None, description="User search base, relative to ldap_base_dn")
    ldap_use_ssl: bool = False
    ldap_start_tls: bool = False
    ldap_tls_validate: bool = True
    ldap_connect_timeout: int = Field(default=5, ge=1)
    ldap_search_timeout: int = Field(default=10, ge=1)
    ldap_page_size: int = Field(default=500, ge=1)
    ldap_identifier_attribute: str = Field(default="userprincipalname", description="Directory attribute stored on local users as back-reference")

    # Authentication pipeline
    auth_login_key: str = Field(default="email", description="Local login field present in credentials")
    auth_login_attribute: str = Field(default="userprincipalname", description="Directory attribute matched against the login field")
    auth_sync_attributes: Dict[str, str] = Field(default_factory=lambda: {"email": "userprincipalname", "name": "cn"})
    auth_attribute_handlers: List[str] = Field(default_factory=list)
    auth_scopes: List[str] = Field(default_factory=lambda: ["upn"])
    auth_rules: List[str] = Field(default_factory=list)
    auth_login_fallback: bool = False
    auth_fallback_on_bind_failure: bool = False
    auth_passwords_sync: bool = False

    # Storage
    database_url: str = "sqlite:///./ldap_bridge.db"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["text", "json"] = "text"
    log_to_file: bool = False
    log_file: Optional[str] = None
    log_folder: Optional[str] = None

    @field_validator("ldap_identifier_attribute", "auth_login_attribute")
    @classmethod
    def _lowercase_attribute(cls, value: str) -> str:
        """Directory attribute names are case-insensitive; store them lower-cased.

        Args:
            value: Attribute name as configured.

        Returns:
            str: Lower-cased attribute name.
        """
        return value.strip().lower()

    @field_validator("auth_sync_attributes")
    @classmethod
    def _lowercase_sync_attributes(cls, value: Dict[str, str]) -> Dict[str, str]:
        """Lower-case the directory side of the attribute map.

        Args:
            value: Mapping of local field to directory attribute.

        Returns:
            Dict[str, str]: Normalized mapping, order preserved.
        """
        return {field_name: attribute.strip().lower() for field_name, attribute in value.items()}

    def get_user_search_dn(self) -> Optional[str]:
        """Full DN used for user searches.

        Returns:
            Optional[str]: Search base joined with the base DN.

        Examples:
            >>> Settings(ldap_base_dn="dc=example,dc=org", ldap_user_search_base="ou=Users").get_user_search_dn()
            'ou=Users,dc=example,dc=org'
            >>> Settings(ldap_base_dn="dc=example,dc=org").get_user_search_dn()
            'dc=example,dc=org'
        """
        if self.ldap_user_search_base and self.ldap_base_dn:
            return f"{self.ldap_user_search_base},{self.ldap_base_dn}"
        return self.ldap_base_dn


def require_ldap_settings(config: Optional[Settings]) -> Settings:
    """Fail fast when the directory section is not configured.

    Args:
        config: Settings to check.

    Returns:
        Settings: The same settings, for chaining.

    Raises:
        ConfigurationMissingError: If the settings or a required directory key are absent.

    Examples:
        >>> require_ldap_settings(Settings(ldap_uri="ldap://x", ldap_base_dn="dc=x")).ldap_uri
        'ldap://x'
        >>> require_ldap_settings(Settings())
        Traceback (most recent call last):
        ...
        ldapbridge.config.ConfigurationMissingError: LDAP configuration missing: ldap_uri, ldap_base_dn
    """
    if config is None:
        raise ConfigurationMissingError("LDAP configuration missing: no settings provided")
    missing = [name for name in ("ldap_uri", "ldap_base_dn") if not getattr(config, name)]
    if missing:
        raise ConfigurationMissingError(f"LDAP configuration missing: {', '.join(missing)}")
    return config


@lru_cache()
def get_settings() -> Settings:
    """Return the cached settings instance.

    Returns:
        Settings: Settings loaded from the environment.
    """
    return Settings()


settings = get_settings()
