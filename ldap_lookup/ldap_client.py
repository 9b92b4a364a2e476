"""
LDAP client for connecting to and querying LDAP directories.

This module builds directory connections from a LookupConfig and runs single
filtered searches against them, returning the collected entries together with
the server's terminal result.
"""

import json
import logging
import os
import ssl
from typing import Any, Dict, List, Mapping, Optional
from ldap3 import Server, Connection, SUBTREE, NONE, Tls
from ldap3.core.exceptions import LDAPException

from ldap_lookup.attributes import DirectoryEntry
from ldap_lookup.config import ConfigurationError, EncryptionMode, LookupConfig
from ldap_lookup.filters import Filter
from ldap_lookup.logging_setup import enable_trace
from ldap_lookup.responses import CONSTRAINT_VIOLATION, SUCCESS, SearchOutcome

logger = logging.getLogger(__name__)

# Environment-only transport toggles
TLS_VERIFY_ENV = 'LDAP_TLS_VERIFY'
CA_CERT_FILE_ENV = 'LDAP_CA_CERT_FILE'


class LDAPConnectionError(Exception):
    """Raised when the transport or TLS negotiation fails."""
    pass


def _has_value(value: Any) -> bool:
    return value is not None and str(value).strip() != ''


def user_search_base(config: LookupConfig) -> str:
    """Base DN for user searches: the user_base override, else the global base."""
    if _has_value(config.get('user_base')):
        return config.get('user_base')
    return config.get('base') or ''


def group_search_base(config: LookupConfig) -> str:
    """Base DN for group searches: the group_base override, else the global base."""
    if _has_value(config.get('group_base')):
        return config.get('group_base')
    return config.get('base') or ''


def user_dn(config: LookupConfig, uid: str) -> str:
    return f"uid={uid},{user_search_base(config)}"


def resolve_bind_dn(config: LookupConfig) -> Optional[str]:
    """
    Resolve the identity used to bind.

    Returns:
        The explicit bind_dn, else ``uid=<username>,<user base>``, else None
        for anonymous access
    """
    if _has_value(config.get('bind_dn')):
        return config.get('bind_dn')
    if _has_value(config.get('username')):
        return user_dn(config, config.get('username'))
    return None


def _tls_settings(environ: Mapping[str, str]) -> Dict[str, Any]:
    verify = environ.get(TLS_VERIFY_ENV, 'true').strip().lower() not in ('0', 'false', 'no', 'off')
    ca_cert_file = environ.get(CA_CERT_FILE_ENV) or None
    return {'verify': verify, 'ca_cert_file': ca_cert_file}


def _parse_port(value: Any) -> int:
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid LDAP port: {value!r}")
    if not 0 < port < 65536:
        raise ConfigurationError(f"Invalid LDAP port: {value!r}")
    return port


class DirectoryConnection:
    """
    One directory connection owned by a single lookup operation.

    Nothing is sent over the network until the first search (or an explicit
    bind): the connection then opens, upgrades to TLS when configured, and
    binds.
    """

    def __init__(self, config: LookupConfig, environ: Optional[Mapping[str, str]] = None,
                 allow_anonymous: bool = False):
        """
        Initialize the connection handle from configuration.

        Args:
            config: Lookup configuration
            environ: Environment used for the TLS toggles (defaults to os.environ)
            allow_anonymous: Bind anonymously when a password is missing

        Raises:
            ConfigurationError: If credentials are incomplete or settings are malformed
        """
        environ = os.environ if environ is None else environ

        self.config = config
        self.host = config.get('host')
        self.port = _parse_port(config.get('port'))
        self.base = config.get('base') or ''
        self.user_base = user_search_base(config)
        self.group_base = group_search_base(config)
        self.encryption = EncryptionMode.parse(config.get('encryption'))
        self.debug = bool(config.get('debug'))
        if self.debug:
            enable_trace(logger)

        tls = _tls_settings(environ)
        self.verify_ssl = tls['verify']
        self.ca_cert_file = tls['ca_cert_file']

        self.bind_dn = resolve_bind_dn(config)
        self.password = config.get('password')
        if self.bind_dn and not _has_value(self.password):
            if not allow_anonymous:
                raise ConfigurationError(
                    f"Password is required to bind as {self.bind_dn}; set LDAP_PASSWORD"
                )
            logger.warning(f"No password configured for {self.bind_dn}, binding anonymously")
            self.bind_dn = None
            self.password = None

        self.server = None
        self.connection = None
        self._opened = False
        self._bind_outcome = None

    @property
    def authenticated(self) -> bool:
        return self.bind_dn is not None

    def _create_tls_config(self) -> Optional[Tls]:
        """
        Create TLS configuration for the connection.

        Returns:
            Tls configuration object or None if no encryption is configured
        """
        if self.encryption is EncryptionMode.NONE:
            return None

        tls_config = {}

        if not self.verify_ssl:
            tls_config['validate'] = ssl.CERT_NONE
            logger.warning("SSL certificate verification disabled")
        else:
            tls_config['validate'] = ssl.CERT_REQUIRED

        if self.ca_cert_file:
            tls_config['ca_certs_file'] = self.ca_cert_file
            logger.debug(f"Using CA certificate file: {self.ca_cert_file}")

        try:
            return Tls(**tls_config)
        except LDAPException as e:
            raise LDAPConnectionError(f"Failed to create TLS configuration: {e}")

    def _create_connection(self):
        tls_config = self._create_tls_config()
        try:
            self.server = Server(
                self.host,
                port=self.port,
                use_ssl=self.encryption is EncryptionMode.SIMPLE_TLS,
                tls=tls_config,
                get_info=NONE,
                connect_timeout=self.config.get('connect_timeout'),
            )
        except LDAPException as e:
            raise LDAPConnectionError(f"Failed to create LDAP server: {e}")

        logger.debug(f"Created LDAP server object for {self.host}:{self.port} (encryption: {self.encryption.value})")
        self.connection = Connection(
            self.server,
            user=self.bind_dn,
            password=self.password if self.bind_dn else None,
            auto_bind=False,
            receive_timeout=self.config.get('receive_timeout'),
            raise_exceptions=False,
        )

    def open(self):
        """
        Open the transport and negotiate encryption.

        Raises:
            LDAPConnectionError: If the socket or TLS negotiation fails
        """
        if self._opened:
            return
        if self.connection is None:
            self._create_connection()

        try:
            self.connection.open()
            if self.encryption is EncryptionMode.START_TLS:
                if not self.connection.start_tls():
                    raise LDAPConnectionError(f"Failed to start TLS: {self.connection.result}")
                logger.debug("StartTLS negotiation successful")
        except LDAPException as e:
            raise LDAPConnectionError(f"Failed to connect to {self.host}:{self.port}: {e}")

        self._opened = True

    def bind(self) -> SearchOutcome:
        """
        Bind with the configured identity.

        Returns:
            Outcome of the bind (no entries)
        """
        self.open()
        try:
            self.connection.bind()
        except LDAPException as e:
            raise LDAPConnectionError(f"Bind to {self.host}:{self.port} failed: {e}")

        self._bind_outcome = SearchOutcome.from_result([], self.connection.result)
        if self._bind_outcome.code == SUCCESS:
            logger.debug(f"Bound to {self.host} as {self.bind_dn or 'anonymous'}")
        else:
            logger.debug(f"Bind as {self.bind_dn or 'anonymous'} returned code {self._bind_outcome.code}")
        return self._bind_outcome

    def search(self, base: str, search_filter: Filter, attributes: Optional[List[str]] = None,
               size_limit: int = 0, scope=SUBTREE) -> SearchOutcome:
        """
        Run one search and capture the terminal result.

        A bind rejected with code 19 is tolerated and the search still runs;
        other bind failures are returned as the outcome without searching.

        Args:
            base: Search base DN
            search_filter: Filter expression
            attributes: Attribute projection (None requests no attributes)
            size_limit: Maximum number of entries (0 for server default)
            scope: ldap3 search scope

        Returns:
            Collected entries plus the result code and message

        Raises:
            LDAPConnectionError: If the transport fails
        """
        if self.authenticated:
            bound = self._bind_outcome or self.bind()
            if bound.code not in (SUCCESS, CONSTRAINT_VIOLATION):
                return bound
        else:
            self.open()

        filter_text = search_filter.render() if isinstance(search_filter, Filter) else str(search_filter)
        try:
            self.connection.search(
                search_base=base,
                search_filter=filter_text,
                search_scope=scope,
                attributes=attributes,
                size_limit=size_limit,
            )
        except LDAPException as e:
            raise LDAPConnectionError(f"LDAP search failed: {e}")

        entries = []
        referrals = []
        for item in self.connection.response or []:
            item_type = item.get('type')
            if item_type == 'searchResEntry':
                entries.append(DirectoryEntry.from_response(item))
            elif item_type == 'searchResRef':
                referrals.extend(item.get('uri') or [])

        outcome = SearchOutcome.from_result(entries, self.connection.result)
        if referrals and not outcome.referrals:
            outcome.referrals = referrals

        if self.debug:
            trace = {
                'base': base,
                'filter': filter_text,
                'attributes': attributes or [],
                'code': outcome.code,
                'count': len(entries),
                'returned_attributes': outcome.attribute_names(),
            }
            logger.info(f"LDAP search {json.dumps(trace)}")

        return outcome

    def get_connection_stats(self) -> Dict[str, Any]:
        """
        Get connection parameters.

        Returns:
            Dictionary with connection information
        """
        return {
            'host': self.host,
            'port': self.port,
            'base': self.base,
            'user_base': self.user_base,
            'group_base': self.group_base,
            'encryption': self.encryption.value,
            'tls_verify': self.verify_ssl,
            'ca_cert_file': self.ca_cert_file,
            'authenticated': self.authenticated,
        }

    def close(self):
        """Close the connection."""
        if self.connection is not None and self._opened:
            try:
                self.connection.unbind()
                logger.debug("LDAP connection closed")
            except LDAPException as e:
                logger.warning(f"Error closing LDAP connection: {e}")
        self._opened = False
        self._bind_outcome = None
        self.connection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def build_connection(config: LookupConfig, allow_anonymous: bool = False,
                     environ: Optional[Mapping[str, str]] = None) -> DirectoryConnection:
    """
    Build a connection handle for one lookup operation.

    Args:
        config: Lookup configuration
        allow_anonymous: Fall back to an anonymous bind when the password is missing
        environ: Environment used for the TLS toggles

    Returns:
        Unopened DirectoryConnection

    Raises:
        ConfigurationError: If credentials are incomplete or settings are malformed
    """
    return DirectoryConnection(config, environ=environ, allow_anonymous=allow_anonymous)
