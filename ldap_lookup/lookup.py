"""
Directory lookups for users and groups.

Every public operation opens its own connection, runs one search, interprets
the result code and closes the connection before returning. Lookups that find
nothing return a sentinel value instead of raising.
"""

import logging
from typing import Any, Dict, List, Optional, Mapping
from ldap3 import BASE, SUBTREE

from ldap_lookup.attributes import (
    DEFAULT_ENVELOPE_ATTRIBUTE, DirectoryEntry, first_rdn_value, parse_nested_field
)
from ldap_lookup.config import ConfigurationError, EncryptionMode, LookupConfig
from ldap_lookup.filters import Present, group_filter, member_filter, uid_filter
from ldap_lookup.ldap_client import (
    DirectoryConnection, LDAPConnectionError, build_connection, resolve_bind_dn, user_dn
)
from ldap_lookup.responses import (
    CONSTRAINT_VIOLATION, SIZE_LIMIT_EXCEEDED, SUCCESS, hint_for, trusted_entries
)

logger = logging.getLogger(__name__)

NOT_AVAILABLE = 'not available'


class LdapLookup:
    """
    Read-only user and group lookups against one configured directory.

    The configuration is fixed for the lifetime of the object; build a new
    LdapLookup from ``config.configure(...)`` to change settings.
    """

    def __init__(self, config: Optional[LookupConfig] = None, allow_anonymous: bool = False,
                 environ: Optional[Mapping[str, str]] = None):
        """
        Initialize lookups.

        Args:
            config: Lookup configuration (defaults are used when None)
            allow_anonymous: Bind anonymously when a password is missing
            environ: Environment used for the TLS toggles (defaults to os.environ)
        """
        self.config = config if config is not None else LookupConfig()
        self.allow_anonymous = allow_anonymous
        self.environ = environ

    def _connect(self) -> DirectoryConnection:
        return build_connection(self.config, allow_anonymous=self.allow_anonymous, environ=self.environ)

    def _search_user(self, uid: str, attributes: List[str]) -> List[DirectoryEntry]:
        with self._connect() as conn:
            outcome = conn.search(conn.user_base, uid_filter(uid), attributes)
        return trusted_entries(outcome)

    def _search_groups(self, search_filter, attributes: List[str]) -> List[DirectoryEntry]:
        with self._connect() as conn:
            outcome = conn.search(conn.group_base, search_filter, attributes)
        return trusted_entries(outcome)

    def fetch_simple(self, uid: str, attribute: str, default: Optional[str] = None) -> Optional[str]:
        """
        Return the first value of a user attribute.

        Args:
            uid: User id to look up
            attribute: Attribute name (case-insensitive)
            default: Returned when no entry carries the attribute

        Raises:
            DirectoryError: If the directory failed and returned nothing
        """
        for entry in self._search_user(uid, [attribute]):
            value = entry.first(attribute)
            if value is not None:
                return value
        return default

    def fetch_nested(self, uid: str, envelope_attribute: str, field_name: str) -> Optional[str]:
        """
        Return one field of a user's envelope attribute.

        The configured attribute is read first, then the stock
        umichPostalAddressData name when the configured one is absent.
        """
        attributes = [envelope_attribute]
        if envelope_attribute.lower() != DEFAULT_ENVELOPE_ATTRIBUTE.lower():
            attributes.append(DEFAULT_ENVELOPE_ATTRIBUTE)

        for entry in self._search_user(uid, attributes):
            envelope = entry.first(envelope_attribute) or entry.first(DEFAULT_ENVELOPE_ATTRIBUTE)
            if envelope is not None:
                return parse_nested_field(envelope, field_name)
        return None

    def get_simple_name(self, uid: str) -> str:
        return self.fetch_simple(uid, 'displayName', NOT_AVAILABLE)

    def get_email(self, uid: str) -> Optional[str]:
        return self.fetch_simple(uid, 'mail', None)

    def get_dept(self, uid: str) -> Optional[str]:
        """Department from the envelope's addr1 field, else the flat attribute value."""
        dept_attribute = self.config.get('dept_attribute') or DEFAULT_ENVELOPE_ATTRIBUTE
        dept = self.fetch_nested(uid, dept_attribute, 'addr1')
        if dept is None:
            dept = self.fetch_simple(uid, dept_attribute, None)
        return dept

    def uid_exist(self, uid: str) -> bool:
        for entry in self._search_user(uid, ['uid']):
            if uid in entry.values_of('uid'):
                return True
        return False

    def is_member_of_group(self, uid: str, group_name: str) -> bool:
        for entry in self._search_groups(group_filter(group_name), ['member']):
            for member in entry.values_of('member'):
                if first_rdn_value(member) == uid:
                    return True
        return False

    def get_email_distribution_list(self, group_name: str) -> Dict[str, Any]:
        """
        Describe a group and its members.

        Returns:
            ``{'group_name', 'group_email', 'members'}`` for the first matching
            group, members sorted; an empty dict when no group matched.
            When several groups share the name, the first one returned wins
        """
        group_attribute = self.config.get('group_attribute') or 'umichGroupEmail'
        entries = self._search_groups(group_filter(group_name), ['cn', group_attribute, 'member'])
        for entry in entries:
            members = [first_rdn_value(member) for member in entry.values_of('member')]
            return {
                'group_name': entry.first('cn'),
                'group_email': entry.first(group_attribute),
                'members': sorted(member for member in members if member is not None),
            }
        return {}

    def all_groups_for_user(self, uid: str) -> List[str]:
        """Names of every group listing the user's DN as a member, sorted."""
        entries = self._search_groups(member_filter(user_dn(self.config, uid)), ['cn'])
        names = [first_rdn_value(entry.dn) for entry in entries]
        return sorted(name for name in names if name is not None)

    def test_connection(self) -> Dict[str, Any]:
        """
        Probe connectivity, bind and search without raising.

        Returns:
            Diagnostic report; ``success`` is False and ``error`` and
            ``exception_kind`` are set when anything raised
        """
        report = {
            'success': False,
            'bind_dn': None,
            'connection': self._configured_parameters(),
            'bind': None,
            'search': None,
            'attributes': [],
            'suggestion': None,
        }

        try:
            report['bind_dn'] = resolve_bind_dn(self.config)
            with self._connect() as conn:
                report['bind_dn'] = conn.bind_dn
                report['connection'] = conn.get_connection_stats()

                bound = conn.bind()
                report['bind'] = {
                    'success': bound.code == SUCCESS,
                    'tolerated': bound.code == CONSTRAINT_VIOLATION,
                    'code': bound.code,
                    'message': bound.message,
                }

                probe_uid = self.config.get('diagnostic_uid') or self.config.get('username')
                if probe_uid:
                    base, probe, scope = conn.user_base, uid_filter(probe_uid), SUBTREE
                    attributes = ['uid', 'displayName', 'mail']
                else:
                    base, probe, scope = conn.base, Present('objectClass'), BASE
                    attributes = ['objectClass']

                outcome = conn.search(base, probe, attributes, size_limit=1, scope=scope)

            report['search'] = {
                'base': base,
                'filter': probe.render(),
                'code': outcome.code,
                'message': outcome.message,
                'entries': len(outcome.entries),
                'attributes': attributes,
            }
            report['attributes'] = outcome.attribute_names()
            report['success'] = outcome.code in (SUCCESS, SIZE_LIMIT_EXCEEDED) or outcome.has_data

            if not report['success']:
                code = outcome.code
            elif bound.code != SUCCESS:
                code = bound.code
            else:
                code = outcome.code
            report['suggestion'] = hint_for(code)

        except Exception as e:
            logger.debug(f"Connection test failed: {e}")
            report['success'] = False
            report['error'] = str(e)
            report['exception_kind'] = type(e).__name__
            report['suggestion'] = self._exception_hint(e)

        return report

    def _configured_parameters(self) -> Dict[str, Any]:
        encryption = self.config.get('encryption')
        if isinstance(encryption, EncryptionMode):
            encryption = encryption.value
        return {
            'host': self.config.get('host'),
            'port': self.config.get('port'),
            'base': self.config.get('base'),
            'encryption': encryption,
        }

    @staticmethod
    def _exception_hint(error: Exception) -> str:
        if isinstance(error, ConfigurationError):
            return "Fix the configuration: " + str(error)
        if isinstance(error, LDAPConnectionError):
            text = str(error).lower()
            if 'certificate' in text or 'ssl' in text or 'tls' in text:
                return (
                    "TLS negotiation failed. Check the server certificate, set "
                    "LDAP_CA_CERT_FILE to your CA bundle, or match the encryption "
                    "mode to the port (start_tls on 389, simple_tls on 636)."
                )
            return "Could not reach the directory. Check LDAP_HOST, LDAP_PORT and network access."
        return "Unexpected failure. Enable LDAP_DEBUG and retry."


def get_simple_name(config: LookupConfig, uid: str) -> str:
    return LdapLookup(config).get_simple_name(uid)


def get_email(config: LookupConfig, uid: str) -> Optional[str]:
    return LdapLookup(config).get_email(uid)


def get_dept(config: LookupConfig, uid: str) -> Optional[str]:
    return LdapLookup(config).get_dept(uid)


def uid_exist(config: LookupConfig, uid: str) -> bool:
    return LdapLookup(config).uid_exist(uid)


def is_member_of_group(config: LookupConfig, uid: str, group_name: str) -> bool:
    return LdapLookup(config).is_member_of_group(uid, group_name)


def get_email_distribution_list(config: LookupConfig, group_name: str) -> Dict[str, Any]:
    return LdapLookup(config).get_email_distribution_list(group_name)


def all_groups_for_user(config: LookupConfig, uid: str) -> List[str]:
    return LdapLookup(config).all_groups_for_user(uid)


def test_connection(config: LookupConfig) -> Dict[str, Any]:
    return LdapLookup(config).test_connection()
