"""
LDAP Lookup - Read-only user and group lookups against an LDAP directory.

This package resolves display names, email addresses, departments and group
memberships, either from the command line or as a library.
"""

__version__ = "1.0.0"
__author__ = "LDAP Lookup Team"

from ldap_lookup.config import ConfigurationError, EncryptionMode, LookupConfig, load_config
from ldap_lookup.ldap_client import LDAPConnectionError, build_connection
from ldap_lookup.lookup import LdapLookup
from ldap_lookup.responses import DirectoryError

__all__ = [
    'ConfigurationError',
    'DirectoryError',
    'EncryptionMode',
    'LDAPConnectionError',
    'LdapLookup',
    'LookupConfig',
    'build_connection',
    'load_config',
]
