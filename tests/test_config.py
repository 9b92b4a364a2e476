#!/usr/bin/env python3
"""
Unit tests for configuration module.

Covers the immutable configuration holder, its defaults, and loading from
YAML files and environment variables.
"""

import os
import sys
import tempfile
import unittest

import yaml

# Add the project directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ldap_lookup.config import (
    ConfigLoader, ConfigurationError, EncryptionMode, LookupConfig, load_config
)


class TestLookupConfig(unittest.TestCase):
    """Test cases for LookupConfig."""

    def test_declared_defaults(self):
        """Unset settings read as their declared defaults."""
        config = LookupConfig()
        self.assertEqual(config.get('host'), 'ldap.umich.edu')
        self.assertEqual(config.get('port'), 389)
        self.assertEqual(config.get('base'), 'dc=umich,dc=edu')
        self.assertEqual(config.get('encryption'), EncryptionMode.START_TLS)
        self.assertEqual(config.get('dept_attribute'), 'umichPostalAddressData')
        self.assertEqual(config.get('group_attribute'), 'umichGroupEmail')
        self.assertFalse(config.get('debug'))

    def test_declared_without_default_is_none(self):
        """Settings declared without a default read as None."""
        config = LookupConfig()
        for name in ('username', 'password', 'bind_dn', 'user_base', 'group_base', 'diagnostic_uid'):
            self.assertIsNone(config.get(name), name)

    def test_undeclared_name_is_none(self):
        """Names that were never declared read as None rather than failing."""
        config = LookupConfig()
        self.assertIsNone(config.get('nothing'))
        self.assertIsNone(config.nothing)

    def test_configure_returns_new_object(self):
        """configure() applies all assignments to a copy."""
        original = LookupConfig()
        updated = original.configure(host='ldap.example.com', base='dc=example,dc=com')

        self.assertIsNot(original, updated)
        self.assertEqual(original.get('host'), 'ldap.umich.edu')
        self.assertEqual(updated.get('host'), 'ldap.example.com')
        self.assertEqual(updated.get('base'), 'dc=example,dc=com')
        self.assertEqual(updated.get('port'), 389)

    def test_configure_accepts_unvalidated_values(self):
        """Malformed values are stored as-is."""
        config = LookupConfig().configure(port='not-a-port')
        self.assertEqual(config.port, 'not-a-port')

    def test_values_cannot_be_mutated(self):
        """The underlying mapping is read-only."""
        config = LookupConfig()
        with self.assertRaises(TypeError):
            config._values['host'] = 'elsewhere'

    def test_repr_hides_password(self):
        """The password never shows up in the repr."""
        config = LookupConfig({'password': 'hunter2'})
        self.assertNotIn('hunter2', repr(config))

    def test_equality(self):
        self.assertEqual(LookupConfig({'host': 'a'}), LookupConfig().configure(host='a'))
        self.assertNotEqual(LookupConfig({'host': 'a'}), LookupConfig({'host': 'b'}))


class TestEncryptionMode(unittest.TestCase):
    """Test cases for EncryptionMode.parse."""

    def test_parse_known_values(self):
        self.assertIs(EncryptionMode.parse('start_tls'), EncryptionMode.START_TLS)
        self.assertIs(EncryptionMode.parse('SIMPLE_TLS'), EncryptionMode.SIMPLE_TLS)
        self.assertIs(EncryptionMode.parse('none'), EncryptionMode.NONE)
        self.assertIs(EncryptionMode.parse(EncryptionMode.SIMPLE_TLS), EncryptionMode.SIMPLE_TLS)

    def test_unset_value_keeps_start_tls(self):
        self.assertIs(EncryptionMode.parse(None), EncryptionMode.START_TLS)
        self.assertIs(EncryptionMode.parse('  '), EncryptionMode.START_TLS)

    def test_parse_unknown_value(self):
        with self.assertRaises(ConfigurationError):
            EncryptionMode.parse('ssl3')
        with self.assertRaises(ConfigurationError):
            EncryptionMode.parse('plain')


class TestConfigLoader(unittest.TestCase):
    """Test cases for ConfigLoader."""

    def create_test_config(self, config_data) -> str:
        """Create a temporary config file with the given data."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.safe_dump(config_data, f)
            self.addCleanup(os.unlink, f.name)
            return f.name

    def test_defaults_without_file_or_env(self):
        """With nothing configured the defaults come through."""
        config = load_config(environ={})
        self.assertEqual(config, LookupConfig())

    def test_environment_overrides(self):
        """LDAP_* variables populate the matching settings."""
        environ = {
            'LDAP_HOST': 'ldap.example.com',
            'LDAP_PORT': '636',
            'LDAP_BASE': 'dc=example,dc=com',
            'LDAP_USERNAME': 'svc',
            'LDAP_PASSWORD': 'secret',
            'LDAP_ENCRYPTION': 'simple_tls',
            'LDAP_USER_BASE': 'ou=People,dc=example,dc=com',
            'LDAP_DIAGNOSTIC_UID': 'jdoe',
            'LDAP_DEBUG': 'true',
        }
        config = load_config(environ=environ)

        self.assertEqual(config.host, 'ldap.example.com')
        self.assertEqual(config.port, '636')
        self.assertEqual(config.username, 'svc')
        self.assertEqual(config.password, 'secret')
        self.assertEqual(config.encryption, 'simple_tls')
        self.assertEqual(config.user_base, 'ou=People,dc=example,dc=com')
        self.assertEqual(config.diagnostic_uid, 'jdoe')
        self.assertIs(config.debug, True)

    def test_debug_false_values(self):
        config = load_config(environ={'LDAP_DEBUG': 'no'})
        self.assertIs(config.debug, False)

    def test_yaml_file_with_ldap_section(self):
        """Settings are read from the file's ldap section."""
        path = self.create_test_config({
            'ldap': {
                'host': 'ldap.example.com',
                'base': 'dc=example,dc=com',
                'group_base': 'ou=Groups,dc=example,dc=com',
            }
        })
        config = load_config(path, environ={})

        self.assertEqual(config.host, 'ldap.example.com')
        self.assertEqual(config.group_base, 'ou=Groups,dc=example,dc=com')
        self.assertEqual(config.port, 389)

    def test_environment_beats_file(self):
        path = self.create_test_config({'ldap': {'host': 'from-file', 'port': 3389}})
        config = load_config(path, environ={'LDAP_HOST': 'from-env'})

        self.assertEqual(config.host, 'from-env')
        self.assertEqual(config.port, 3389)

    def test_config_path_from_environment(self):
        path = self.create_test_config({'host': 'flat.example.com'})
        loader = ConfigLoader(environ={'LDAP_LOOKUP_CONFIG': path})
        self.assertEqual(loader.load().host, 'flat.example.com')

    def test_missing_file(self):
        with self.assertRaises(ConfigurationError) as ctx:
            load_config('/nonexistent/ldap.yaml', environ={})
        self.assertIn('not found', str(ctx.exception))

    def test_invalid_yaml(self):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write("ldap: [unclosed\n")
        self.addCleanup(os.unlink, f.name)

        with self.assertRaises(ConfigurationError) as ctx:
            load_config(f.name, environ={})
        self.assertIn('Invalid YAML', str(ctx.exception))

    def test_non_mapping_document(self):
        path = self.create_test_config(['not', 'a', 'mapping'])
        with self.assertRaises(ConfigurationError):
            load_config(path, environ={})


if __name__ == '__main__':
    unittest.main()
