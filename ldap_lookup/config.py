"""
Configuration loading and management for LDAP Lookup.

This module holds the immutable lookup configuration and loads it from an
optional YAML file and environment variables.
"""

import os
import yaml
import logging
from collections import OrderedDict
from enum import Enum
from types import MappingProxyType
from typing import Dict, Any, Mapping, Optional

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing required fields."""
    pass


class EncryptionMode(Enum):
    """Transport encryption applied to directory connections."""

    NONE = 'none'
    START_TLS = 'start_tls'
    SIMPLE_TLS = 'simple_tls'

    @classmethod
    def parse(cls, value: Any) -> 'EncryptionMode':
        """
        Resolve a configured value into an encryption mode.

        An unset or blank value means the default, StartTLS; plaintext is
        only chosen by an explicit ``none``.

        Raises:
            ConfigurationError: If the value names no known mode
        """
        if isinstance(value, cls):
            return value
        text = str(value or '').strip().lower()
        if not text:
            return cls.START_TLS
        for mode in cls:
            if mode.value == text:
                return mode
        raise ConfigurationError(f"Unknown encryption mode: {value!r}")


# Declared settings, in order, with their defaults
DEFAULTS = OrderedDict([
    ('host', 'ldap.umich.edu'),
    ('port', 389),
    ('base', 'dc=umich,dc=edu'),
    ('username', None),
    ('password', None),
    ('bind_dn', None),
    ('user_base', None),
    ('group_base', None),
    ('encryption', EncryptionMode.START_TLS),
    ('dept_attribute', 'umichPostalAddressData'),
    ('group_attribute', 'umichGroupEmail'),
    ('diagnostic_uid', None),
    ('connect_timeout', 10),
    ('receive_timeout', 10),
    ('debug', False),
])


class LookupConfig:
    """
    Immutable set of named lookup settings.

    Reading a setting that was never assigned yields its declared default,
    or None for names that were never declared.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        merged = OrderedDict(DEFAULTS)
        if values:
            merged.update(values)
        self._values = MappingProxyType(merged)

    def get(self, name: str) -> Any:
        return self._values.get(name)

    def configure(self, **assignments) -> 'LookupConfig':
        """
        Return a new configuration with all assignments applied together.

        The receiver is left untouched. No validation happens here; bad values
        surface when the connection builder consumes them.
        """
        values = dict(self._values)
        values.update(assignments)
        return LookupConfig(values)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)
        return self._values.get(name)

    def __eq__(self, other) -> bool:
        if not isinstance(other, LookupConfig):
            return NotImplemented
        return dict(self._values) == dict(other._values)

    def __repr__(self) -> str:
        shown = {k: ('****' if k == 'password' and v else v) for k, v in self._values.items()}
        return f"LookupConfig({shown})"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


class ConfigLoader:
    """Handles loading of lookup configuration from YAML and the environment."""

    # Environment variables mapped onto settings
    ENV_OVERRIDES = {
        'host': 'LDAP_HOST',
        'port': 'LDAP_PORT',
        'base': 'LDAP_BASE',
        'username': 'LDAP_USERNAME',
        'password': 'LDAP_PASSWORD',
        'bind_dn': 'LDAP_BIND_DN',
        'user_base': 'LDAP_USER_BASE',
        'group_base': 'LDAP_GROUP_BASE',
        'encryption': 'LDAP_ENCRYPTION',
        'dept_attribute': 'LDAP_DEPT_ATTRIBUTE',
        'group_attribute': 'LDAP_GROUP_ATTRIBUTE',
        'diagnostic_uid': 'LDAP_DIAGNOSTIC_UID',
        'debug': 'LDAP_DEBUG',
    }

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize config loader.

        Args:
            config_path: Path to a YAML file. If None, uses LDAP_LOOKUP_CONFIG env var
            environ: Environment mapping (defaults to os.environ)
        """
        self.environ = os.environ if environ is None else environ
        self.config_path = config_path or self.environ.get('LDAP_LOOKUP_CONFIG')
        self.values = {}

    def load(self) -> LookupConfig:
        """
        Load configuration from file and apply environment overrides.

        Returns:
            Immutable lookup configuration

        Raises:
            ConfigurationError: If the config file is missing or not valid YAML
        """
        if self.config_path:
            self._load_file()

        self._apply_env_overrides()

        if 'debug' in self.values:
            self.values['debug'] = _parse_bool(self.values['debug'])

        if self.config_path:
            logger.info(f"Configuration loaded from {self.config_path}")
        return LookupConfig(self.values)

    def _load_file(self):
        try:
            with open(self.config_path, 'r') as f:
                document = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")

        if not isinstance(document, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {self.config_path}")

        section = document.get('ldap', document)
        if not isinstance(section, dict):
            raise ConfigurationError("The 'ldap' section must be a mapping")
        self.values.update(section)

    def _apply_env_overrides(self):
        """Apply environment variable overrides."""
        for name, env_var in self.ENV_OVERRIDES.items():
            env_value = self.environ.get(env_var)
            if env_value:
                self.values[name] = env_value
                logger.debug(f"Applied environment override for {name}")


def load_config(config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> LookupConfig:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to config file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Loaded lookup configuration
    """
    loader = ConfigLoader(config_path, environ)
    return loader.load()
