"""
Directory entries and attribute decoding.

Entries returned by a search are normalized into DirectoryEntry objects whose
attribute names compare case-insensitively. The helpers here only parse text;
they never touch the network.
"""

import collections.abc
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional
from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.dn import parse_dn

logger = logging.getLogger(__name__)

# Separator between the {key=value} segments of an envelope attribute
ENVELOPE_DELIMITER = '}:{'

DEFAULT_ENVELOPE_ATTRIBUTE = 'umichPostalAddressData'


def _as_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode('utf-8', errors='replace')
    return str(value)


class DirectoryEntry(collections.abc.Mapping):
    """
    Read-only view of one matched directory record.

    Maps lower-cased attribute names to lists of string values, in the order
    the server returned them.
    """

    def __init__(self, dn: str, attributes: Optional[Mapping[str, Any]] = None):
        self.dn = dn or ''
        values: Dict[str, List[str]] = {}
        for name, raw in (attributes or {}).items():
            if raw is None:
                continue
            if isinstance(raw, (list, tuple)):
                items = [_as_text(item) for item in raw]
            else:
                # ldap3 returns single-valued schema attributes as scalars
                items = [_as_text(raw)]
            values.setdefault(name.lower(), []).extend(items)
        self._values = values

    @classmethod
    def from_response(cls, item: Mapping[str, Any]) -> 'DirectoryEntry':
        """Build an entry from one ldap3 ``searchResEntry`` response item."""
        return cls(item.get('dn', ''), item.get('attributes') or {})

    def __getitem__(self, name: str) -> List[str]:
        return list(self._values[name.lower()])

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, name) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def values_of(self, name: str) -> List[str]:
        return list(self._values.get(name.lower(), []))

    def first(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first value of an attribute, or default when absent."""
        values = self._values.get(name.lower())
        if not values:
            return default
        return values[0]

    def __repr__(self) -> str:
        return f"DirectoryEntry({self.dn!r}, {self._values!r})"


def parse_nested_field(envelope: Optional[str], field_name: str) -> Optional[str]:
    """
    Extract one field from a ``{K1=V1}:{K2=V2}`` envelope string.

    The raw value is split on ``}:{`` and the first segment containing
    ``field_name=`` wins; its value is everything after the first ``=``.
    The outer braces are not stripped, so the first field keeps nothing
    extra on the left while the last field keeps its closing ``}``. Nothing
    is unescaped, so an ``=`` inside another segment's value that happens
    to look like ``field_name=`` is matched as well.

    Args:
        envelope: Raw attribute value
        field_name: Key to extract, e.g. ``addr1``

    Returns:
        The field value, or None when the value is empty, has no ``}:{``
        delimiter, or carries no such field
    """
    if not envelope or ENVELOPE_DELIMITER not in envelope:
        return None

    marker = f"{field_name}="
    for segment in envelope.split(ENVELOPE_DELIMITER):
        if marker in segment:
            return segment.split('=', 1)[1]
    return None


def first_rdn_value(dn: Optional[str]) -> Optional[str]:
    """
    Return the value of the leftmost RDN of a DN.

    ``uid=jdoe,ou=People,dc=example,dc=com`` yields ``jdoe``. Returns None for
    empty or unparseable DNs.
    """
    if not dn or '=' not in dn:
        return None
    try:
        components = parse_dn(dn, strip=True)
    except LDAPInvalidDnError:
        logger.debug(f"Ignoring malformed DN: {dn}")
        return None
    if not components:
        return None
    return components[0][1]
