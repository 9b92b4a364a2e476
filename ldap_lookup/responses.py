"""
Interpretation of directory result codes.

Servers may return advisory codes alongside usable results (a size limit was
hit, or a least-privilege account was constrained), so whether anything came
back is judged before the code itself.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from ldap_lookup.attributes import DirectoryEntry

logger = logging.getLogger(__name__)

SUCCESS = 0
SIZE_LIMIT_EXCEEDED = 4
CONSTRAINT_VIOLATION = 19
INVALID_CREDENTIALS = 49
INSUFFICIENT_ACCESS_RIGHTS = 50
SERVER_DOWN = 81

HINTS = {
    SUCCESS: "Connection and search are working.",
    SIZE_LIMIT_EXCEEDED: (
        "The server capped the number of results. Narrow the search "
        "(set LDAP_DIAGNOSTIC_UID for diagnostics) or ask for a higher size limit."
    ),
    CONSTRAINT_VIOLATION: (
        "The server rejected the request for this account (constraint violation). "
        "Some directories refuse explicit binds but still answer searches; check "
        "that the account is enabled for LDAP access."
    ),
    INVALID_CREDENTIALS: (
        "Invalid credentials. Check LDAP_USERNAME/LDAP_BIND_DN and LDAP_PASSWORD, "
        "and that the password is current."
    ),
    INSUFFICIENT_ACCESS_RIGHTS: (
        "Insufficient access rights. The bind identity may not read these "
        "attributes; use an authenticated service account."
    ),
    SERVER_DOWN: (
        "Server unavailable. Check LDAP_HOST, LDAP_PORT, network access and the "
        "encryption mode (start_tls on 389, simple_tls on 636)."
    ),
}

GENERIC_HINT = "Unexpected directory response. Enable LDAP_DEBUG and review the server message."


class ResultClass(Enum):
    SUCCESS = 'success'
    SUCCESS_WITH_CAVEAT = 'success_with_caveat'
    PERMISSION_CONSTRAINED = 'permission_constrained'
    FATAL_IF_NO_DATA = 'fatal_if_no_data'


class DirectoryError(Exception):
    """Raised when the directory reports a failure and returned no data."""

    def __init__(self, code: int, message: str = '', hint: Optional[str] = None,
                 description: Optional[str] = None, matched_dn: Optional[str] = None,
                 referrals: Optional[List[str]] = None):
        self.code = code
        self.message = message or ''
        self.hint = hint or hint_for(code)
        self.description = description
        self.matched_dn = matched_dn
        self.referrals = list(referrals or [])
        text = f"Response Code: {code}, Message: {self.message}"
        if description:
            text += f" ({description})"
        super().__init__(f"{text}. {self.hint}")


class SearchOutcome:
    """
    Entries collected by one search plus the operation's terminal result.

    Entries are kept even when the code is non-zero.
    """

    def __init__(self, entries: Optional[List[DirectoryEntry]] = None, code: int = SUCCESS,
                 message: str = '', description: Optional[str] = None,
                 matched_dn: Optional[str] = None, referrals: Optional[List[str]] = None):
        self.entries = list(entries or [])
        self.code = code
        self.message = message or ''
        self.description = description
        self.matched_dn = matched_dn
        self.referrals = list(referrals or [])

    @classmethod
    def from_result(cls, entries: List[DirectoryEntry], result: Optional[Dict[str, Any]]) -> 'SearchOutcome':
        """Build an outcome from an ldap3 ``connection.result`` dictionary."""
        result = result or {}
        code = result.get('result')
        return cls(
            entries,
            code=SUCCESS if code is None else int(code),
            message=result.get('message') or '',
            description=result.get('description'),
            matched_dn=result.get('dn') or None,
            referrals=result.get('referrals'),
        )

    @property
    def has_data(self) -> bool:
        return bool(self.entries)

    def attribute_names(self) -> List[str]:
        names = set()
        for entry in self.entries:
            names.update(entry.keys())
        return sorted(names)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'message': self.message,
            'description': self.description,
            'matched_dn': self.matched_dn,
            'referrals': self.referrals,
            'entries': len(self.entries),
        }

    def __repr__(self) -> str:
        return f"SearchOutcome(code={self.code}, entries={len(self.entries)})"


def classify(code: int) -> ResultClass:
    if code == SUCCESS:
        return ResultClass.SUCCESS
    if code == SIZE_LIMIT_EXCEEDED:
        return ResultClass.SUCCESS_WITH_CAVEAT
    if code == CONSTRAINT_VIOLATION:
        return ResultClass.PERMISSION_CONSTRAINED
    return ResultClass.FATAL_IF_NO_DATA


def hint_for(code: Optional[int]) -> str:
    return HINTS.get(code, GENERIC_HINT)


def trusted_entries(outcome: SearchOutcome) -> List[DirectoryEntry]:
    """
    Decide which collected entries a caller may use.

    Returns:
        The collected entries, or an empty list when the outcome means
        "no data" without being an error

    Raises:
        DirectoryError: If the code is fatal and nothing was collected
    """
    result_class = classify(outcome.code)

    if result_class is ResultClass.SUCCESS:
        return outcome.entries

    if result_class is ResultClass.SUCCESS_WITH_CAVEAT:
        if outcome.has_data:
            logger.debug(f"Size limit reached, using {len(outcome.entries)} collected entries")
        return outcome.entries

    if result_class is ResultClass.PERMISSION_CONSTRAINED:
        if not outcome.has_data:
            logger.debug(f"Code {outcome.code} with no data, treating as empty result")
        return outcome.entries

    if outcome.has_data:
        logger.warning(
            f"Directory returned code {outcome.code} ({outcome.message}) "
            f"with {len(outcome.entries)} entries, using partial results"
        )
        return outcome.entries

    raise DirectoryError(
        outcome.code,
        outcome.message,
        description=outcome.description,
        matched_dn=outcome.matched_dn,
        referrals=outcome.referrals,
    )
