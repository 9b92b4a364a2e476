#!/usr/bin/env python3
"""
Unit tests for result code interpretation.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ldap_lookup.attributes import DirectoryEntry
from ldap_lookup.responses import (
    DirectoryError, ResultClass, SearchOutcome, classify, hint_for, trusted_entries
)


def make_entries(count):
    return [DirectoryEntry(f"uid=user{i},dc=example,dc=com", {'uid': [f"user{i}"]}) for i in range(count)]


class TestClassify(unittest.TestCase):
    """Test cases for classify."""

    def test_classes(self):
        self.assertIs(classify(0), ResultClass.SUCCESS)
        self.assertIs(classify(4), ResultClass.SUCCESS_WITH_CAVEAT)
        self.assertIs(classify(19), ResultClass.PERMISSION_CONSTRAINED)
        for code in (49, 50, 81, 32, 1):
            self.assertIs(classify(code), ResultClass.FATAL_IF_NO_DATA, code)

    def test_hints(self):
        self.assertIn('credentials', hint_for(49).lower())
        self.assertIn('access rights', hint_for(50).lower())
        self.assertIn('unavailable', hint_for(81).lower())
        self.assertEqual(hint_for(32), hint_for(999))


class TestTrustedEntries(unittest.TestCase):
    """Test cases for trusted_entries."""

    def test_success_trusts_everything(self):
        entries = make_entries(3)
        self.assertEqual(trusted_entries(SearchOutcome(entries, code=0)), entries)

    def test_size_limit_keeps_collected(self):
        entries = make_entries(2)
        self.assertEqual(trusted_entries(SearchOutcome(entries, code=4)), entries)
        self.assertEqual(trusted_entries(SearchOutcome([], code=4)), [])

    def test_constraint_violation_without_data_is_empty(self):
        self.assertEqual(trusted_entries(SearchOutcome([], code=19)), [])

    def test_constraint_violation_with_data(self):
        entries = make_entries(1)
        self.assertEqual(trusted_entries(SearchOutcome(entries, code=19)), entries)

    def test_invalid_credentials_without_data_raises(self):
        with self.assertRaises(DirectoryError) as ctx:
            trusted_entries(SearchOutcome([], code=49, message='invalid credentials'))
        error = ctx.exception
        self.assertEqual(error.code, 49)
        self.assertEqual(error.message, 'invalid credentials')
        self.assertIn('credentials', error.hint.lower())
        self.assertIn('Response Code: 49', str(error))

    def test_fatal_codes_with_data_return_data(self):
        entries = make_entries(2)
        for code in (49, 50, 81, 32):
            with self.assertLogs('ldap_lookup.responses', level='WARNING'):
                self.assertEqual(trusted_entries(SearchOutcome(entries, code=code)), entries)

    def test_other_code_uses_generic_hint(self):
        with self.assertRaises(DirectoryError) as ctx:
            trusted_entries(SearchOutcome([], code=32, description='noSuchObject',
                                          matched_dn='dc=example,dc=com'))
        self.assertEqual(ctx.exception.hint, hint_for(32))
        self.assertEqual(ctx.exception.description, 'noSuchObject')
        self.assertEqual(ctx.exception.matched_dn, 'dc=example,dc=com')


class TestSearchOutcome(unittest.TestCase):
    """Test cases for SearchOutcome."""

    def test_from_ldap3_result(self):
        result = {
            'result': 4, 'description': 'sizeLimitExceeded', 'message': 'limit',
            'dn': '', 'referrals': ['ldap://other/'], 'type': 'searchResDone',
        }
        outcome = SearchOutcome.from_result(make_entries(1), result)

        self.assertEqual(outcome.code, 4)
        self.assertEqual(outcome.message, 'limit')
        self.assertEqual(outcome.description, 'sizeLimitExceeded')
        self.assertIsNone(outcome.matched_dn)
        self.assertEqual(outcome.referrals, ['ldap://other/'])
        self.assertTrue(outcome.has_data)

    def test_missing_result_is_success(self):
        outcome = SearchOutcome.from_result([], None)
        self.assertEqual(outcome.code, 0)
        self.assertFalse(outcome.has_data)

    def test_attribute_names(self):
        entries = [
            DirectoryEntry('uid=a,dc=x', {'uid': ['a'], 'mail': ['a@x']}),
            DirectoryEntry('uid=b,dc=x', {'uid': ['b'], 'displayName': ['B']}),
        ]
        self.assertEqual(SearchOutcome(entries).attribute_names(), ['displayname', 'mail', 'uid'])

    def test_as_dict(self):
        summary = SearchOutcome(make_entries(2), code=19, message='constrained').as_dict()
        self.assertEqual(summary['code'], 19)
        self.assertEqual(summary['entries'], 2)


if __name__ == '__main__':
    unittest.main()
