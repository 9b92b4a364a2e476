#!/usr/bin/env python3
"""
Unit tests for search filter expressions.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ldap_lookup.filters import And, Equals, Present, group_filter, member_filter, uid_filter


class TestFilters(unittest.TestCase):
    """Test cases for filter rendering."""

    def test_equality(self):
        self.assertEqual(uid_filter('jdoe').render(), '(uid=jdoe)')

    def test_values_are_escaped(self):
        """Wildcards and parentheses in values cannot widen the search."""
        self.assertEqual(Equals('uid', 'jd*').render(), '(uid=jd\\2a)')
        self.assertEqual(Equals('cn', 'a(b)').render(), '(cn=a\\28b\\29)')

    def test_group_filter(self):
        self.assertEqual(group_filter('staff').render(), '(&(cn=staff)(objectClass=group))')

    def test_member_filter_keeps_dn_separators(self):
        rendered = member_filter('uid=jdoe,ou=People,dc=example,dc=com').render()
        self.assertEqual(rendered, '(member=uid=jdoe,ou=People,dc=example,dc=com)')

    def test_presence(self):
        self.assertEqual(Present('objectClass').render(), '(objectClass=*)')

    def test_single_term_and(self):
        self.assertEqual(And(Equals('cn', 'x')).render(), '(cn=x)')

    def test_empty_and_rejected(self):
        with self.assertRaises(ValueError):
            And()

    def test_filters_are_immutable(self):
        expression = Equals('uid', 'jdoe')
        with self.assertRaises(AttributeError):
            expression.value = 'other'

    def test_equality_and_hash(self):
        self.assertEqual(group_filter('staff'), group_filter('staff'))
        self.assertEqual(len({uid_filter('a'), uid_filter('a'), uid_filter('b')}), 2)
        self.assertEqual(str(uid_filter('a')), '(uid=a)')


if __name__ == '__main__':
    unittest.main()
