"""
Search filter expressions.

Filters are small immutable trees of equality and AND nodes, rendered to
RFC 4515 text with assertion values escaped by ldap3.
"""

from ldap3.utils.conv import escape_filter_chars


class Filter:
    """Base class for filter expressions."""

    def render(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.render()


class Equals(Filter):
    """Equality assertion ``(attribute=value)``."""

    __slots__ = ('attribute', 'value')

    def __init__(self, attribute: str, value: str):
        object.__setattr__(self, 'attribute', attribute)
        object.__setattr__(self, 'value', value)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def render(self) -> str:
        return f"({self.attribute}={escape_filter_chars(str(self.value))})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Equals) and (self.attribute, self.value) == (other.attribute, other.value)

    def __hash__(self) -> int:
        return hash(('eq', self.attribute, self.value))

    def __repr__(self) -> str:
        return f"Equals({self.attribute!r}, {self.value!r})"


class Present(Filter):
    """Presence assertion ``(attribute=*)``."""

    __slots__ = ('attribute',)

    def __init__(self, attribute: str):
        object.__setattr__(self, 'attribute', attribute)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def render(self) -> str:
        return f"({self.attribute}=*)"

    def __eq__(self, other) -> bool:
        return isinstance(other, Present) and self.attribute == other.attribute

    def __hash__(self) -> int:
        return hash(('present', self.attribute))

    def __repr__(self) -> str:
        return f"Present({self.attribute!r})"


class And(Filter):
    """Conjunction of two or more filters."""

    __slots__ = ('terms',)

    def __init__(self, *terms: Filter):
        if not terms:
            raise ValueError("And() needs at least one term")
        object.__setattr__(self, 'terms', tuple(terms))

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def render(self) -> str:
        if len(self.terms) == 1:
            return self.terms[0].render()
        return "(&" + "".join(term.render() for term in self.terms) + ")"

    def __eq__(self, other) -> bool:
        return isinstance(other, And) and self.terms == other.terms

    def __hash__(self) -> int:
        return hash(('and', self.terms))

    def __repr__(self) -> str:
        return f"And{self.terms!r}"


def uid_filter(uid: str) -> Equals:
    return Equals('uid', uid)


def group_filter(group_name: str) -> And:
    """Filter matching a group object by its common name."""
    return And(Equals('cn', group_name), Equals('objectClass', 'group'))


def member_filter(member_dn: str) -> Equals:
    return Equals('member', member_dn)

