"""
This module provides facilities for building search filters for listings.

Filters are written as ``attribute__lookup = value`` keywords, in the style of
`Django ORM field lookups <https://docs.djangoproject.com/en/stable/topics/db/queries/#field-lookups>`_,
and combined with ``&``, ``|`` and ``~``. Anywhere a filter string is accepted,
a node works too::

    from openldaper.filters import F

    f = F(objectClass = 'posixGroup') & ~F(memberUid__present = True)
    entry.get_children(filter = f)
"""

__author__ = "OpenLDAPer contributors"
__copyright__ = "Copyright 2024 OpenLDAPer contributors"

from collections import namedtuple
from functools import reduce
from operator import or_

import ldap3.utils.conv


def F(*args, **kwargs):
    """
    Builds a filter node from the given nodes and lookups, combined with AND.

    Positional arguments must be :py:class:`Node`\\ s. Keyword arguments take the
    form ``attribute__lookup = value``, where ``lookup`` defaults to ``exact``.
    """
    nodes = list(args)
    if any(not isinstance(n, Node) for n in nodes):
        raise ValueError('Positional arguments must be nodes')
    for key, value in kwargs.items():
        attribute, _, lookup = key.partition('__')
        nodes.append(Expression(attribute, lookup or None, value))
    if not nodes:
        raise ValueError('No arguments given')
    return nodes[0] if len(nodes) == 1 else AndNode(*nodes)


class Node:
    """
    Base class for filter nodes.

    ``&``, ``|`` and ``~`` combine nodes, and ``str(node)`` gives the compiled
    LDAP filter.
    """
    def compile(self):
        raise NotImplementedError

    def __and__(self, other):
        return AndNode(self, other)

    def __or__(self, other):
        return OrNode(self, other)

    def __invert__(self):
        return NotNode(self)

    def __str__(self):
        return self.compile()


# Maps each lookup type to its filter template
# Matching rules on the server decide case sensitivity, so the 'i' variants
# compile to the same filters
_LOOKUP_TYPES = {
    'exact'       : '({attribute}={value})',
    'iexact'      : '({attribute}={value})',
    'contains'    : '({attribute}=*{value}*)',
    'icontains'   : '({attribute}=*{value}*)',
    'startswith'  : '({attribute}={value}*)',
    'istartswith' : '({attribute}={value}*)',
    'endswith'    : '({attribute}=*{value})',
    'iendswith'   : '({attribute}=*{value})',
    'present'     : '({attribute}=*)',
}


def _escape(value):
    if isinstance(value, bytes):
        return ldap3.utils.conv.escape_bytes(value)
    return ldap3.utils.conv.escape_filter_chars(str(value))


class Expression(namedtuple('_Expression', ['field', 'lookup_type', 'value']), Node):
    """
    A single comparison of an attribute against a value.

    .. py:attribute:: field

        The attribute being compared.

    .. py:attribute:: lookup_type

        The lookup type, e.g. ``startswith``, or ``None`` for an exact match.

    .. py:attribute:: value

        The value to compare against.
    """
    def compile(self):
        lookup = self.lookup_type or 'exact'
        if lookup == 'in':
            # 'in' is an OR of exact matches
            if not self.value:
                raise ValueError("At least one value required for 'in' lookup")
            return reduce(or_, (Expression(self.field, 'exact', v) for v in self.value)).compile()
        if lookup == 'isnull':
            return Expression(self.field, 'present', not self.value).compile()
        if lookup == 'present' and not self.value:
            return NotNode(Expression(self.field, 'present', True)).compile()
        try:
            template = _LOOKUP_TYPES[lookup]
        except KeyError:
            raise ValueError("Unsupported lookup type - {}".format(lookup))
        return template.format(attribute = self.field, value = _escape(self.value))


class _CompoundNode(Node):
    OPERATOR = None

    def __init__(self, first, second, *others):
        self._children = (first, second) + others

    @property
    def children(self):
        """
        The nodes being combined.
        """
        return self._children

    def compile(self):
        return '({}{})'.format(self.OPERATOR, ''.join(c.compile() for c in self._children))


class AndNode(_CompoundNode):
    """
    Combines two or more nodes using AND.
    """
    OPERATOR = '&'

    def __and__(self, other):
        # Flatten chains of ANDs
        return AndNode(*self._children, other)


class OrNode(_CompoundNode):
    """
    Combines two or more nodes using OR.
    """
    OPERATOR = '|'

    def __or__(self, other):
        return OrNode(*self._children, other)


class NotNode(Node):
    """
    Negates a node.
    """
    def __init__(self, node):
        self._child = node

    @property
    def child(self):
        return self._child

    def __invert__(self):
        # Double negation cancels out
        return self._child

    def compile(self):
        return '(!{})'.format(self._child.compile())


def compile_filter(node):
    """
    Compiles a :py:class:`Node` into an LDAP filter string.
    """
    if not isinstance(node, Node):
        raise ValueError("Unknown node type '{}'".format(repr(node)))
    return node.compile()


def as_filter_string(filter):
    """
    Returns an LDAP filter string for ``filter``, which may already be a string
    or a :py:class:`Node`.
    """
    if isinstance(filter, Node):
        return filter.compile()
    if isinstance(filter, str):
        return filter
    raise TypeError("Filter must be a string or a Node, not '{}'".format(type(filter).__name__))
