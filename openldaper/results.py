"""
This module cleans up raw result rows before they reach the data model.

A row is a mapping of attribute name (plus the special ``dn`` key) to a value
or list of values. Some transports decorate result sets with a ``count`` key at
every level, and C-style clients also index attributes by position; neither
has any meaning once the rows are Python objects.
"""

__author__ = "OpenLDAPer contributors"
__copyright__ = "Copyright 2024 OpenLDAPer contributors"

from collections.abc import Mapping


#: The reserved key used by transports to report the size of a result set
RESULT_COUNT_KEY = 'count'

#: The key holding the DN of a result row
DN_KEY = 'dn'


def strip_count(data, key = RESULT_COUNT_KEY):
    """
    Returns a copy of ``data`` with ``key`` removed from every mapping at every
    nesting level. Lists and tuples are walked, all other values are returned
    untouched.
    """
    if isinstance(data, Mapping):
        return {
            k: strip_count(v, key)
            for k, v in data.items()
            if k != key
        }
    if isinstance(data, (list, tuple)):
        return type(data)(strip_count(v, key) for v in data)
    return data


def is_positional(key):
    """
    Returns ``True`` if ``key`` is a positional (numeric) index rather than an
    attribute name.
    """
    return isinstance(key, int) or (isinstance(key, str) and key.isdigit())


def as_values(value):
    """
    Converts an attribute value as given by a caller or a transport to a list
    of values.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def clean_row(row):
    """
    Returns a copy of ``row`` keyed by lowercase attribute name, with positional
    keys dropped and every attribute value as a list. The ``dn`` key, if
    present, is kept as a plain string.
    """
    cleaned = {}
    for key, value in strip_count(row).items():
        if is_positional(key):
            continue
        name = key.lower()
        if name == DN_KEY:
            cleaned[DN_KEY] = value[0] if isinstance(value, (list, tuple)) else value
        else:
            cleaned[name] = as_values(value)
    return cleaned


def attributes_of(row):
    """
    Returns the attributes of a cleaned row, i.e. everything except the DN.
    """
    return {k: v for k, v in row.items() if k != DN_KEY}
