"""
This module provides helpers for taking distinguished names apart and putting
them back together.

Parsing is done by :py:func:`ldap3.utils.dn.parse_dn`, so an escaped comma
(``cn=Smith\\, John``) or a hex-escaped one (``cn=Smith\\2C John``) is never
treated as a separator. Malformed DNs raise ``ValueError``.
"""

__author__ = "OpenLDAPer contributors"
__copyright__ = "Copyright 2024 OpenLDAPer contributors"

import re

import ldap3.utils.dn
from ldap3.core.exceptions import LDAPInvalidDnError


_ESCAPES = re.compile(r'((?:\\[0-9a-fA-F]{2})+)|\\(.)')


def _rdns(dn):
    """
    Parses ``dn`` into a list of RDNs, each a list of ``(type, value)`` pairs.
    Values keep their escapes.
    """
    try:
        avas = ldap3.utils.dn.parse_dn(dn, escape = False, strip = True)
    except LDAPInvalidDnError as e:
        raise ValueError("Invalid DN '{}': {}".format(dn, e)) from e
    rdns, current = [], []
    for attr, value, separator in avas:
        current.append((attr, value))
        # '+' joins the next AVA onto the same RDN
        if separator != '+':
            rdns.append(current)
            current = []
    return rdns


def _join(rdns, lower_types = False):
    return ','.join(
        '+'.join(
            '{}={}'.format(attr.lower() if lower_types else attr, value)
            for attr, value in rdn
        )
        for rdn in rdns
    )


def explode(dn):
    """
    Returns the list of RDNs making up ``dn``, leaf first.

    An empty DN (the root DSE) has no RDNs.
    """
    if not dn or not dn.strip():
        return []
    return [_join([rdn]) for rdn in _rdns(dn)]


def split_rdn(dn):
    """
    Splits ``dn`` at its first unescaped comma, returning a ``(rdn, parent)``
    pair. ``parent`` is the empty string for a single-component DN.
    """
    rdns = explode(dn)
    if not rdns:
        raise ValueError('Cannot split an empty DN')
    return rdns[0], ','.join(rdns[1:])


def rdn(dn):
    """
    Returns the leading RDN of ``dn``.
    """
    return split_rdn(dn)[0]


def parent(dn):
    """
    Returns the DN of the parent of ``dn``, or ``None`` if ``dn`` has a single
    component.
    """
    return split_rdn(dn)[1] or None


def child(rdn, parent_dn):
    """
    Returns the DN for the entry with RDN ``rdn`` directly below ``parent_dn``.
    """
    rdn = rdn.strip()
    if not rdn:
        raise ValueError('RDN must not be empty')
    return '{},{}'.format(rdn, parent_dn) if parent_dn else rdn


def normalize(dn):
    """
    Returns a normalised form of ``dn`` for comparisons: attribute types are
    lowercased and whitespace around separators is removed. Values keep their
    case, since matching rules for values are defined by the schema.
    """
    if not dn or not dn.strip():
        return ''
    return _join(_rdns(dn), lower_types = True)


def escape_value(value):
    """
    Escapes a value for use on the right-hand side of an RDN.
    """
    return ldap3.utils.dn.escape_rdn(value)


def unescape(dn):
    """
    Decodes the escape sequences in ``dn`` for display, e.g. in error messages.

    Runs of hex escapes are decoded together so that multi-byte UTF-8
    characters survive.
    """
    def decode(match):
        hex_run, char = match.groups()
        if char is not None:
            return char
        raw = bytes.fromhex(hex_run.replace('\\', ''))
        return raw.decode('utf-8', errors = 'replace')
    return _ESCAPES.sub(decode, dn)
