"""
This module defines :py:class:`Entry`, the representation of a single object in
the directory.

An entry keeps two pieces of state:

* the attributes of the entry as they were on the server the last time they
  were pulled, or ``None`` if the entry did not exist, and
* the attribute values that have been staged locally but not yet written.

Reads only ever see the first, mutators only ever touch the second, and
:py:meth:`Entry.write` turns the second into the first by committing to the
server and pulling the result back::

    entry = session.get_entry('cn=alice,ou=people,dc=example,dc=com')
    entry.set_attribute('objectClass', ['person'])
    entry.set_attribute('cn', 'alice')
    entry.set_attribute('sn', 'Smith')
    entry.write()
"""

__author__ = "OpenLDAPer contributors"
__copyright__ = "Copyright 2024 OpenLDAPer contributors"

import logging

from . import dn as dnutils
from .core import MATCH_ANY
from .exceptions import (
    NonexistentEntryError,
    NonUniqueDNError,
    WriteError,
    DeleteError,
    MoveError,
    StrictProjectionError,
    InvalidArgumentError,
)
from .filters import as_filter_string
from .results import DN_KEY, as_values, attributes_of, clean_row


_log = logging.getLogger(__name__)


#: Projection that fetches nothing but the DN of each row
DN_ONLY = [DN_KEY]


class Entry:
    """
    Represents one entry in an LDAP server, identified by its DN.

    Entries pull their state from the server when they are created, so creating
    an entry object for a DN that does not exist is fine: :py:meth:`exists`
    will just return ``False`` until the entry is written.

    Within a :py:class:`~.session.Session`, entries should be obtained using
    :py:meth:`~.session.Session.get_entry` rather than created directly, so
    that there is only ever one object for each DN.

    Args:
        conn: The :py:class:`~.core.Connection` to use.
        dn: The distinguished name of the entry.
        session: The session that owns the entry (optional). Related entries
            (parent, children, move destination) are looked up through it.
    """
    def __init__(self, conn, dn, session = None):
        self._conn = conn
        self._dn = dn
        self._session = session
        # Attributes as last seen on the server, or None if it does not exist
        self._object = None
        # Staged attribute values, or None if nothing is staged
        self._mods = None
        self.pull()

    def __repr__(self):
        return '{}({!r})'.format(type(self).__name__, self._dn)

    ############################################################################
    ## Server state
    ############################################################################

    def pull(self):
        """
        Pulls the entry from the server, replacing the cached server state.

        Returns:
            ``True`` if the entry was read, ``False`` if the read failed (in
            which case the entry is considered not to exist).

        Raises:
            :py:class:`~.exceptions.NonUniqueDNError` if more than one entry was
            returned for the DN.
        """
        rows = self._conn.read(self._dn, MATCH_ANY)
        if rows is None:
            self._object = None
            return False
        if len(rows) > 1:
            raise NonUniqueDNError(
                "FATAL: read of '{}' returned {} entries".format(self._dn, len(rows))
            )
        self._object = attributes_of(clean_row(rows[0])) if rows else None
        return True

    refresh = pull

    @property
    def dn(self):
        """
        The distinguished name of the entry.
        """
        return self._dn

    @property
    def rdn(self):
        """
        The relative distinguished name of the entry.
        """
        return dnutils.rdn(self._dn)

    @property
    def session(self):
        return self._session

    def exists(self):
        """
        Returns ``True`` if the entry exists on the server. Changes that have not
        been written don't count.
        """
        return self._object is not None

    def pending_changes(self):
        """
        Returns ``True`` if there are changes that have not been written.
        """
        return self._mods is not None

    def _require_existence(self):
        if not self.exists():
            raise NonexistentEntryError(self._dn)

    ############################################################################
    ## Reading attributes
    ############################################################################

    def get_attribute(self, attr):
        """
        Returns the values of an attribute as they are on the server.

        Pending changes are not taken into account.

        Returns:
            A list of values, empty if the entry does not have the attribute.

        Raises:
            :py:class:`~.exceptions.NonexistentEntryError` if the entry does
            not exist.
        """
        self._require_existence()
        return list(self._object.get(attr.lower(), []))

    def get_attributes(self):
        """
        Returns all the attributes of the entry as they are on the server, in a
        form suitable for :py:meth:`set_attributes`.

        Raises:
            :py:class:`~.exceptions.NonexistentEntryError` if the entry does
            not exist.
        """
        self._require_existence()
        return { k: list(v) for k, v in self._object.items() }

    def has_attribute(self, attr):
        """
        Returns ``True`` if the entry has the attribute on the server. A missing
        entry has no attributes.
        """
        return self.exists() and attr.lower() in self._object

    def attribute_value_exists(self, attr, value):
        """
        Returns ``True`` if ``value`` is one of the server values of ``attr``.
        """
        return value in self.get_attribute(attr)

    ############################################################################
    ## Staging changes
    ############################################################################

    def _stage(self, attr, values):
        if self._mods is None:
            self._mods = {}
        self._mods[attr.lower()] = values

    def set_attribute(self, attr, value):
        """
        Stages new values for an attribute, overwriting any existing values.

        Args:
            attr: The attribute name.
            value: A single value or a list of values.
        """
        self._stage(attr, as_values(value))

    def append_attribute(self, attr, value):
        """
        Stages values to be added to an attribute. Values are not deduplicated.

        If the attribute is already staged, the staged list is the base: after
        :py:meth:`set_attribute` or :py:meth:`remove_attribute` the server
        values are not brought back. Otherwise the server values are the base.

        Args:
            attr: The attribute name.
            value: A single value or a list of values.
        """
        attr = attr.lower()
        if self._mods and attr in self._mods:
            # Staged values already start from the server values
            current = self._mods[attr]
        else:
            current = self._object.get(attr, []) if self.exists() else []
        self._stage(attr, list(current) + as_values(value))

    def set_attributes(self, attributes):
        """
        Replaces all staged changes with the given mapping of attribute name to
        values. An empty mapping discards all staged changes.
        """
        mods = { k.lower(): as_values(v) for k, v in attributes.items() }
        self._mods = mods or None

    def append_attributes(self, attributes):
        """
        Calls :py:meth:`append_attribute` for each item in the given mapping.
        """
        for attr, value in attributes.items():
            self.append_attribute(attr, value)

    def remove_attribute(self, attr):
        """
        Stages the removal of all values of an attribute.
        """
        self._stage(attr, [])

    def remove_attribute_entry_by_value(self, attr, value):
        """
        Stages the server values of an attribute with every occurrence of
        ``value`` removed.
        """
        current = self._object.get(attr.lower(), []) if self.exists() else []
        self._stage(attr, [v for v in current if v != value])

    ############################################################################
    ## Committing changes
    ############################################################################

    def write(self):
        """
        Writes the staged changes to the server.

        If the entry does not exist, it is created with the staged attributes.
        Otherwise the staged attributes replace the attributes on the server.

        Raises:
            :py:class:`~.exceptions.WriteError` if the server rejects the
            change. The staged changes are kept so the write can be retried.
        """
        if not self._mods:
            return
        if self.exists():
            operation = 'modify_replace'
            success = self._conn.modify_replace(self._dn, self._mods)
        else:
            operation = 'add'
            success = self._conn.add(self._dn, self._mods)
        if not success:
            error = self._conn.last_error()
            _log.debug('{} of {} failed: {}'.format(operation, self._dn, error))
            raise WriteError(self._dn, operation, error, dict(self._mods))
        # Pull before clearing so that the changes are still staged if it fails
        self.pull()
        self._mods = None

    def delete(self):
        """
        Deletes the entry from the server. There is no need to call
        :py:meth:`write`.

        Raises:
            :py:class:`~.exceptions.DeleteError` if the server rejects the
            delete.
        """
        if not self.exists():
            return
        if not self._conn.delete(self._dn):
            raise DeleteError(self._dn, 'delete', self._conn.last_error())
        self._mods = None
        self.pull()

    def move(self, destination):
        """
        Moves the entry to a new DN.

        This entry object stays at the old DN (and will no longer exist).

        Args:
            destination: The new DN for the entry.

        Returns:
            The entry object for the new DN.

        Raises:
            :py:class:`~.exceptions.MoveError` if the server rejects the move.
        """
        new_rdn, new_parent = dnutils.split_rdn(destination)
        if not self._conn.rename(self._dn, new_rdn, new_parent or None, True):
            raise MoveError(self._dn, 'rename', self._conn.last_error())
        self.pull()
        return self._lookup(destination, refresh = True)

    ############################################################################
    ## Navigating the tree
    ############################################################################

    def _lookup(self, dn, refresh = False):
        """
        Returns the entry for ``dn``, through the session if there is one.
        """
        if self._session is not None:
            return self._session.get_entry(dn, refresh = refresh)
        return Entry(self._conn, dn)

    def get_parent(self):
        """
        Returns the entry for the immediate parent of this entry, or ``None``
        if the DN has a single component.
        """
        parent_dn = dnutils.parent(self._dn)
        return self._lookup(parent_dn) if parent_dn else None

    def get_child(self, rdn):
        """
        Returns the entry for the child with the given RDN. The child does not
        need to exist.
        """
        return self._lookup(dnutils.child(rdn, self._dn))

    def get_children_array(self, attributes = None, recursive = False, filter = MATCH_ANY):
        """
        Returns the children of the entry as attribute dictionaries.

        Args:
            attributes: The attributes to fetch. Use ``None`` or ``[]`` to fetch
                all attributes, or ``['dn']`` to fetch just the DNs.
            recursive: If ``True``, return all descendants rather than just the
                immediate children.
            filter: An LDAP filter string or :py:class:`~.filters.Node` the
                children must match.

        Returns:
            A list of dictionaries mapping ``dn`` and lowercase attribute names
            to lists of values.
        """
        filter_str = as_filter_string(filter)
        if recursive:
            rows = self._conn.search(self._dn, filter_str, attributes)
        else:
            rows = self._conn.list(self._dn, filter_str, attributes)
        # A subtree search includes the base entry itself
        own_dn = dnutils.normalize(self._dn)
        return [
            row for row in map(clean_row, rows)
            if dnutils.normalize(row[DN_KEY]) != own_dn
        ]

    def get_children_array_strict(self, attributes, recursive = False,
                                        filter = MATCH_ANY, defaults = None):
        """
        Like :py:meth:`get_children_array`, but guarantees that every requested
        attribute is present on every row.

        Args:
            attributes: The attributes to fetch. At least one is required.
            recursive: See :py:meth:`get_children_array`.
            filter: See :py:meth:`get_children_array`.
            defaults: A mapping of attribute name to the value to use when a
                row is missing that attribute. Attributes without a default are
                mandatory.

        Raises:
            :py:class:`~.exceptions.InvalidArgumentError` if no attributes are
            requested.
            :py:class:`~.exceptions.StrictProjectionError` if a row is missing
            a mandatory attribute.
        """
        if isinstance(attributes, str):
            raise InvalidArgumentError('attributes must be a list of names, not a string')
        if not attributes:
            raise InvalidArgumentError('at least one attribute must be requested')
        defaults = { k.lower(): as_values(v) for k, v in (defaults or {}).items() }
        names = [a.lower() for a in attributes if a.lower() != DN_KEY]
        rows = self.get_children_array(attributes, recursive, filter)
        for row in rows:
            for name in names:
                if name in row:
                    continue
                if name not in defaults:
                    raise StrictProjectionError(row[DN_KEY], name)
                row[name] = list(defaults[name])
        return rows

    def get_children(self, recursive = False, filter = MATCH_ANY):
        """
        Returns the children of the entry as :py:class:`Entry` objects.

        See :py:meth:`get_children_array` for the arguments.
        """
        return [
            self._lookup(row[DN_KEY])
            for row in self.get_children_array(DN_ONLY, recursive, filter)
        ]

    def has_children(self):
        """
        Returns ``True`` if the entry has any children.
        """
        return bool(self.get_children_array(DN_ONLY))

    def num_children(self, recursive = False):
        """
        Returns the number of children (or descendants, if ``recursive``) of the
        entry.
        """
        return len(self.get_children_array(DN_ONLY, recursive))
