"""
This module defines :py:class:`Session`, which owns a connection to a directory
server and the :py:class:`~.entry.Entry` objects created through it.

Sessions guarantee that there is only one entry object for each DN, so every
part of a program that asks for the same DN sees the same staged and committed
state::

    with Session.create('ldap://ldap.example.com', 'cn=admin,dc=example,dc=com', passwd) as session:
        group = session.get_entry('cn=staff,ou=groups,dc=example,dc=com')
        group.append_attribute('memberUid', 'alice')
        group.write()

Sessions are not thread-safe. Use one session per thread, or serialise access
to a shared session.
"""

__author__ = "OpenLDAPer contributors"
__copyright__ = "Copyright 2024 OpenLDAPer contributors"

import logging

from . import dn as dnutils
from .core import Connection, MATCH_ANY
from .entry import Entry, DN_ONLY
from .exceptions import InvalidArgumentError
from .filters import as_filter_string
from .results import DN_KEY, RESULT_COUNT_KEY, clean_row, strip_count


_log = logging.getLogger(__name__)


class Session:
    """
    A connection to a directory server plus a registry of the entries that have
    been looked up through it.

    Use :py:meth:`create` or :py:meth:`from_settings` to open a new
    connection, or pass an already bound :py:class:`~.core.Connection`.

    Args:
        conn: The :py:class:`~.core.Connection` to use. The session takes
            ownership of it.
    """
    def __init__(self, conn):
        self._conn = conn
        self._entries = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def connection(self):
        """
        The :py:class:`~.core.Connection` used by the session.
        """
        return self._conn

    def close(self):
        """
        Closes the underlying connection.
        """
        return self._conn.close()

    ############################################################################
    ## Entry registry
    ############################################################################

    def _key(self, dn):
        try:
            return dnutils.normalize(dn)
        except ValueError as e:
            raise InvalidArgumentError(str(e)) from e

    def get_entry(self, dn, refresh = False):
        """
        Returns the entry for the given DN. If multiple calls are made for the
        same DN, subsequent calls return the same object as the first call.

        Args:
            dn: The DN of the entry.
            refresh: If ``True`` and the entry has been looked up before, pull
                it from the server again.

        Raises:
            :py:class:`~.exceptions.InvalidArgumentError` if ``dn`` is not a
            valid DN. Nothing is sent to the server in that case.
        """
        key = self._key(dn)
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = Entry(self._conn, dn, session = self)
        elif refresh:
            entry.pull()
        return entry

    def get_entry_of_object_class(self, dn, object_class):
        """
        Like :py:meth:`get_entry`, but returns an instance of ``object_class``,
        which must be a subclass of :py:class:`~.entry.Entry` (see
        :py:mod:`~.objectclasses`).

        Raises:
            :py:class:`~.exceptions.InvalidArgumentError` if ``object_class``
            is not an entry class, if ``dn`` is not a valid DN, or if the DN
            has already been looked up as a different class.
        """
        if not isinstance(object_class, type) or not issubclass(object_class, Entry):
            raise InvalidArgumentError(
                "'{}' does not extend Entry".format(getattr(object_class, '__name__', object_class))
            )
        key = self._key(dn)
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = object_class(self._conn, dn, session = self)
        elif not isinstance(entry, object_class):
            raise InvalidArgumentError(
                "requested class is '{}', but another entry for dn='{}' already "
                "exists of class '{}'".format(
                    object_class.__name__, dn, type(entry).__name__
                )
            )
        return entry

    def __contains__(self, dn):
        try:
            return self._key(dn) in self._entries
        except InvalidArgumentError:
            # A malformed DN can never have been registered
            return False

    ############################################################################
    ## Searching
    ############################################################################

    def _rows(self, filter, base_dn, attributes, recursive):
        filter_str = as_filter_string(filter)
        if recursive:
            rows = self._conn.search(base_dn, filter_str, attributes)
        else:
            rows = self._conn.list(base_dn, filter_str, attributes)
        return [clean_row(row) for row in self.strip_count(rows)]

    def search(self, filter, base_dn, attributes = None, recursive = True):
        """
        Searches the directory and returns the matching entries.

        Args:
            filter: An LDAP filter string or :py:class:`~.filters.Node`.
            base_dn: The search base.
            attributes: Ignored beyond the DN, since each entry pulls its own
                attributes. Accepted for symmetry with :py:meth:`search_array`.
            recursive: If ``True`` (the default) search the whole subtree,
                otherwise just the immediate children of the base.

        Returns:
            A list of :py:class:`~.entry.Entry` objects.
        """
        _log.debug('Session search (base_dn: {}, filter: {})'.format(base_dn, filter))
        return [
            self.get_entry(row[DN_KEY])
            for row in self._rows(filter, base_dn, DN_ONLY, recursive)
        ]

    def search_array(self, filter = MATCH_ANY, base_dn = '', attributes = None, recursive = True):
        """
        Like :py:meth:`search`, but returns attribute dictionaries instead of
        entries.

        Args:
            attributes: The attributes to fetch. Use ``None`` or ``[]`` to fetch
                all attributes.
        """
        return self._rows(filter, base_dn, attributes, recursive)

    @staticmethod
    def strip_count(data):
        """
        Removes the result counter that some transports add to every level of
        a result set.
        """
        return strip_count(data, RESULT_COUNT_KEY)

    ############################################################################
    ## Alternative constructors
    ############################################################################

    @classmethod
    def create(cls, host, bind_dn = '', bind_password = '', **kwargs):
        """
        Opens a new connection and returns a session for it.

        Args:
            host: The server name, LDAP URI or ``ldap3.Server`` to connect to.
            bind_dn: The DN to bind as (optional, defaults to anonymous).
            bind_password: The password for ``bind_dn``.
            \\**kwargs: Passed on to :py:meth:`.core.Connection.create`.

        Raises:
            :py:class:`~.exceptions.ConnectionError` if the connection cannot be
            established.
        """
        return cls(Connection.create(host, bind_dn, bind_password, **kwargs))

    @classmethod
    def from_settings(cls, settings):
        """
        Opens a session from a settings mapping with the keys ``url``,
        ``user``, ``password``, ``use_starttls`` and ``timeout``. Only ``url``
        is required.
        """
        try:
            url = settings['url']
        except KeyError:
            raise InvalidArgumentError("LDAP settings must include 'url'")
        return cls.create(
            url,
            settings.get('user', ''),
            settings.get('password', ''),
            start_tls = settings.get('use_starttls', False),
            connect_timeout = settings.get('timeout'),
        )
