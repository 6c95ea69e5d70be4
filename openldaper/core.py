"""
This module provides a layer over `ldap3 <https://ldap3.readthedocs.org/>`_ that
is intended to be more intuitive and easier to mock.

It is the only part of :py:mod:`openldaper` that talks to the directory server.
Each operation returns ``True`` or ``False`` and leaves the details of the last
failure available from :py:meth:`Connection.last_error`, so that callers can
decide how to report it.
"""

__author__ = "OpenLDAPer contributors"
__copyright__ = "Copyright 2024 OpenLDAPer contributors"

import logging, contextlib, collections.abc

import ldap3

from . import exceptions
from .results import DN_KEY


_log = logging.getLogger(__name__)


#: Filter that matches any entry
MATCH_ANY = '(objectClass=*)'

#: LDAP result code for a missing base object
NO_SUCH_OBJECT = 32


class ErrorInfo(collections.namedtuple('ErrorInfo', ['error', 'diagnostic_message', 'code'])):
    """
    Details of the last operation performed on a connection.

    Attributes:
        error: The protocol error text, e.g. ``noSuchObject``.
        diagnostic_message: The diagnostic message sent by the server.
        code: The numeric LDAP result code (``0`` for success).
    """
    def __new__(cls, error = 'success', diagnostic_message = '', code = 0):
        return super().__new__(cls, error, diagnostic_message or '', code)

    @property
    def failed(self):
        return self.code != 0


def _decode(values):
    """
    Decodes an iterable of raw values from LDAP as UTF-8.

    Values that are not valid UTF-8 (e.g. ``jpegPhoto``) are returned as bytes.
    """
    def _f(v):
        if not isinstance(v, bytes):
            return v
        try:
            return v.decode('utf-8')
        except UnicodeDecodeError:
            return v
    if isinstance(values, (bytes, str)) or not isinstance(values, collections.abc.Iterable):
        values = [values]
    return [_f(v) for v in values]

def _is_empty(value):
    """
    Returns True if a value is considered empty, False otherwise.
    """
    if isinstance(value, collections.abc.Iterable) and not isinstance(value, (str, bytes)):
        return not bool(value)
    elif value is None:
        return True
    elif value == '':
        return True
    return False


class Connection:
    """
    Represents an authenticated LDAP connection.

    Connections can be used in a `with` statement to ensure that the connection
    is closed when it is finished with::

        with Connection.create('ldap://ldap.mycompany.com', user, passwd) as conn:
            # ... do something with conn ...

    Args:
        conn: A bound ``ldap3.Connection``. It must have been created with
            ``raise_exceptions = False``.
    """
    #: Connect timeout in seconds used when a host name or URI is given
    DEFAULT_CONNECT_TIMEOUT = 5.0

    #: Scope to search entire subtree
    SEARCH_SCOPE_SUBTREE = ldap3.SUBTREE
    #: Scope to search just a single level
    SEARCH_SCOPE_SINGLE_LEVEL = ldap3.LEVEL
    #: Scope to search for a single entity (allows searching for a DN)
    SEARCH_SCOPE_ENTITY = ldap3.BASE

    def __init__(self, conn):
        self._conn = conn

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Just attempt to close the connection, but don't supress exceptions from
        # inside the with statement
        self.close()
        return False

    @contextlib.contextmanager
    def _connection(self):
        """
        Context manager for the ldap3 connection that converts ldap3 exceptions
        to the appropriate exception from the ``exceptions`` module.
        """
        try:
            yield self._conn
        except ldap3.core.exceptions.LDAPExceptionError as e:
            raise exceptions.ConnectionError(str(e)) from e
        except ldap3.core.exceptions.LDAPException as e:
            raise exceptions.LDAPError(str(e)) from e

    def last_error(self):
        """
        Returns an :py:class:`ErrorInfo` describing the result of the last
        operation.
        """
        result = self._conn.result or {}
        return ErrorInfo(
            result.get('description', 'success'),
            result.get('message', ''),
            result.get('result', 0),
        )

    def _projection(self, attributes):
        """
        Converts a list of requested attribute names into the form ldap3 wants.

        An empty list requests all attributes. The DN is always returned, so a
        request for just ``dn`` asks the server for no attributes at all.
        """
        if not attributes:
            return ldap3.ALL_ATTRIBUTES
        names = [a for a in attributes if a.lower() != DN_KEY]
        return names or ldap3.NO_ATTRIBUTES

    def _entries(self, response):
        """
        Converts an ldap3 response into rows mapping ``dn`` and lowercase
        attribute names to lists of values.
        """
        rows = []
        for entry in response or []:
            # Skip search continuation references
            if entry.get('type') != 'searchResEntry':
                continue
            attributes = entry.get('raw_attributes') or entry.get('attributes') or {}
            # An attribute without values is not present on the entry
            row = {
                k.lower(): _decode(v)
                for k, v in attributes.items()
                if not _is_empty(v)
            }
            row[DN_KEY] = entry['dn']
            rows.append(row)
        return rows

    def _search(self, base_dn, filter_str, scope, attributes):
        with self._connection() as conn:
            found = conn.search(
                search_base = base_dn,
                search_filter = filter_str,
                search_scope = scope,
                attributes = self._projection(attributes),
            )
            return found, self._entries(conn.response)

    def read(self, dn, filter_str = MATCH_ANY):
        """
        Reads the entry with the given DN.

        Args:
            dn: The DN to read.
            filter_str: The LDAP filter the entry must match (optional, defaults
                to matching anything).

        Returns:
            A list of rows, or ``None`` if the read failed (e.g. because the
            entry does not exist). See :py:meth:`last_error` for the reason.

        Raises:
            :py:class:`~.exceptions.ConnectionError` if the server cannot be reached.
        """
        _log.debug('Reading LDAP entry (dn: {}, filter: {})'.format(dn, filter_str))
        found, rows = self._search(dn, filter_str, self.SEARCH_SCOPE_ENTITY, [])
        if not found and self.last_error().failed:
            return None
        return rows

    def _listing(self, base_dn, filter_str, scope, attributes):
        found, rows = self._search(base_dn, filter_str, scope, attributes)
        if not found:
            error = self.last_error()
            # NoSuchObject means an empty search
            if error.failed and error.code != NO_SUCH_OBJECT:
                raise exceptions.SearchError(base_dn, error)
        return rows

    def search(self, base_dn, filter_str = MATCH_ANY, attributes = None):
        """
        Perform an LDAP search to find entries that match the given LDAP filter
        string anywhere in the subtree under the given base DN, including the
        base itself.

        Args:
            base_dn: The base DN for the search.
            filter_str: The LDAP filter string for the search.
            attributes: The attributes to fetch (optional, defaults to all).

        Returns:
            A list of rows mapping ``dn`` and attribute names to value lists.

        Raises:
            :py:class:`~.exceptions.SearchError` if the server rejects the search.
        """
        _log.debug('Performing LDAP search (base_dn: {}, filter: {})'.format(base_dn, filter_str))
        return self._listing(base_dn, filter_str, self.SEARCH_SCOPE_SUBTREE, attributes)

    def list(self, base_dn, filter_str = MATCH_ANY, attributes = None):
        """
        Like :py:meth:`search`, but only returns the immediate children of the
        base DN.
        """
        _log.debug('Performing LDAP list (base_dn: {}, filter: {})'.format(base_dn, filter_str))
        return self._listing(base_dn, filter_str, self.SEARCH_SCOPE_SINGLE_LEVEL, attributes)

    def add(self, dn, attributes):
        """
        Creates an entry at the given DN with the given attributes.

        Args:
            dn: The DN to create.
            attributes: The attributes to give the new entry.

        Returns:
            ``True`` on success, ``False`` on failure.
        """
        _log.debug('Creating LDAP entry at dn {}'.format(dn))
        # Prepare the attributes for insertion by removing any keys with empty values
        attributes = { k : v for k, v in attributes.items() if not _is_empty(v) }
        with self._connection() as conn:
            return bool(conn.add(dn, attributes = attributes))

    def modify_replace(self, dn, attributes):
        """
        Replaces the given attributes of the entry at the given DN. Note that
        this will **ONLY** affect attributes that are explicitly given.
        Attributes that are not given will be left untouched, and attributes
        given with no values are removed.

        Args:
            dn: The DN to update.
            attributes: The attributes to replace on the entry.

        Returns:
            ``True`` on success, ``False`` on failure.
        """
        _log.debug('Updating LDAP entry at dn {}'.format(dn))
        def to_list(value):
            if isinstance(value, collections.abc.Iterable) and not isinstance(value, (str, bytes)):
                return list(value)
            elif _is_empty(value):
                return []
            else:
                return [value]
        # Indicate that the attributes should replace any existing attributes
        changes = {
            name : [(ldap3.MODIFY_REPLACE, to_list(value))]
            for name, value in attributes.items()
        }
        with self._connection() as conn:
            return bool(conn.modify(dn, changes))

    def delete(self, dn):
        """
        Deletes the entry with the given DN.

        Returns:
            ``True`` on success, ``False`` on failure.
        """
        _log.debug('Deleting LDAP entry at dn {}'.format(dn))
        with self._connection() as conn:
            return bool(conn.delete(dn))

    def rename(self, dn, new_rdn, new_parent = None, delete_old_rdn = True):
        """
        Renames the entry with the given DN, optionally moving it below a new
        parent.

        Args:
            dn: The DN of the entry to rename.
            new_rdn: The new RDN for the entry.
            new_parent: The DN of the new parent (optional, defaults to leaving
                the entry where it is).
            delete_old_rdn: Whether the old RDN value is removed from the entry.

        Returns:
            ``True`` on success, ``False`` on failure.
        """
        _log.debug('Renaming LDAP entry at dn {} to {} under {}'.format(dn, new_rdn, new_parent))
        with self._connection() as conn:
            return bool(conn.modify_dn(
                dn, new_rdn,
                delete_old_dn = delete_old_rdn,
                new_superior = new_parent
            ))

    def close(self):
        """
        Closes the connection.

        Returns:
            ``True`` on success (should raise on failure).

        Raises:
            Any of the exceptions from :py:mod:`~.exceptions`.
        """
        _log.debug('Closing LDAP connection')
        with self._connection() as conn:
            conn.unbind()
        return True

    @classmethod
    def create(cls, host, user = '', password = '', start_tls = False,
                    connect_timeout = None):
        """
        Creates a new LDAP connection with the given arguments, using LDAP
        protocol version 3.

        If no user is given, an anonymous connection is started.

        Args:
            host: The server to connect to. Can be a server name (e.g.
                ``ldap.organisation.com``), a full LDAP URI (e.g.
                ``ldaps://ldap.organisation.com:8636``) or an ``ldap3.Server``.
            user: The DN to connect with. If not given, an anonymous connection will
                be used.
            password: The password to connect with. Must be given if `user` is given.
            start_tls: Whether to issue StartTLS before binding.
            connect_timeout: Connect timeout in seconds (optional, defaults to
                :py:const:`DEFAULT_CONNECT_TIMEOUT`).

        Returns:
            A :py:class:`Connection`.

        Raises:
            :py:class:`~.exceptions.AuthenticationError` if the credentials are
            rejected, :py:class:`~.exceptions.NoServerAvailableError` if the
            server cannot be reached.
        """
        if not isinstance(host, ldap3.Server):
            host = ldap3.Server(
                host,
                connect_timeout = connect_timeout or cls.DEFAULT_CONNECT_TIMEOUT
            )
        auto_bind = ldap3.AUTO_BIND_TLS_BEFORE_BIND if start_tls else ldap3.AUTO_BIND_NO_TLS
        try:
            _log.debug('Opening LDAP connection to {} for {}'.format(host, user))
            return cls(
                ldap3.Connection(
                    host, user = user or None, password = password or None,
                    version = 3,
                    auto_bind = auto_bind,
                    raise_exceptions = False
                )
            )
        except ldap3.core.exceptions.LDAPBindError as e:
            raise exceptions.AuthenticationError('Invalid user DN or password') from e
        except ldap3.core.exceptions.LDAPException as e:
            _log.exception('Failed to open connection to {} for {}'.format(host, user))
            raise exceptions.NoServerAvailableError(
                'Could not connect to {}'.format(host)
            ) from e
