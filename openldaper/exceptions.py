"""
This module defines the exceptions that can be thrown by :py:mod:`openldaper`.
"""

__author__ = "OpenLDAPer contributors"
__copyright__ = "Copyright 2024 OpenLDAPer contributors"

from .dn import unescape


class LDAPError(Exception):
    """
    Raised when an LDAP error occurs.
    """


class ConnectionError(LDAPError):
    """
    Raised when there is an error with the LDAP connection itself, as opposed to
    a problem executing an operation (see :py:class:`OperationalError`).
    """


class NoServerAvailableError(ConnectionError):
    """
    Raised when a connection cannot be established to the server.
    """


class AuthenticationError(ConnectionError, ValueError):
    """
    Raised when the bind DN or password is rejected while opening a connection.
    """


class OperationalError(LDAPError):
    """
    Raised when an operational error occurs, i.e. an error that results from a
    bad request rather than a problem with the connection per-se.
    """


class NonexistentEntryError(OperationalError, ValueError):
    """
    Raised when an operation that needs server-confirmed state is attempted on
    an entry that does not exist on the server.
    """
    def __init__(self, dn):
        self.dn = dn
        super().__init__("entry '{}' does not exist!".format(unescape(dn)))


class SearchError(OperationalError):
    """
    Raised when a search or listing fails for any reason other than the base
    object not existing.
    """
    def __init__(self, base_dn, error_info):
        self.base_dn = base_dn
        self.error = error_info.error
        self.diagnostic_message = error_info.diagnostic_message
        self.code = error_info.code
        super().__init__(
            "search under '{}' failed: {} ({})".format(base_dn, self.error, self.code)
        )


class EntryOperationError(OperationalError):
    """
    Raised when the server rejects a write, delete or move of an entry.

    Attributes:
        dn: The DN of the entry.
        operation: The transport operation that was attempted, e.g. ``add``.
        error: The protocol error text.
        diagnostic_message: The diagnostic message sent by the server.
        code: The numeric LDAP result code.
        attributes: The attribute payload that was being written, if any.
    """
    def __init__(self, dn, operation, error_info, attributes = None):
        self.dn = dn
        self.operation = operation
        self.error = error_info.error
        self.diagnostic_message = error_info.diagnostic_message
        self.code = error_info.code
        self.attributes = attributes
        super().__init__(
            "LDAP error during {} of '{}': {} ({}){}".format(
                operation, dn, self.error, self.code,
                ' - {}'.format(self.diagnostic_message) if self.diagnostic_message else ''
            )
        )

    def as_dict(self):
        """
        Returns the error details as a dictionary, e.g. for structured logging.
        """
        return {
            'dn': self.dn,
            'operation': self.operation,
            'error': self.error,
            'diagnostic_message': self.diagnostic_message,
            'code': self.code,
            'attributes': self.attributes,
        }


class WriteError(EntryOperationError):
    """
    Raised when committing pending mutations (create or replace) fails.
    """


class DeleteError(EntryOperationError):
    """
    Raised when deleting an entry fails.
    """


class MoveError(EntryOperationError):
    """
    Raised when renaming/moving an entry fails.
    """


class NonUniqueDNError(LDAPError):
    """
    Raised when reading a single DN returns more than one entry. This means the
    directory (or the filter in use) is broken and should never be recovered from.
    """


class StrictProjectionError(LDAPError, KeyError):
    """
    Raised when a strict listing finds a row that lacks a required attribute.
    """
    def __init__(self, dn, attribute):
        self.dn = dn
        self.attribute = attribute
        super().__init__(
            "entry '{}' has no value for required attribute '{}'".format(dn, attribute)
        )

    def __str__(self):
        # KeyError would otherwise repr() the message
        return self.args[0]


class InvalidArgumentError(LDAPError, ValueError):
    """
    Raised when an operation is called with arguments it cannot work with.
    """


class AttributeNotFoundError(LDAPError, LookupError):
    """
    Raised when a single-valued attribute of an object class has no value.
    """
    def __init__(self, attribute):
        self.attribute = attribute
        super().__init__("attribute '{}' has no value".format(attribute))
