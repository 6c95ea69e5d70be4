"""
This module provides typed accessors for entries of a known object class.

An object class is declared as a subclass of :py:class:`ObjectClass` with one
:py:class:`Attribute` per LDAP attribute. The attributes are read-only views
over :py:meth:`~.entry.Entry.get_attribute`, so they see the server state and
not staged changes::

    class PosixAccount(ObjectClass):
        uid = Attribute('uid')
        uid_number = Attribute('uidNumber', from_str = int)
        mail = Attribute('mail', multivalued = True)

    account = session.get_entry_of_object_class(dn, PosixAccount)
    account.uid_number   # 1000
"""

__author__ = "OpenLDAPer contributors"
__copyright__ = "Copyright 2024 OpenLDAPer contributors"

from .entry import Entry
from .exceptions import AttributeNotFoundError


class Attribute:
    """
    Maps a Python attribute of an :py:class:`ObjectClass` onto an LDAP
    attribute.

    :param attribute: The name of the LDAP attribute (optional, defaults to the
                      name the field is assigned to)
    :param multivalued: Indicates if the attribute can have multiple values
                        (optional, defaults to ``False``)
    :param from_str: Used to convert each value from LDAP to a Python object
                     (optional, defaults to leaving values as they are)
    """
    def __init__(self, attribute = None, multivalued = False, from_str = None):
        self.name = None
        # Always store the attribute as lower-case
        self.attribute = attribute.lower() if attribute else None
        self.multivalued = multivalued
        self.from_str = from_str or (lambda v: v)

    def __set_name__(self, owner, name):
        self.name = name
        if self.attribute is None:
            self.attribute = name.lower()

    def to_python(self, values):
        """
        Converts the values of the LDAP attribute into the value of the field.

        Multi-valued fields give a list. Single-valued fields give the first
        value and raise :py:class:`~.exceptions.AttributeNotFoundError` if there
        is none.
        """
        converted = [self.from_str(v) for v in values]
        if self.multivalued:
            return converted
        if not converted:
            raise AttributeNotFoundError(self.attribute)
        return converted[0]

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return self.to_python(instance.get_attribute(self.attribute))


class ObjectClass(Entry):
    """
    Base class for entries with a fixed set of known attributes, declared using
    :py:class:`Attribute`.
    """
    @classmethod
    def attribute_table(cls):
        """
        Returns a dictionary mapping each declared LDAP attribute name to
        ``True`` if it is multi-valued and ``False`` otherwise.
        """
        table = {}
        # Walk the MRO in reverse so subclasses can redeclare attributes
        for klass in reversed(cls.__mro__):
            for value in vars(klass).values():
                if isinstance(value, Attribute):
                    table[value.attribute] = value.multivalued
        return table

    def is_set(self, attr):
        """
        Returns ``True`` if ``attr`` is a declared attribute with at least one
        value on the server.
        """
        attr = attr.lower()
        if attr not in self.attribute_table():
            return False
        return self.has_attribute(attr) and bool(self.get_attribute(attr))


class GenericObjectClass(ObjectClass):
    """
    Accessors shared by every entry.
    """
    cn = Attribute('cn')
    objectclass = Attribute('objectClass', multivalued = True)
