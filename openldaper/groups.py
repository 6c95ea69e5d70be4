"""
This module provides a thin wrapper for managing the members of a POSIX group.
"""

__author__ = "OpenLDAPer contributors"
__copyright__ = "Copyright 2024 OpenLDAPer contributors"


#: The attribute holding the uids of the members of a POSIX group
MEMBER_ATTRIBUTE = 'memberuid'


class PosixGroup:
    """
    A POSIX group backed by an :py:class:`~.entry.Entry`.

    Membership changes are written to the server immediately.

    Args:
        entry: The entry for the group.
        gid: The name of the group.
    """
    def __init__(self, entry, gid):
        self._entry = entry
        self._gid = gid

    @property
    def dn(self):
        return self._entry.dn

    @property
    def entry(self):
        return self._entry

    def __eq__(self, other):
        if not isinstance(other, PosixGroup):
            return NotImplemented
        return self.dn == other.dn

    def __hash__(self):
        return hash(self.dn)

    def __str__(self):
        return self._gid

    def __repr__(self):
        return 'PosixGroup({!r}, {!r})'.format(self._entry, self._gid)

    def exists(self):
        return self._entry.exists()

    def get_members(self):
        """
        Returns the sorted list of member uids.
        """
        return sorted(self._entry.get_attribute(MEMBER_ATTRIBUTE))

    def member_exists(self, uid):
        return uid in self.get_members()

    def add_member(self, uid):
        """
        Adds a member to the group. Adding an existing member does nothing.
        """
        if self.member_exists(uid):
            return
        self._entry.append_attribute(MEMBER_ATTRIBUTE, uid)
        self._entry.write()

    def remove_member(self, uid):
        """
        Removes every occurrence of a member from the group.
        """
        self._entry.remove_attribute_entry_by_value(MEMBER_ATTRIBUTE, uid)
        self._entry.write()
