"""
Tests for the object class adapters and the POSIX group wrapper.
"""

import unittest
from unittest.mock import Mock

from openldaper.core import Connection, ErrorInfo
from openldaper.entry import Entry
from openldaper.exceptions import AttributeNotFoundError, NonexistentEntryError
from openldaper.groups import PosixGroup
from openldaper.objectclasses import Attribute, GenericObjectClass, ObjectClass


GROUP_DN = "cn=staff,ou=groups,dc=example,dc=com"


class PosixAccount(ObjectClass):
    uid = Attribute()
    uid_number = Attribute("uidNumber", from_str=int)
    mail = Attribute(multivalued=True)


def connection_returning(*rows):
    conn = Mock(spec=Connection)
    results = list(rows)
    conn.read.side_effect = lambda dn, filter_str: (
        results.pop(0) if len(results) > 1 else results[0]
    )
    conn.modify_replace.return_value = True
    conn.last_error.return_value = ErrorInfo()
    return conn


class TestObjectClass(unittest.TestCase):

    def setUp(self):
        row = {
            "dn": "uid=alice,dc=example,dc=com",
            "uid": ["alice"],
            "uidnumber": ["1000"],
            "cn": ["Alice Smith"],
            "objectclass": ["top", "posixAccount"],
        }
        self.account = PosixAccount(connection_returning([row]), row["dn"])

    def test_single_valued(self):
        self.assertEqual(self.account.uid, "alice")

    def test_conversion(self):
        self.assertEqual(self.account.uid_number, 1000)

    def test_multivalued_missing_is_empty(self):
        self.assertEqual(self.account.mail, [])

    def test_single_valued_missing(self):
        class WithDescription(ObjectClass):
            description = Attribute()

        entry = WithDescription(connection_returning([{"dn": "cn=x", "cn": ["x"]}]), "cn=x")
        with self.assertRaises(AttributeNotFoundError) as ctx:
            entry.description
        self.assertEqual(ctx.exception.attribute, "description")

    def test_nonexistent_entry(self):
        account = PosixAccount(connection_returning([]), "uid=bob,dc=example,dc=com")
        with self.assertRaises(NonexistentEntryError):
            account.uid

    def test_attribute_table(self):
        self.assertEqual(
            PosixAccount.attribute_table(),
            {"uid": False, "uidnumber": False, "mail": True},
        )

    def test_is_set(self):
        self.assertTrue(self.account.is_set("UID"))
        self.assertFalse(self.account.is_set("mail"))
        # cn has a value but is not declared
        self.assertFalse(self.account.is_set("cn"))

    def test_accessors_ignore_staged_changes(self):
        self.account.set_attribute("uid", "bob")
        self.assertEqual(self.account.uid, "alice")

    def test_class_access_gives_descriptor(self):
        self.assertIsInstance(PosixAccount.uid, Attribute)
        self.assertEqual(PosixAccount.uid.attribute, "uid")

    def test_generic_object_class(self):
        row = {"dn": GROUP_DN, "cn": ["staff"], "objectClass": ["top", "posixGroup"]}
        entry = GenericObjectClass(connection_returning([row]), GROUP_DN)
        self.assertEqual(entry.cn, "staff")
        self.assertEqual(entry.objectclass, ["top", "posixGroup"])
        self.assertEqual(entry.dn, GROUP_DN)


class TestPosixGroup(unittest.TestCase):

    def group_row(self, *members):
        return [{"dn": GROUP_DN, "cn": ["staff"], "memberuid": list(members)}]

    def test_get_members_is_sorted(self):
        group = PosixGroup(Entry(connection_returning(self.group_row("c", "a", "b")), GROUP_DN), "staff")
        self.assertEqual(group.get_members(), ["a", "b", "c"])
        self.assertTrue(group.member_exists("b"))
        self.assertFalse(group.member_exists("z"))

    def test_add_member(self):
        conn = connection_returning(self.group_row("b"), self.group_row("b", "a"))
        group = PosixGroup(Entry(conn, GROUP_DN), "staff")
        group.add_member("a")
        conn.modify_replace.assert_called_once_with(GROUP_DN, {"memberuid": ["b", "a"]})
        self.assertEqual(group.get_members(), ["a", "b"])
        self.assertFalse(group.entry.pending_changes())

    def test_add_existing_member_does_nothing(self):
        conn = connection_returning(self.group_row("a"))
        PosixGroup(Entry(conn, GROUP_DN), "staff").add_member("a")
        conn.modify_replace.assert_not_called()

    def test_remove_member(self):
        conn = connection_returning(self.group_row("a", "b", "a"), self.group_row("b"))
        group = PosixGroup(Entry(conn, GROUP_DN), "staff")
        group.remove_member("a")
        conn.modify_replace.assert_called_once_with(GROUP_DN, {"memberuid": ["b"]})
        self.assertEqual(group.get_members(), ["b"])

    def test_identity(self):
        conn = connection_returning(self.group_row())
        group = PosixGroup(Entry(conn, GROUP_DN), "staff")
        same = PosixGroup(Entry(conn, GROUP_DN), "staff")
        self.assertEqual(group, same)
        self.assertEqual(hash(group), hash(same))
        self.assertNotEqual(group, "staff")
        self.assertEqual(str(group), "staff")
        self.assertEqual(group.dn, GROUP_DN)
        self.assertTrue(group.exists())
