"""
End-to-end tests against the in-memory directory provided by ldap3's MOCK_SYNC
client strategy.
"""

import unittest

import ldap3

from openldaper.core import Connection
from openldaper.exceptions import NonexistentEntryError
from openldaper.groups import PosixGroup
from openldaper.session import Session


BASE_DN = "dc=example,dc=com"
ADMIN_DN = "cn=admin,dc=example,dc=com"
PEOPLE_DN = "ou=people,dc=example,dc=com"
STAFF_DN = "ou=staff,dc=example,dc=com"
GROUPS_DN = "ou=groups,dc=example,dc=com"
ALICE_DN = "cn=alice,ou=people,dc=example,dc=com"
BOB_DN = "cn=bob,ou=people,dc=example,dc=com"
GROUP_DN = "cn=developers,ou=groups,dc=example,dc=com"


class DirectoryTestCase(unittest.TestCase):

    def setUp(self):
        server = ldap3.Server("fake_ldap_server")
        ldap3_conn = ldap3.Connection(
            server,
            user=ADMIN_DN,
            password="secret",
            client_strategy=ldap3.MOCK_SYNC,
            raise_exceptions=False,
        )
        strategy = ldap3_conn.strategy
        strategy.add_entry(ADMIN_DN, {
            "objectClass": ["top", "person"], "cn": "admin", "sn": "admin", "userPassword": "secret",
        })
        strategy.add_entry(BASE_DN, {"objectClass": ["top", "domain"], "dc": "example"})
        for ou in ("people", "staff", "groups"):
            strategy.add_entry("ou={},{}".format(ou, BASE_DN), {
                "objectClass": ["top", "organizationalUnit"], "ou": ou,
            })
        strategy.add_entry(BOB_DN, {
            "objectClass": ["top", "person"], "cn": "bob", "sn": "Jones",
        })
        strategy.add_entry(GROUP_DN, {
            "objectClass": ["top", "posixGroup"], "cn": "developers",
            "gidNumber": "5000", "memberUid": ["bob"],
        })
        ldap3_conn.bind()
        self.session = Session(Connection(ldap3_conn))

    def tearDown(self):
        self.session.close()


class TestEntryLifecycle(DirectoryTestCase):

    def test_existing_entry(self):
        bob = self.session.get_entry(BOB_DN)
        self.assertTrue(bob.exists())
        self.assertEqual(bob.get_attribute("SN"), ["Jones"])
        self.assertEqual(sorted(bob.get_attribute("objectClass")), ["person", "top"])

    def test_create(self):
        alice = self.session.get_entry(ALICE_DN)
        self.assertFalse(alice.exists())
        with self.assertRaises(NonexistentEntryError):
            alice.get_attribute("cn")
        alice.set_attribute("objectClass", ["top", "person"])
        alice.set_attribute("cn", "alice")
        alice.set_attribute("sn", "Smith")
        alice.write()
        self.assertTrue(alice.exists())
        self.assertFalse(alice.pending_changes())
        self.assertEqual(alice.get_attribute("sn"), ["Smith"])

    def test_replace(self):
        bob = self.session.get_entry(BOB_DN)
        bob.set_attribute("sn", "Brown")
        self.assertEqual(bob.get_attribute("sn"), ["Jones"])
        bob.write()
        self.assertEqual(bob.get_attribute("sn"), ["Brown"])
        self.assertFalse(bob.pending_changes())

    def test_remove_attribute(self):
        bob = self.session.get_entry(BOB_DN)
        bob.set_attribute("description", "temporary")
        bob.write()
        self.assertTrue(bob.has_attribute("description"))
        bob.remove_attribute("description")
        bob.write()
        self.assertFalse(bob.has_attribute("description"))

    def test_delete(self):
        bob = self.session.get_entry(BOB_DN)
        bob.delete()
        self.assertFalse(bob.exists())
        self.assertFalse(self.session.get_entry(PEOPLE_DN).has_children())

    def test_move(self):
        bob = self.session.get_entry(BOB_DN)
        moved = bob.move("cn=bob,{}".format(STAFF_DN))
        self.assertFalse(bob.exists())
        self.assertTrue(moved.exists())
        self.assertEqual(moved.get_attribute("sn"), ["Jones"])
        self.assertIs(moved, self.session.get_entry("cn=bob,{}".format(STAFF_DN)))


class TestTree(DirectoryTestCase):

    def test_children(self):
        base = self.session.get_entry(BASE_DN)
        children = base.get_children()
        self.assertEqual(
            sorted(c.dn.lower() for c in children),
            sorted([ADMIN_DN, PEOPLE_DN, STAFF_DN, GROUPS_DN]),
        )
        self.assertIs(self.session.get_entry(PEOPLE_DN), [c for c in children if c.dn.lower() == PEOPLE_DN][0])

    def test_num_children(self):
        people = self.session.get_entry(PEOPLE_DN)
        self.assertTrue(people.has_children())
        self.assertEqual(people.num_children(), 1)

    def test_recursive_listing_excludes_base(self):
        people = self.session.get_entry(PEOPLE_DN)
        rows = people.get_children_array(["sn"], recursive=True)
        self.assertEqual([r["dn"].lower() for r in rows], [BOB_DN])
        self.assertEqual(rows[0]["sn"], ["Jones"])

    def test_parent(self):
        bob = self.session.get_entry(BOB_DN)
        self.assertIs(bob.get_parent(), self.session.get_entry(PEOPLE_DN))

    def test_search(self):
        found = self.session.search("(sn=Jones)", BASE_DN)
        self.assertEqual(len(found), 1)
        self.assertIs(found[0], self.session.get_entry(BOB_DN))


class TestGroupMembership(DirectoryTestCase):

    def setUp(self):
        super().setUp()
        self.group = PosixGroup(self.session.get_entry(GROUP_DN), "developers")

    def test_add_member(self):
        self.group.add_member("alice")
        self.assertEqual(self.group.get_members(), ["alice", "bob"])

    def test_remove_member(self):
        self.group.remove_member("bob")
        self.assertEqual(self.group.get_members(), [])

    def test_membership_is_shared_through_the_session(self):
        self.group.add_member("alice")
        other = PosixGroup(self.session.get_entry(GROUP_DN), "developers")
        self.assertTrue(other.member_exists("alice"))
