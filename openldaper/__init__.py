"""
This is the main module for the OpenLDAPer library, an entry-oriented layer
over an LDAP directory.
"""

__author__ = "OpenLDAPer contributors"
__copyright__ = "Copyright 2024 OpenLDAPer contributors"

__version__ = "1.0.0"

from .core import Connection, ErrorInfo, MATCH_ANY
from .entry import Entry
from .exceptions import *
from .filters import F
from .groups import PosixGroup
from .objectclasses import Attribute, ObjectClass, GenericObjectClass
from .session import Session
