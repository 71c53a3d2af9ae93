# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

LDAP Bridge.
Authenticates application logins against an LDAP directory and keeps a
local users table in sync with it.
"""

__version__ = "0.1.0"
