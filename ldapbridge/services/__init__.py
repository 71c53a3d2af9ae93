# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/services/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Services Package.
Exposes the directory authentication services:
- Directory gateway and identity resolution
- Attribute synchronization and bulk import
- Authorization rules and the login pipeline
"""
