"""LMS tenancy backend.

Tenant-scoped data access for a multi-tenant learning management system:
each tenant's requests are served from that tenant's own MongoDB database.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
