# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API Layer for the LMS backend.

This module provides the FastAPI application, the tenant request context
middleware and the system endpoints.
"""

from src.api.app import create_app

__all__ = ["create_app"]
