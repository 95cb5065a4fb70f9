# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Authentication domain services.

Sessions are issued by the identity service. This backend only verifies
session tokens and reads their claims.

Exports:
    SessionTokenDecoder: JWT session token validation.
    SessionUser: Claims of an authenticated session.
"""

from src.domains.auth.jwt import (
    InvalidTokenError,
    JWTError,
    SessionTokenDecoder,
    SessionUser,
    TokenExpiredError,
)

__all__ = [
    "SessionTokenDecoder",
    "SessionUser",
    "JWTError",
    "InvalidTokenError",
    "TokenExpiredError",
]
