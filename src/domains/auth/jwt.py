# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session token validation using python-jose.

Tokens are issued by the identity service; this backend only verifies them
and reads the claims the data layer needs, most importantly the tenant the
session belongs to.

Example:
    >>> from src.core.config import get_settings
    >>> decoder = SessionTokenDecoder(get_settings().jwt)
    >>> user = decoder.decode(token)
    >>> user.tenant_id
    'acme'
"""

import logging

from jose import ExpiredSignatureError, jwt
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from src.core.config.settings import JWTSettings

logger = logging.getLogger(__name__)


class SessionUser(BaseModel):
    """Claims of an authenticated session.

    Attributes:
        sub: Subject (user ID).
        tenant_id: Tenant the session belongs to. Accepts the ``tenantId``
            and ``tenant_id`` claim names.
        role: User role, if the token carries one.
        exp: Expiration timestamp.
    """

    model_config = ConfigDict(extra="ignore")

    sub: str = Field(validation_alias=AliasChoices("sub", "id"))
    tenant_id: str | None = Field(
        default=None, validation_alias=AliasChoices("tenantId", "tenant_id")
    )
    role: str | None = None
    exp: int | None = None


class JWTError(Exception):
    """Base exception for JWT operations."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid."""

    pass


class SessionTokenDecoder:
    """Verifies session tokens and extracts their claims.

    Attributes:
        _settings: JWT configuration settings.
    """

    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings

    def decode(self, token: str) -> SessionUser:
        """Decode and validate a session token.

        Args:
            token: JWT token string.

        Returns:
            SessionUser with decoded claims.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the signature or claims are invalid.
        """
        try:
            claims = jwt.decode(
                token,
                self._settings.secret_key.get_secret_value(),
                algorithms=[self._settings.algorithm],
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except Exception as e:
            logger.debug("Token decode failed: %s", str(e))
            raise InvalidTokenError(f"Invalid token: {str(e)}") from e

        try:
            return SessionUser.model_validate(claims)
        except ValidationError as e:
            raise InvalidTokenError(f"Invalid token claims: {e.error_count()} errors") from e
