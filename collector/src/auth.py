"""
Bearer token authentication for the administrative endpoint.

Validates incoming ``Authorization: Bearer {token}`` headers against the
configured ADMIN_TOKEN using constant-time comparison via
secrets.compare_digest to prevent timing attacks.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-014)

TODO:
- None
"""

import logging
import secrets

from fastapi import HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)


def verify_admin_token(token: str, expected: str) -> bool:
    """Return True when *token* matches *expected* (constant time).

    Empty tokens never match.
    """
    if not token or not expected:
        return False
    return secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


class AdminAuth:
    """FastAPI-compatible Bearer token check for administrative routes.

    Wraps HTTPBearer for OpenAPI documentation and validates the extracted
    token against the configured admin token.

    Attributes:
        admin_token: The expected bearer token.
        scheme: FastAPI HTTPBearer security scheme.
    """

    def __init__(self, admin_token: str) -> None:
        self.admin_token = admin_token
        self.scheme = HTTPBearer(auto_error=False)

    async def verify(self, request: Request) -> None:
        """FastAPI dependency that rejects requests without the admin token.

        Raises:
            HTTPException: 401 Unauthorized if the token is invalid or missing.
        """
        credentials: HTTPAuthorizationCredentials | None = await self.scheme(request)

        if credentials is None:
            raise HTTPException(
                status_code=401,
                detail="Missing authorization credentials.",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not verify_admin_token(credentials.credentials, self.admin_token):
            logger.warning("Rejected admin request with invalid token")
            raise HTTPException(
                status_code=401,
                detail="Invalid admin token.",
                headers={"WWW-Authenticate": "Bearer"},
            )
