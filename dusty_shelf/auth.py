"""
Bearer token authentication for the Dusty Shelf API.
"""

from typing import Optional

import jwt
import structlog
from fastapi import Request, Security
from fastapi.security import APIKeyHeader
from pydantic import ValidationError

from dusty_shelf.errors import UnauthorizedError
from dusty_shelf.models import UserClaims

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "
ALGORITHM = "HS256"

# Declared as an API key header so the docs UI lets users paste "Bearer <token>"
authorization_header = APIKeyHeader(
    name="Authorization",
    scheme_name="DSUser",
    description="Requires a Bearer Token to Access.",
    auto_error=False,
)


class AuthGuard:
    """Turns an ``Authorization`` header into verified user claims."""

    def __init__(self, secret: str, algorithm: str = ALGORITHM):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm

    def authenticate(self, authorization: Optional[str]) -> UserClaims:
        """
        Authenticate a request from its ``Authorization`` header value.

        Args:
            authorization: Raw header value, None when the header is absent

        Returns:
            Decoded user claims

        Raises:
            UnauthorizedError: If the header is missing, malformed or the token is invalid
        """
        if authorization is None:
            logger.warning("Missing Authorization header")
            raise UnauthorizedError()

        if not authorization.startswith(BEARER_PREFIX):
            logger.warning("Authorization header is not a bearer token")
            raise UnauthorizedError()

        return self.decode(authorization[len(BEARER_PREFIX):])

    def decode(self, token: str) -> UserClaims:
        """Verify the signature and expiry of ``token`` and return its claims."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["exp"], "verify_aud": False},
            )
        except jwt.InvalidTokenError as e:
            logger.warning("Rejected bearer token", reason=type(e).__name__)
            raise UnauthorizedError() from e

        try:
            return UserClaims(**payload)
        except ValidationError as e:
            logger.warning("Bearer token is missing user claims", error_count=e.error_count())
            raise UnauthorizedError() from e

    def issue(self, claims: UserClaims) -> str:
        """Sign ``claims`` with this guard's secret."""
        return create_access_token(claims, self._secret, self.algorithm)


def create_access_token(claims: UserClaims, secret: str, algorithm: str = ALGORITHM) -> str:
    """
    Encode user claims into a signed JWT.

    Args:
        claims: Claims to encode
        secret: HMAC secret
        algorithm: Signing algorithm

    Returns:
        Encoded token
    """
    return jwt.encode(claims.model_dump(), secret, algorithm=algorithm)


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Security(authorization_header),
) -> UserClaims:
    """FastAPI dependency guarding every protected route."""
    guard: AuthGuard = request.app.state.auth_guard
    claims = guard.authenticate(authorization)
    structlog.contextvars.bind_contextvars(user_id=claims.id)
    return claims
