"""Bearer token gatekeeper for the leave approval API.

Verifies an HS256 JWT from the Authorization header and returns the
requester's address from the configured identity claim (falling back to
"sub"). The resume callback does not use this: its token is the capability.

Usage:
    from src.api.auth import get_requester

    @router.post("/apply-leave")
    async def apply_leave(requester: str = Depends(get_requester)):
        ...
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from src.api.settings import get_settings
from src.common.config import AuthConfig, LeaveSettings
from src.common.logging import get_logger
from src.leave.errors import UnauthorizedError

logger = get_logger(__name__)

# auto_error=False so a missing header yields 401 (not 403)
bearer_scheme = HTTPBearer(
    description="Bearer JWT identifying the requester",
    auto_error=False,
)


def decode_identity(token: str, config: AuthConfig) -> str:
    """Verify a bearer token and extract the caller's address.

    Raises:
        UnauthorizedError: If the token is invalid, expired, or carries no identity.
    """
    if not config.jwt_secret:
        raise UnauthorizedError("JWT_SECRET not configured")

    try:
        claims = jwt.decode(token, config.jwt_secret, algorithms=[config.algorithm])
    except JWTError as e:
        raise UnauthorizedError(f"Invalid bearer token: {e}") from e

    identity = claims.get(config.identity_claim) or claims.get("sub")
    if not identity or not str(identity).strip():
        raise UnauthorizedError("Bearer token carries no identity")
    return str(identity).strip()


def issue_identity_token(
    address: str,
    config: AuthConfig,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Mint a bearer token for an address. Used by scripts and tests."""
    if not config.jwt_secret:
        raise UnauthorizedError("JWT_SECRET not configured")
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    claims = {"sub": address, config.identity_claim: address, "exp": expire}
    return jwt.encode(claims, config.jwt_secret, algorithm=config.algorithm)


def get_requester(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: LeaveSettings = Depends(get_settings),
) -> str:
    """FastAPI dependency returning the authenticated requester's address.

    Raises:
        HTTPException: 401 Unauthorized if the token is missing or invalid.
    """
    if credentials is None:
        logger.warning("Missing bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return decode_identity(credentials.credentials, settings.auth)
    except UnauthorizedError as e:
        logger.warning("Rejected bearer token", extra={"reason": str(e)})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
