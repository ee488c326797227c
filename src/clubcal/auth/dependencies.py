"""FastAPI bearer-token guards for admin and cron callers."""

from __future__ import annotations

import hmac

from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clubcal.config import ConfigurationError, get_settings

# auto_error=False: a missing secret must surface as 500 before any 401
_bearer = HTTPBearer(auto_error=False)


def check_bearer(credentials: HTTPAuthorizationCredentials | None, secret: str) -> None:
    """Raise 401 unless the request carries ``Bearer <secret>``."""
    presented = credentials.credentials if credentials is not None else ""
    if not presented or not hmac.compare_digest(presented.encode(), secret.encode()):
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> None:
    """
    Guard for event administration.

    Raises ConfigurationError (500) when no admin token is configured and
    401 when the bearer does not match.
    """
    settings = get_settings()
    if not settings.admin_token:
        msg = "Missing ADMIN_TOKEN"
        raise ConfigurationError(msg)
    check_bearer(credentials, settings.admin_token)


def bearer_credentials(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> HTTPAuthorizationCredentials | None:
    """Raw bearer credentials, for routes that validate configuration first."""
    return credentials
