"""Bearer token authentication.

Tokens are issued elsewhere; this module only resolves the calling principal
from the ``sub`` (user id) and ``role`` claims of an HS256 JWT.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from academichub.config import get_settings
from academichub.search.schemas import Principal

logger = structlog.get_logger()
security = HTTPBearer(auto_error=False)


def create_access_token(principal: Principal, expires_delta: timedelta = timedelta(hours=1)) -> str:
    """Create a JWT access token for a principal."""
    settings = get_settings()
    to_encode = {
        "sub": str(principal.id),
        "role": principal.role,
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": "access",
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Principal:
    """Decode and validate a JWT access token.

    Raises:
        HTTPException: 401 if the token is invalid, expired or lacks claims.
    """
    settings = get_settings()
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        raise credentials_exception

    if payload.get("type", "access") != "access":
        raise credentials_exception

    try:
        return Principal(id=payload.get("sub"), role=payload.get("role"))
    except ValidationError:
        logger.warning("token_claims_invalid")
        raise credentials_exception


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Principal:
    """Resolve the authenticated principal from the Authorization header."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_access_token(credentials.credentials)


# Type alias for dependency injection
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
