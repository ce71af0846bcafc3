from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from fastapi_limiter.depends import RateLimiter
from jose import jwt, JWTError

from .config import settings
from .models import UserRole
from .schemas import Principal

api_key_header = APIKeyHeader(name="Authorization")


def decode_bearer(header_value: str | None) -> dict:
    """Claims of an 'Authorization: Bearer <jwt>' header. Raises ValueError or JWTError."""
    if not header_value:
        raise ValueError("missing Authorization header")
    scheme, _, token = header_value.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise ValueError("not a bearer token")
    return jwt.decode(token.strip(), settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


async def get_key_by_user_id_or_ip(request: Request) -> str:
    """Rate-limit bucket: the token's user id, or the client IP for anonymous callers."""
    try:
        user_id = decode_bearer(request.headers.get("Authorization")).get("sub")
    except (JWTError, ValueError):
        user_id = None
    return f"user:{user_id}" if user_id else request.client.host


async def _no_rate_limit():
    return None


def rate_limit(times: int, minutes: int = 1):
    """Per-user (or per-IP) request limit, unless rate limiting is switched off."""
    if not settings.RATE_LIMIT_ENABLED:
        return _no_rate_limit
    return RateLimiter(times=times, minutes=minutes, identifier=get_key_by_user_id_or_ip)


async def get_current_principal(
        token: Annotated[str, Depends(api_key_header)]
) -> Principal:
    """
    Resolves the caller from the bearer JWT.

    The auth service puts the user id in `sub` and the role in `role`; both are
    trusted as issued. Tokens without a role belong to plain users.
    """
    try:
        claims = decode_bearer(token)
        user_id = int(claims["sub"])
        role = UserRole(claims.get("role", UserRole.USER.value))
    except (JWTError, ValueError, TypeError, KeyError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Principal(user_id=user_id, role=role)
