from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status

from .config import get_settings
from .database import async_session
from .infrastructure.event_bus import EventBus
from .usecases.coordinator import BookingCoordinator
from .utils.auth import Principal, decode_access_token


@lru_cache
def get_coordinator() -> BookingCoordinator:
    settings = get_settings()
    return BookingCoordinator(
        async_session,
        EventBus(queue_size=settings.event_queue_size),
        max_capacity=settings.max_daily_capacity,
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(authorization: str | None = Header(default=None)) -> Principal:
    if authorization is None:
        raise _unauthorized("Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Bearer token required")
    settings = get_settings()
    try:
        return decode_access_token(
            token.strip(),
            secret=settings.auth_secret,
            algorithms=[settings.auth_algorithm],
        )
    except ValueError as exc:
        raise _unauthorized("Invalid or expired token") from exc


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin role required")
    return principal
