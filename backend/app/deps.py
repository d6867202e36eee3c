from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .infrastructure.repositories import SqlAlchemySchedulingConfigRepository
from .models import APPROVER_ROLES, User
from .utils.auth import decode_access_token
from .utils.time import business_tz

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, headers=_BEARER_CHALLENGE)


async def get_current_user_id(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> int:
    if authorization is None:
        raise _unauthorized("Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise _unauthorized("Bearer token required")

    settings = get_settings()
    try:
        claims = decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise _unauthorized("invalid token") from exc

    try:
        found = await session.scalar(select(User.id).where(User.id == claims.user_id))
    except ProgrammingError as exc:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="user store unavailable",
        ) from exc
    # Release the read transaction so handlers can open their own with session.begin().
    await session.rollback()
    if found is None:
        raise _unauthorized("user not found")
    return claims.user_id


async def get_approver_id(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> int:
    role = await session.scalar(select(User.role).where(User.id == user_id))
    await session.rollback()
    if role not in APPROVER_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="approver role required")
    return user_id


def build_config_repo(session: AsyncSession) -> SqlAlchemySchedulingConfigRepository:
    settings = get_settings()
    return SqlAlchemySchedulingConfigRepository(
        session,
        tz=business_tz(),
        min_lead_minutes=settings.min_lead_minutes,
    )
