"""Identity business logic layer."""

from __future__ import annotations

from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import RoleEnum
from app.core.security import bearer_scheme, decode_token
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.shared.exceptions import UnauthorizedException
from app.shared.utils import resolve_timezone

settings = get_settings()


class IdentityService:
    """Resolves bearer tokens to active parents, tutors and admins."""

    def __init__(self, repository: IdentityRepository) -> None:
        self.repository = repository

    async def ensure_default_roles(self) -> None:
        """Ensure all default roles exist."""
        for role_name in (RoleEnum.PARENT, RoleEnum.TUTOR, RoleEnum.ADMIN):
            role = await self.repository.get_role_by_name(role_name)
            if role is None:
                await self.repository.create_role(role_name)

    async def get_user_from_access_token(self, token: str) -> User:
        """Resolve user from access token."""
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise UnauthorizedException("Invalid access token")

        subject = payload.get("sub")
        if not subject:
            raise UnauthorizedException("Token subject is missing")

        user = await self.repository.get_user_by_id(UUID(subject))
        if user is None:
            raise UnauthorizedException("User not found")
        if not user.is_active:
            raise UnauthorizedException("User is inactive")

        return user


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return IdentityService(IdentityRepository(session))


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User:
    """Resolve currently authenticated user from bearer token."""
    return await service.get_user_from_access_token(credentials.credentials)


def user_timezone(user: User) -> ZoneInfo:
    """Zone the user's calendar is kept in; unknown names use the configured default."""
    return resolve_timezone(user.timezone, settings.default_timezone)


def require_roles(*roles: RoleEnum):
    """Dependency factory that admits only the listed roles."""
    allowed = ", ".join(str(role) for role in roles)

    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role.name not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Only {allowed} may perform this operation",
            )
        return current_user

    return _checker
