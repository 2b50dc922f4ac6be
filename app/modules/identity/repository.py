"""Identity repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import RoleEnum
from app.modules.identity.models import Role, User


class IdentityRepository:
    """Lookups for roles and the users that own calendars and subscriptions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_role_by_name(self, role_name: RoleEnum) -> Role | None:
        return await self.session.scalar(select(Role).where(Role.name == role_name))

    async def create_role(self, role_name: RoleEnum) -> Role:
        role = Role(name=role_name)
        self.session.add(role)
        await self.session.flush()
        return role

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """User with role eagerly loaded; role checks happen outside the session."""
        stmt = select(User).options(selectinload(User.role)).where(User.id == user_id)
        return await self.session.scalar(stmt)

    async def get_user_by_email(self, email: str) -> User | None:
        stmt = select(User).options(selectinload(User.role)).where(User.email == email.lower())
        return await self.session.scalar(stmt)

    async def create_user(
        self,
        email: str,
        full_name: str,
        timezone: str,
        role: Role,
    ) -> User:
        user = User(
            email=email.lower(),
            full_name=full_name,
            timezone=timezone,
            is_active=True,
            role_id=role.id,
        )
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user, attribute_names=["role"])
        return user
