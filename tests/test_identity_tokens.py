from __future__ import annotations

from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from fastapi import HTTPException

from app.core.enums import RoleEnum
from app.core.security import create_access_token
from app.modules.identity.service import IdentityService, require_roles, settings, user_timezone
from app.shared.exceptions import UnauthorizedException


class FakeIdentityRepository:
    def __init__(self, users: dict[UUID, SimpleNamespace]) -> None:
        self.users = users
        self.roles: list[RoleEnum] = [RoleEnum.PARENT]

    async def get_user_by_id(self, user_id: UUID) -> SimpleNamespace | None:
        return self.users.get(user_id)

    async def get_role_by_name(self, role_name: RoleEnum) -> SimpleNamespace | None:
        if role_name in self.roles:
            return SimpleNamespace(name=role_name)
        return None

    async def create_role(self, role_name: RoleEnum) -> SimpleNamespace:
        self.roles.append(role_name)
        return SimpleNamespace(name=role_name)


def make_user(role: RoleEnum, is_active: bool = True) -> SimpleNamespace:
    return SimpleNamespace(id=uuid4(), role=SimpleNamespace(name=role), is_active=is_active)


@pytest.mark.asyncio
async def test_access_token_resolves_active_user() -> None:
    user = make_user(RoleEnum.PARENT)
    service = IdentityService(FakeIdentityRepository({user.id: user}))

    resolved = await service.get_user_from_access_token(create_access_token(str(user.id)))

    assert resolved is user


@pytest.mark.asyncio
async def test_non_access_token_and_inactive_user_are_rejected() -> None:
    user = make_user(RoleEnum.TUTOR, is_active=False)
    service = IdentityService(FakeIdentityRepository({user.id: user}))

    with pytest.raises(UnauthorizedException):
        await service.get_user_from_access_token(create_access_token(str(user.id), type="refresh"))
    with pytest.raises(UnauthorizedException):
        await service.get_user_from_access_token(create_access_token(str(user.id)))
    with pytest.raises(UnauthorizedException):
        await service.get_user_from_access_token(create_access_token(str(uuid4())))


@pytest.mark.asyncio
async def test_malformed_token_is_401() -> None:
    service = IdentityService(FakeIdentityRepository({}))

    with pytest.raises(HTTPException) as exc:
        await service.get_user_from_access_token("not-a-jwt")
    assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_default_roles_are_created_once() -> None:
    repository = FakeIdentityRepository({})
    service = IdentityService(repository)

    await service.ensure_default_roles()
    await service.ensure_default_roles()

    assert sorted(repository.roles) == sorted([RoleEnum.PARENT, RoleEnum.TUTOR, RoleEnum.ADMIN])


@pytest.mark.asyncio
async def test_role_guard_blocks_other_roles() -> None:
    checker = require_roles(RoleEnum.PARENT, RoleEnum.ADMIN)

    parent = make_user(RoleEnum.PARENT)
    assert await checker(current_user=parent) is parent

    with pytest.raises(HTTPException) as exc:
        await checker(current_user=make_user(RoleEnum.TUTOR))
    assert exc.value.status_code == 403


def test_user_timezone_falls_back_to_configured_default() -> None:
    tutor = SimpleNamespace(timezone="America/Chicago")
    assert user_timezone(tutor).key == "America/Chicago"

    unknown = SimpleNamespace(timezone="Atlantis/Capital")
    assert user_timezone(unknown).key == settings.default_timezone
