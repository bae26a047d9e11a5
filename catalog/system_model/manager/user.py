"""User and role managers."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from ..entities.organization import validate_organization_id
from ..entities.role import (
    Role,
    validate_add_role_request,
    validate_role_id,
    validate_update_role_request,
)
from ..entities.user import User, validate_add_user_request, validate_user_id
from ..errors import AlreadyExistsError
from .base import Manager

logger = logging.getLogger(__name__)


class UserManager(Manager):
    async def add_user(self, request: Mapping[str, Any]) -> User:
        """Add a user to an organization.

        Raises:
            NotFoundError: If the organization does not exist
            AlreadyExistsError: If the email is used by any user
        """
        validate_add_user_request(request)
        await self.require_organization(request["organization_id"])
        if await self.stores.users.list(email=request["email"]):
            raise AlreadyExistsError("user email").with_params(request["email"])
        user = User.from_add_request(request)
        await self.stores.users.add(user)
        logger.info(
            "Added user",
            extra={"organization_id": user.organization_id, "user_id": user.user_id},
        )
        return user

    async def get_user(self, request: Mapping[str, Any]) -> User:
        validate_user_id(request)
        return await self.stores.users.get(request["organization_id"], request["user_id"])

    async def list_users(self, request: Mapping[str, Any]) -> List[User]:
        validate_organization_id(request)
        await self.require_organization(request["organization_id"])
        return await self.stores.users.list(organization_id=request["organization_id"])

    async def update_user(self, request: Mapping[str, Any]) -> None:
        validate_user_id(request)
        user = await self.stores.users.get(request["organization_id"], request["user_id"])
        user.apply_update(request)
        await self.stores.users.update(user)

    async def remove_user(self, request: Mapping[str, Any]) -> None:
        validate_user_id(request)
        await self.stores.users.remove(request["organization_id"], request["user_id"])


class RoleManager(Manager):
    async def add_role(self, request: Mapping[str, Any]) -> Role:
        validate_add_role_request(request)
        await self.require_organization(request["organization_id"])
        role = Role.from_add_request(request)
        await self.stores.roles.add(role)
        return role

    async def get_role(self, request: Mapping[str, Any]) -> Role:
        validate_role_id(request)
        return await self.stores.roles.get(request["organization_id"], request["role_id"])

    async def list_roles(self, request: Mapping[str, Any]) -> List[Role]:
        validate_organization_id(request)
        await self.require_organization(request["organization_id"])
        return await self.stores.roles.list(organization_id=request["organization_id"])

    async def update_role(self, request: Mapping[str, Any]) -> None:
        validate_update_role_request(request)
        role = await self.stores.roles.get(request["organization_id"], request["role_id"])
        role.apply_update(request)
        await self.stores.roles.update(role)

    async def remove_role(self, request: Mapping[str, Any]) -> None:
        validate_role_id(request)
        await self.stores.roles.remove(request["organization_id"], request["role_id"])
