"""
Account and project managers.

Invariants:
    - Account names are unique across the catalog
    - Project names are unique inside their owner account
    - Removing an account removes its projects first
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from ..entities.account import (
    Account,
    Project,
    validate_account_id,
    validate_add_account_request,
    validate_add_project_request,
    validate_owner_account_id,
    validate_project_id,
    validate_update_account_request,
    validate_update_project_request,
)
from ..errors import AlreadyExistsError, NotFoundError
from .base import Manager
from .saga import Saga

logger = logging.getLogger(__name__)


class AccountManager(Manager):
    async def add_account(self, request: Mapping[str, Any]) -> Account:
        validate_add_account_request(request)
        if await self.stores.accounts.list(name=request["name"]):
            raise AlreadyExistsError("account name").with_params(request["name"])
        account = Account.from_add_request(request)
        await self.stores.accounts.add(account)
        logger.info("Added account", extra={"account_id": account.account_id})
        return account

    async def get_account(self, request: Mapping[str, Any]) -> Account:
        validate_account_id(request)
        return await self.stores.accounts.get(request["account_id"])

    async def list_accounts(self, request: Mapping[str, Any]) -> List[Account]:
        return await self.stores.accounts.list()

    async def update_account(self, request: Mapping[str, Any]) -> None:
        validate_update_account_request(request)
        account = await self.stores.accounts.get(request["account_id"])
        if request.get("update_name") and request["name"] != account.name:
            if await self.stores.accounts.list(name=request["name"]):
                raise AlreadyExistsError("account name").with_params(request["name"])
        account.apply_update(request)
        await self.stores.accounts.update(account)

    async def remove_account(self, request: Mapping[str, Any]) -> None:
        validate_account_id(request)
        account = await self.stores.accounts.get(request["account_id"])
        projects = await self.stores.projects.list(owner_account_id=account.account_id)

        saga = Saga("remove_account")
        for project in projects:
            saga.step(
                f"remove_project:{project.project_id}",
                self._remover(project),
                self._restorer(project),
            )
        saga.step(
            "remove_record",
            lambda: self.stores.accounts.remove(account.account_id),
            lambda _: self.stores.accounts.add(account),
        )
        await saga.run()
        logger.info(
            "Removed account",
            extra={"account_id": account.account_id, "projects": len(projects)},
        )

    def _remover(self, project: Project):
        return lambda: self.stores.projects.remove(*project.key())

    def _restorer(self, project: Project):
        return lambda _: self.stores.projects.add(project)


class ProjectManager(Manager):
    async def _require_account(self, account_id: str) -> None:
        if not await self.stores.accounts.exists(account_id):
            raise NotFoundError("account").with_params(account_id)

    async def _require_unique_name(self, account_id: str, name: str) -> None:
        if await self.stores.projects.list(owner_account_id=account_id, name=name):
            raise AlreadyExistsError("project name").with_params(account_id, name)

    async def add_project(self, request: Mapping[str, Any]) -> Project:
        validate_add_project_request(request)
        await self._require_account(request["owner_account_id"])
        await self._require_unique_name(request["owner_account_id"], request["name"])
        project = Project.from_add_request(request)
        await self.stores.projects.add(project)
        return project

    async def get_project(self, request: Mapping[str, Any]) -> Project:
        validate_project_id(request)
        return await self.stores.projects.get(request["owner_account_id"], request["project_id"])

    async def list_projects(self, request: Mapping[str, Any]) -> List[Project]:
        validate_owner_account_id(request)
        await self._require_account(request["owner_account_id"])
        return await self.stores.projects.list(owner_account_id=request["owner_account_id"])

    async def update_project(self, request: Mapping[str, Any]) -> None:
        validate_update_project_request(request)
        project = await self.stores.projects.get(
            request["owner_account_id"], request["project_id"]
        )
        if request.get("update_name") and request["name"] != project.name:
            await self._require_unique_name(project.owner_account_id, request["name"])
        project.apply_update(request)
        await self.stores.projects.update(project)

    async def remove_project(self, request: Mapping[str, Any]) -> None:
        validate_project_id(request)
        await self.stores.projects.remove(request["owner_account_id"], request["project_id"])
