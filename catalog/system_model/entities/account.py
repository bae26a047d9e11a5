"""Account and project entities.

Accounts are the billing-level owners of projects. Both are identified by
server generated UUIDs; account names are unique, project names are unique
within their owner account.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .common import (
    Entity,
    EnumMapping,
    Record,
    generate_uuid,
    now_seconds,
    require_fields,
    require_mapping,
)


class AccountState(Enum):
    ACTIVE = "active"
    DEACTIVATED = "deactivated"


ACCOUNT_STATE = EnumMapping(
    AccountState,
    {AccountState.ACTIVE: "ACTIVE", AccountState.DEACTIVATED: "DEACTIVATED"},
    default=AccountState.ACTIVE,
)


@dataclass
class AccountBillingInfo(Record):
    full_name: str = ""
    company_name: str = ""
    address: str = ""
    additional_info: str = ""


@dataclass
class Account(Entity):
    ENTITY_KIND = "account"
    KEY_FIELDS = ("account_id",)
    ENUMS = {"state": ACCOUNT_STATE}
    NESTED = {"billing_info": AccountBillingInfo}

    account_id: str
    name: str
    created: int = 0
    billing_info: AccountBillingInfo = field(default_factory=AccountBillingInfo)
    state: AccountState = AccountState.ACTIVE
    state_info: str = ""

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any]) -> Account:
        return cls(
            account_id=generate_uuid(),
            name=request["name"],
            created=now_seconds(),
            billing_info=AccountBillingInfo.from_wire(request.get("billing_info") or {}),
        )

    def apply_update(self, request: Mapping[str, Any]) -> None:
        if request.get("update_name"):
            self.name = request.get("name", "")
        if request.get("update_billing_info"):
            self.billing_info = AccountBillingInfo.from_wire(request.get("billing_info") or {})
        if request.get("update_state"):
            self.state = ACCOUNT_STATE.from_wire(request.get("state"), "state")
            self.state_info = request.get("state_info", "")


@dataclass
class Project(Entity):
    ENTITY_KIND = "project"
    KEY_FIELDS = ("owner_account_id", "project_id")
    ENUMS = {"state": ACCOUNT_STATE}

    owner_account_id: str
    project_id: str
    name: str
    created: int = 0
    state: AccountState = AccountState.ACTIVE
    state_info: str = ""

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any]) -> Project:
        return cls(
            owner_account_id=request["owner_account_id"],
            project_id=generate_uuid(),
            name=request["name"],
            created=now_seconds(),
        )

    def apply_update(self, request: Mapping[str, Any]) -> None:
        if request.get("update_name"):
            self.name = request.get("name", "")
        if request.get("update_state"):
            self.state = ACCOUNT_STATE.from_wire(request.get("state"), "state")
            self.state_info = request.get("state_info", "")


def validate_add_account_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "name")
    AccountBillingInfo.from_wire(request.get("billing_info") or {})


def validate_account_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "account_id")


def validate_update_account_request(request: Mapping[str, Any]) -> None:
    validate_account_id(request)
    if request.get("update_name"):
        require_fields(request, "name")
    if request.get("update_state"):
        ACCOUNT_STATE.from_wire(request.get("state"), "state")


def validate_add_project_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "owner_account_id", "name")


def validate_project_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "owner_account_id", "project_id")


def validate_update_project_request(request: Mapping[str, Any]) -> None:
    validate_project_id(request)
    if request.get("update_name"):
        require_fields(request, "name")
    if request.get("update_state"):
        ACCOUNT_STATE.from_wire(request.get("state"), "state")


def validate_owner_account_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "owner_account_id")
