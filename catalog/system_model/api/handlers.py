"""
Service handlers: the RPC surface of the managers.

Each handler class describes one gRPC service: its fully qualified name and
the methods it exposes. A method pairs a manager coroutine with a function
shaping its result into the response message.

Response shapes:
    entity      the entity in wire form
    list        {"<plural>": [entity, ...]}
    success     {"success": true}

Invariants:
    - Handlers hold no logic besides response shaping; validation and
      store access belong to the managers
    - Method names are part of the public contract and never change

How to change safely:
    - Add methods at the end of a service; clients ignore unknown fields
    - New services must be registered in build_handlers
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping

from ..config import ApplicationConfig
from ..entities.common import Record
from ..manager import (
    AccountManager,
    ApplicationManager,
    ApplicationNetworkManager,
    AssetManager,
    ClusterManager,
    DeviceManager,
    NodeManager,
    OrganizationManager,
    ProjectManager,
    RoleManager,
    UserManager,
)
from ..provider import RecordStores

Responder = Callable[[Any], Dict[str, Any]]


def as_entity(result: Record) -> Dict[str, Any]:
    return result.to_wire()


def as_list(field_name: str) -> Responder:
    def respond(result: List[Record]) -> Dict[str, Any]:
        return {field_name: [item.to_wire() for item in result]}

    return respond


def as_success(_: Any) -> Dict[str, Any]:
    return {"success": True}


@dataclass
class Method:
    """One unary RPC.

    Attributes:
        name: Method name within the service
        call: Manager coroutine receiving the decoded request
        respond: Shapes the manager result into the response message
    """

    name: str
    call: Callable[[Mapping[str, Any]], Awaitable[Any]]
    respond: Responder

    async def invoke(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        return self.respond(await self.call(request))


class ServiceHandler:
    """Base class of the per-service handlers."""

    SERVICE_NAME = ""

    def methods(self) -> List[Method]:
        raise NotImplementedError


class OrganizationsHandler(ServiceHandler):
    SERVICE_NAME = "system_model.Organizations"

    def __init__(self, manager: OrganizationManager) -> None:
        self.manager = manager

    def methods(self) -> List[Method]:
        m = self.manager
        return [
            Method("AddOrganization", m.add_organization, as_entity),
            Method("GetOrganization", m.get_organization, as_entity),
            Method("ListOrganizations", m.list_organizations, as_list("organizations")),
            Method("UpdateOrganization", m.update_organization, as_success),
        ]


class ClustersHandler(ServiceHandler):
    SERVICE_NAME = "system_model.Clusters"

    def __init__(self, manager: ClusterManager) -> None:
        self.manager = manager

    def methods(self) -> List[Method]:
        m = self.manager
        return [
            Method("AddCluster", m.add_cluster, as_entity),
            Method("GetCluster", m.get_cluster, as_entity),
            Method("ListClusters", m.list_clusters, as_list("clusters")),
            Method("UpdateCluster", m.update_cluster, as_success),
            Method("RemoveCluster", m.remove_cluster, as_success),
        ]


class NodesHandler(ServiceHandler):
    SERVICE_NAME = "system_model.Nodes"

    def __init__(self, manager: NodeManager) -> None:
        self.manager = manager

    def methods(self) -> List[Method]:
        m = self.manager
        return [
            Method("AddNode", m.add_node, as_entity),
            Method("UpdateNode", m.update_node, as_entity),
            Method("AttachNode", m.attach_node, as_success),
            Method("ListNodes", m.list_nodes, as_list("nodes")),
            Method("RemoveNodes", m.remove_nodes, as_success),
            Method("GetNode", m.get_node, as_entity),
            Method("ListOrganizationNodes", m.list_organization_nodes, as_list("nodes")),
        ]


class AssetsHandler(ServiceHandler):
    SERVICE_NAME = "system_model.Assets"

    def __init__(self, manager: AssetManager) -> None:
        self.manager = manager

    def methods(self) -> List[Method]:
        m = self.manager
        return [
            Method("AddAsset", m.add_asset, as_entity),
            Method("GetAsset", m.get_asset, as_entity),
            Method("ListAssets", m.list_assets, as_list("assets")),
            Method("ListControllerAssets", m.list_controller_assets, as_list("assets")),
            Method("UpdateAsset", m.update_asset, as_entity),
            Method("RemoveAsset", m.remove_asset, as_success),
        ]


class DevicesHandler(ServiceHandler):
    SERVICE_NAME = "system_model.Devices"

    def __init__(self, manager: DeviceManager) -> None:
        self.manager = manager

    def methods(self) -> List[Method]:
        m = self.manager
        return [
            Method("AddDeviceGroup", m.add_device_group, as_entity),
            Method("GetDeviceGroup", m.get_device_group, as_entity),
            Method("ListDeviceGroups", m.list_device_groups, as_list("groups")),
            Method("GetDeviceGroupsByName", m.get_device_groups_by_name, as_list("groups")),
            Method("UpdateDeviceGroup", m.update_device_group, as_entity),
            Method("RemoveDeviceGroup", m.remove_device_group, as_success),
            Method("AddDevice", m.add_device, as_entity),
            Method("GetDevice", m.get_device, as_entity),
            Method("ListDevices", m.list_devices, as_list("devices")),
            Method("UpdateDevice", m.update_device, as_entity),
            Method("RemoveDevice", m.remove_device, as_success),
        ]


class ApplicationsHandler(ServiceHandler):
    SERVICE_NAME = "system_model.Applications"

    def __init__(self, manager: ApplicationManager) -> None:
        self.manager = manager

    def methods(self) -> List[Method]:
        m = self.manager
        return [
            Method("AddAppDescriptor", m.add_app_descriptor, as_entity),
            Method("GetAppDescriptor", m.get_app_descriptor, as_entity),
            Method("ListAppDescriptors", m.list_app_descriptors, as_list("descriptors")),
            Method("RemoveAppDescriptor", m.remove_app_descriptor, as_success),
            Method("AddAppInstance", m.add_app_instance, as_entity),
            Method("GetAppInstance", m.get_app_instance, as_entity),
            Method("ListAppInstances", m.list_app_instances, as_list("instances")),
            Method("RemoveAppInstance", m.remove_app_instance, as_success),
            Method("UpdateAppStatus", m.update_app_status, as_success),
            Method("UpdateServiceStatus", m.update_service_status, as_success),
            Method(
                "AddServiceGroupInstances",
                m.add_service_group_instances,
                as_list("service_group_instances"),
            ),
            Method("AddAppEndpoint", m.add_app_endpoint, as_success),
            Method("GetAppEndpoints", m.get_app_endpoints, as_list("app_endpoints")),
            Method("RemoveAppEndpoints", m.remove_app_endpoints, as_success),
            Method("AddAppZtNetwork", m.add_app_zt_network, as_success),
            Method("RemoveAppZtNetwork", m.remove_app_zt_network, as_success),
            Method("GetAppZtNetwork", m.get_app_zt_network, as_entity),
        ]


class ApplicationNetworkHandler(ServiceHandler):
    SERVICE_NAME = "system_model.ApplicationNetwork"

    def __init__(self, manager: ApplicationNetworkManager) -> None:
        self.manager = manager

    def methods(self) -> List[Method]:
        m = self.manager
        return [
            Method("AddConnection", m.add_connection, as_entity),
            Method("GetConnection", m.get_connection, as_entity),
            Method("ListConnections", m.list_connections, as_list("connections")),
            Method("RemoveConnection", m.remove_connection, as_success),
            Method("AddConnectionLink", m.add_connection_link, as_entity),
            Method("ListConnectionLinks", m.list_connection_links, as_list("links")),
        ]


class UsersHandler(ServiceHandler):
    SERVICE_NAME = "system_model.Users"

    def __init__(self, manager: UserManager) -> None:
        self.manager = manager

    def methods(self) -> List[Method]:
        m = self.manager
        return [
            Method("AddUser", m.add_user, as_entity),
            Method("GetUser", m.get_user, as_entity),
            Method("ListUsers", m.list_users, as_list("users")),
            Method("UpdateUser", m.update_user, as_success),
            Method("RemoveUser", m.remove_user, as_success),
        ]


class RolesHandler(ServiceHandler):
    SERVICE_NAME = "system_model.Roles"

    def __init__(self, manager: RoleManager) -> None:
        self.manager = manager

    def methods(self) -> List[Method]:
        m = self.manager
        return [
            Method("AddRole", m.add_role, as_entity),
            Method("GetRole", m.get_role, as_entity),
            Method("ListRoles", m.list_roles, as_list("roles")),
            Method("UpdateRole", m.update_role, as_success),
            Method("RemoveRole", m.remove_role, as_success),
        ]


class AccountsHandler(ServiceHandler):
    SERVICE_NAME = "system_model.Accounts"

    def __init__(self, manager: AccountManager) -> None:
        self.manager = manager

    def methods(self) -> List[Method]:
        m = self.manager
        return [
            Method("AddAccount", m.add_account, as_entity),
            Method("GetAccount", m.get_account, as_entity),
            Method("ListAccounts", m.list_accounts, as_list("accounts")),
            Method("UpdateAccount", m.update_account, as_success),
            Method("RemoveAccount", m.remove_account, as_success),
        ]


class ProjectsHandler(ServiceHandler):
    SERVICE_NAME = "system_model.Projects"

    def __init__(self, manager: ProjectManager) -> None:
        self.manager = manager

    def methods(self) -> List[Method]:
        m = self.manager
        return [
            Method("AddProject", m.add_project, as_entity),
            Method("GetProject", m.get_project, as_entity),
            Method("ListProjects", m.list_projects, as_list("projects")),
            Method("UpdateProject", m.update_project, as_success),
            Method("RemoveProject", m.remove_project, as_success),
        ]


def build_handlers(stores: RecordStores, config: ApplicationConfig) -> List[ServiceHandler]:
    """Create the handler of every service over one set of stores."""
    return [
        OrganizationsHandler(OrganizationManager(stores)),
        ClustersHandler(ClusterManager(stores)),
        NodesHandler(NodeManager(stores)),
        AssetsHandler(AssetManager(stores)),
        DevicesHandler(DeviceManager(stores)),
        ApplicationsHandler(ApplicationManager(stores, config)),
        ApplicationNetworkHandler(ApplicationNetworkManager(stores)),
        UsersHandler(UserManager(stores)),
        RolesHandler(RoleManager(stores)),
        AccountsHandler(AccountManager(stores)),
        ProjectsHandler(ProjectManager(stores)),
    ]
