"""
Application entities: descriptors, instances and their nested collections.

An AppDescriptor describes a deployable application as service groups of
services plus the security rules between them. An AppInstance is a deployed
realization of a descriptor; its service group instances are added later,
as the deployment progresses, through AddServiceGroupInstances.

Descriptor payloads reference their own parts by name:

    rule.target_service_group_name / rule.target_service_name
    rule.auth_service_group_name / rule.auth_services
    service.deploy_after (services of the same group)
    rule.device_group_names (device groups of the organization)

All in-payload references are checked by AppDescriptor.check_references
before anything is persisted; device group names are resolved by the
application manager against the device store.

Invariants:
    - Service group and service ids are generated when the descriptor is
      created, and never change afterwards
    - Service names are DNS-1123 labels, they become host names
    - A global FQDN is derived from a cluster FQDN as
      <service>.<sg-instance>.<app-instance>.<organization_id[:8]>.<global domain>
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..errors import InvalidArgumentError
from .common import (
    Entity,
    EnumMapping,
    Record,
    generate_uuid,
    require_fields,
    require_mapping,
    string_list,
    string_map,
)

MAX_PORT_NAME_LENGTH = 15
MAX_SERVICE_NAME_LENGTH = 63
_DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


class ServiceType(Enum):
    DOCKER = "docker"


class CollocationPolicy(Enum):
    SAME_CLUSTER = "same_cluster"
    SEPARATE_CLUSTERS = "separate_clusters"


class PortAccess(Enum):
    ALL_APP_SERVICES = "all_app_services"
    APP_SERVICES = "app_services"
    PUBLIC = "public"
    DEVICE_GROUP = "device_group"


class EndpointType(Enum):
    IS_ALIVE = "is_alive"
    REST = "rest"
    WEB = "web"
    PROMETHEUS = "prometheus"
    INGESTION = "ingestion"


class ApplicationStatus(Enum):
    QUEUED = "queued"
    PLANNING = "planning"
    SCHEDULED = "scheduled"
    DEPLOYING = "deploying"
    RUNNING = "running"
    INCOMPLETE = "incomplete"
    PLANNING_ERROR = "planning_error"
    DEPLOYMENT_ERROR = "deployment_error"
    ERROR = "error"


class ServiceStatus(Enum):
    SCHEDULED = "scheduled"
    WAITING = "waiting"
    DEPLOYING = "deploying"
    RUNNING = "running"
    ERROR = "error"


class AppEndpointProtocol(Enum):
    HTTP = "http"
    HTTPS = "https"


SERVICE_TYPE = EnumMapping(ServiceType, {ServiceType.DOCKER: "DOCKER"}, default=ServiceType.DOCKER)

COLLOCATION_POLICY = EnumMapping(
    CollocationPolicy,
    {
        CollocationPolicy.SAME_CLUSTER: "SAME_CLUSTER",
        CollocationPolicy.SEPARATE_CLUSTERS: "SEPARATE_CLUSTERS",
    },
    default=CollocationPolicy.SAME_CLUSTER,
)

PORT_ACCESS = EnumMapping(
    PortAccess,
    {
        PortAccess.ALL_APP_SERVICES: "ALL_APP_SERVICES",
        PortAccess.APP_SERVICES: "APP_SERVICES",
        PortAccess.PUBLIC: "PUBLIC",
        PortAccess.DEVICE_GROUP: "DEVICE_GROUP",
    },
    default=PortAccess.ALL_APP_SERVICES,
)

ENDPOINT_TYPE = EnumMapping(
    EndpointType,
    {
        EndpointType.IS_ALIVE: "IS_ALIVE",
        EndpointType.REST: "REST",
        EndpointType.WEB: "WEB",
        EndpointType.PROMETHEUS: "PROMETHEUS",
        EndpointType.INGESTION: "INGESTION",
    },
    default=EndpointType.IS_ALIVE,
)

APPLICATION_STATUS = EnumMapping(
    ApplicationStatus,
    {status: status.name for status in ApplicationStatus},
    default=ApplicationStatus.QUEUED,
)

SERVICE_STATUS = EnumMapping(
    ServiceStatus,
    {status: f"SERVICE_{status.name}" for status in ServiceStatus},
    default=ServiceStatus.SCHEDULED,
)

APP_ENDPOINT_PROTOCOL = EnumMapping(
    AppEndpointProtocol,
    {AppEndpointProtocol.HTTP: "HTTP", AppEndpointProtocol.HTTPS: "HTTPS"},
    default=AppEndpointProtocol.HTTP,
)

# Progress order used to aggregate service statuses into a group status.
_SERVICE_PROGRESS = [
    ServiceStatus.SCHEDULED,
    ServiceStatus.WAITING,
    ServiceStatus.DEPLOYING,
    ServiceStatus.RUNNING,
]


@dataclass
class Endpoint(Record):
    ENUMS = {"type": ENDPOINT_TYPE}

    type: EndpointType = EndpointType.IS_ALIVE
    path: str = ""


@dataclass
class Port(Record):
    NESTED = {"endpoints": Endpoint}

    name: str = ""
    internal_port: int = 0
    exposed_port: int = 0
    endpoints: List[Endpoint] = field(default_factory=list)


@dataclass
class Service(Record):
    """A service of a descriptor service group."""

    ENUMS = {"type": SERVICE_TYPE}
    NESTED = {"exposed_ports": Port}

    organization_id: str = ""
    app_descriptor_id: str = ""
    service_group_id: str = ""
    service_id: str = ""
    name: str = ""
    type: ServiceType = ServiceType.DOCKER
    image: str = ""
    credentials: Dict[str, Any] = field(default_factory=dict)
    specs: Dict[str, Any] = field(default_factory=dict)
    storage: List[Dict[str, Any]] = field(default_factory=list)
    exposed_ports: List[Port] = field(default_factory=list)
    environment_variables: Dict[str, str] = field(default_factory=dict)
    configs: List[Dict[str, Any]] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)
    deploy_after: List[str] = field(default_factory=list)
    run_arguments: List[str] = field(default_factory=list)


@dataclass
class ServiceGroup(Record):
    ENUMS = {"policy": COLLOCATION_POLICY}
    NESTED = {"services": Service}

    organization_id: str = ""
    app_descriptor_id: str = ""
    service_group_id: str = ""
    name: str = ""
    services: List[Service] = field(default_factory=list)
    policy: CollocationPolicy = CollocationPolicy.SAME_CLUSTER
    specs: Dict[str, Any] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)

    def service_named(self, name: str) -> Optional[Service]:
        for service in self.services:
            if service.name == name:
                return service
        return None


@dataclass
class SecurityRule(Record):
    """Access rule for a port of a target service.

    `device_group_ids` is filled by the application manager when the
    descriptor is added, from `device_group_names`.
    """

    ENUMS = {"access": PORT_ACCESS}

    organization_id: str = ""
    app_descriptor_id: str = ""
    rule_id: str = ""
    name: str = ""
    target_service_group_name: str = ""
    target_service_name: str = ""
    target_port: int = 0
    access: PortAccess = PortAccess.ALL_APP_SERVICES
    auth_service_group_name: str = ""
    auth_services: List[str] = field(default_factory=list)
    device_group_names: List[str] = field(default_factory=list)
    device_group_ids: List[str] = field(default_factory=list)


@dataclass
class AppDescriptor(Entity):
    """A deployable application definition.

    Attributes:
        organization_id: Owning organization
        app_descriptor_id: Unique identifier (UUID)
        name: Application name
        configuration_options: Free form configuration
        environment_variables: Variables injected in every service
        labels: User labels
        rules: Security rules
        groups: Service groups
    """

    ENTITY_KIND = "app_descriptor"
    KEY_FIELDS = ("organization_id", "app_descriptor_id")
    NESTED = {"rules": SecurityRule, "groups": ServiceGroup}

    organization_id: str
    app_descriptor_id: str
    name: str
    configuration_options: Dict[str, str] = field(default_factory=dict)
    environment_variables: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    rules: List[SecurityRule] = field(default_factory=list)
    groups: List[ServiceGroup] = field(default_factory=list)

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any]) -> AppDescriptor:
        """Build a descriptor, generating every id it owns."""
        descriptor = cls.from_wire(
            {
                "organization_id": request["organization_id"],
                "app_descriptor_id": generate_uuid(),
                "name": request["name"],
                "configuration_options": string_map(
                    request.get("configuration_options"), "configuration_options"
                ),
                "environment_variables": string_map(
                    request.get("environment_variables"), "environment_variables"
                ),
                "labels": string_map(request.get("labels"), "labels"),
                "rules": request.get("rules") or [],
                "groups": request.get("groups") or [],
            }
        )
        for group in descriptor.groups:
            group.organization_id = descriptor.organization_id
            group.app_descriptor_id = descriptor.app_descriptor_id
            group.service_group_id = generate_uuid()
            for service in group.services:
                service.organization_id = descriptor.organization_id
                service.app_descriptor_id = descriptor.app_descriptor_id
                service.service_group_id = group.service_group_id
                service.service_id = generate_uuid()
        for rule in descriptor.rules:
            rule.organization_id = descriptor.organization_id
            rule.app_descriptor_id = descriptor.app_descriptor_id
            rule.rule_id = rule.rule_id or generate_uuid()
            rule.device_group_ids = []
        return descriptor

    def group_named(self, name: str) -> Optional[ServiceGroup]:
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def group_by_id(self, service_group_id: str) -> Optional[ServiceGroup]:
        for group in self.groups:
            if group.service_group_id == service_group_id:
                return group
        return None

    def device_group_names(self) -> List[str]:
        """Device group names referenced by any rule, in first-seen order."""
        names: List[str] = []
        for rule in self.rules:
            for name in rule.device_group_names:
                if name not in names:
                    names.append(name)
        return names

    def check_references(self) -> None:
        """Check that every name a rule or service refers to exists in the payload.

        Raises:
            InvalidArgumentError: On the first unresolved reference
        """
        for group in self.groups:
            for service in group.services:
                for dependency in service.deploy_after:
                    if group.service_named(dependency) is None:
                        raise InvalidArgumentError(
                            "deploy_after references an unknown service"
                        ).with_params(service.name, dependency)

        for rule in self.rules:
            target = self.group_named(rule.target_service_group_name)
            if target is None:
                raise InvalidArgumentError(
                    "security rule targets an unknown service group"
                ).with_params(rule.name, rule.target_service_group_name)
            if target.service_named(rule.target_service_name) is None:
                raise InvalidArgumentError(
                    "security rule targets an unknown service"
                ).with_params(rule.name, rule.target_service_name)

            if rule.access == PortAccess.APP_SERVICES:
                auth_group = self.group_named(rule.auth_service_group_name)
                if auth_group is None:
                    raise InvalidArgumentError(
                        "security rule authorizes an unknown service group"
                    ).with_params(rule.name, rule.auth_service_group_name)
                for name in rule.auth_services:
                    if auth_group.service_named(name) is None:
                        raise InvalidArgumentError(
                            "security rule authorizes an unknown service"
                        ).with_params(rule.name, name)
            elif rule.access == PortAccess.DEVICE_GROUP and not rule.device_group_names:
                raise InvalidArgumentError(
                    "device group rule without device groups"
                ).with_params(rule.name)


@dataclass
class EndpointInstance(Record):
    ENUMS = {"type": ENDPOINT_TYPE}

    endpoint_instance_id: str = ""
    type: EndpointType = EndpointType.IS_ALIVE
    fqdn: str = ""
    port: int = 0


@dataclass
class ServiceInstance(Service):
    """A deployed copy of a descriptor service."""

    ENUMS = {"type": SERVICE_TYPE, "status": SERVICE_STATUS}
    NESTED = {"exposed_ports": Port, "endpoints": EndpointInstance}

    app_instance_id: str = ""
    service_group_instance_id: str = ""
    service_instance_id: str = ""
    status: ServiceStatus = ServiceStatus.SCHEDULED
    endpoints: List[EndpointInstance] = field(default_factory=list)
    deployed_on_cluster_id: str = ""
    info: str = ""

    @classmethod
    def from_service(
        cls,
        service: Service,
        app_instance_id: str,
        service_group_instance_id: str,
    ) -> ServiceInstance:
        values = service.to_dict()
        values.update(
            app_instance_id=app_instance_id,
            service_group_instance_id=service_group_instance_id,
            service_instance_id=generate_uuid(),
        )
        return cls.from_dict(values)


@dataclass
class ServiceGroupInstance(Record):
    ENUMS = {"policy": COLLOCATION_POLICY, "status": SERVICE_STATUS}
    NESTED = {"service_instances": ServiceInstance}

    organization_id: str = ""
    app_descriptor_id: str = ""
    app_instance_id: str = ""
    service_group_id: str = ""
    service_group_instance_id: str = ""
    name: str = ""
    service_instances: List[ServiceInstance] = field(default_factory=list)
    policy: CollocationPolicy = CollocationPolicy.SAME_CLUSTER
    status: ServiceStatus = ServiceStatus.SCHEDULED
    specs: Dict[str, Any] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_service_group(cls, group: ServiceGroup, app_instance_id: str) -> ServiceGroupInstance:
        instance_id = generate_uuid()
        return cls(
            organization_id=group.organization_id,
            app_descriptor_id=group.app_descriptor_id,
            app_instance_id=app_instance_id,
            service_group_id=group.service_group_id,
            service_group_instance_id=instance_id,
            name=group.name,
            service_instances=[
                ServiceInstance.from_service(service, app_instance_id, instance_id)
                for service in group.services
            ],
            policy=group.policy,
            specs=dict(group.specs),
            labels=dict(group.labels),
        )

    def refresh_status(self) -> None:
        """Derive the group status from its service instances.

        Any failed service fails the group; otherwise the group is as far
        along as its least advanced service.
        """
        statuses = [s.status for s in self.service_instances]
        if not statuses:
            return
        if ServiceStatus.ERROR in statuses:
            self.status = ServiceStatus.ERROR
        else:
            self.status = min(statuses, key=_SERVICE_PROGRESS.index)


@dataclass
class AppInstance(Entity):
    """A deployed application.

    Attributes:
        organization_id: Owning organization
        app_descriptor_id: Descriptor the instance was created from
        app_instance_id: Unique identifier (UUID)
        name: Instance name
        configuration_options: Copied from the descriptor
        environment_variables: Copied from the descriptor
        labels: Copied from the descriptor
        rules: Copied from the descriptor
        groups: Service group instances added during deployment
        status: Deployment status
        info: Free text status detail
    """

    ENTITY_KIND = "app_instance"
    KEY_FIELDS = ("organization_id", "app_instance_id")
    ENUMS = {"status": APPLICATION_STATUS}
    NESTED = {"rules": SecurityRule, "groups": ServiceGroupInstance}

    organization_id: str
    app_descriptor_id: str
    app_instance_id: str
    name: str
    configuration_options: Dict[str, str] = field(default_factory=dict)
    environment_variables: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    rules: List[SecurityRule] = field(default_factory=list)
    groups: List[ServiceGroupInstance] = field(default_factory=list)
    status: ApplicationStatus = ApplicationStatus.QUEUED
    info: str = ""

    @classmethod
    def from_descriptor(cls, descriptor: AppDescriptor, request: Mapping[str, Any]) -> AppInstance:
        return cls(
            organization_id=descriptor.organization_id,
            app_descriptor_id=descriptor.app_descriptor_id,
            app_instance_id=generate_uuid(),
            name=request["name"],
            configuration_options=dict(descriptor.configuration_options),
            environment_variables=dict(descriptor.environment_variables),
            labels=dict(descriptor.labels),
            rules=[SecurityRule.from_dict(rule.to_dict()) for rule in descriptor.rules],
        )

    def find_service_instance(
        self,
        service_group_instance_id: str,
        service_instance_id: str,
    ) -> Optional[tuple]:
        """Locate a service instance and its group instance."""
        for group in self.groups:
            if group.service_group_instance_id != service_group_instance_id:
                continue
            for service in group.service_instances:
                if service.service_instance_id == service_instance_id:
                    return group, service
        return None


@dataclass
class AppEndpoint(Entity):
    """An endpoint exposed by a running service instance.

    `global_fqdn` is derived from the endpoint instance FQDN when the
    endpoint is registered and is the lookup key of GetAppEndpoints.
    """

    ENTITY_KIND = "app_endpoint"
    KEY_FIELDS = (
        "organization_id",
        "app_instance_id",
        "service_instance_id",
        "endpoint_instance_id",
    )
    ENUMS = {"protocol": APP_ENDPOINT_PROTOCOL}
    NESTED = {"endpoint_instance": EndpointInstance}

    organization_id: str
    app_instance_id: str
    service_group_instance_id: str = ""
    service_instance_id: str = ""
    port: int = 0
    protocol: AppEndpointProtocol = AppEndpointProtocol.HTTP
    endpoint_instance: EndpointInstance = field(default_factory=EndpointInstance)
    global_fqdn: str = ""

    @property
    def endpoint_instance_id(self) -> str:
        return self.endpoint_instance.endpoint_instance_id


@dataclass
class AppZtNetwork(Entity):
    """ZeroTier network created for an application instance."""

    ENTITY_KIND = "app_zt_network"
    KEY_FIELDS = ("organization_id", "app_instance_id")

    organization_id: str
    app_instance_id: str
    zt_network_id: str


def split_fqdn(fqdn: str) -> List[str]:
    parts = fqdn.split(".")
    if len(parts) < 3 or not all(parts[:3]):
        raise InvalidArgumentError("invalid endpoint fqdn").with_params(fqdn)
    return parts


def global_fqdn(fqdn: str, organization_id: str, global_domain: str) -> str:
    """Derive the global FQDN of an endpoint from its cluster FQDN.

    Args:
        fqdn: <service>.<sg-instance>.<app-instance>.<cluster domain...>
        organization_id: Organization owning the endpoint
        global_domain: Global DNS suffix

    Raises:
        InvalidArgumentError: If the FQDN has fewer than three labels
    """
    parts = split_fqdn(fqdn)
    return f"{parts[0]}.{parts[1]}.{parts[2]}.{organization_id[:8]}.{global_domain}"


def _validate_service(service: Mapping[str, Any]) -> None:
    require_mapping(service, "service")
    name = service.get("name") or ""
    if len(name) > MAX_SERVICE_NAME_LENGTH or not _DNS_LABEL.match(name):
        raise InvalidArgumentError("service name must be a DNS label").with_params(name)
    for port in service.get("exposed_ports") or []:
        require_mapping(port, "port")
        port_name = port.get("name") or ""
        if len(port_name) > MAX_PORT_NAME_LENGTH:
            raise InvalidArgumentError(
                f"port name cannot exceed {MAX_PORT_NAME_LENGTH} characters"
            ).with_params(port_name)
        for number_field in ("internal_port", "exposed_port"):
            if number_field not in port:
                continue
            number = port[number_field]
            if not isinstance(number, int) or not 1 <= number <= 65535:
                raise InvalidArgumentError(f"invalid {number_field}").with_params(
                    service.get("name"), number
                )
    string_list(service.get("deploy_after"), "deploy_after")


def validate_add_app_descriptor_request(request: Mapping[str, Any]) -> None:
    """Validate the shape of an AddAppDescriptor request.

    Name references between rules and services are checked separately by
    AppDescriptor.check_references.
    """
    require_mapping(request)
    require_fields(request, "organization_id", "name")
    groups = request.get("groups") or []
    if not isinstance(groups, list) or not groups:
        raise InvalidArgumentError("descriptor must contain at least one service group")
    seen_groups = set()
    for group in groups:
        require_mapping(group, "service group")
        require_fields(group, "name")
        if group["name"] in seen_groups:
            raise InvalidArgumentError("duplicated service group name").with_params(group["name"])
        seen_groups.add(group["name"])
        services = group.get("services") or []
        if not isinstance(services, list) or not services:
            raise InvalidArgumentError("service group must contain services").with_params(
                group["name"]
            )
        seen_services = set()
        for service in services:
            _validate_service(service)
            if service["name"] in seen_services:
                raise InvalidArgumentError("duplicated service name").with_params(service["name"])
            seen_services.add(service["name"])
    for rule in request.get("rules") or []:
        require_mapping(rule, "security rule")
        require_fields(rule, "target_service_group_name", "target_service_name")
    AppDescriptor.from_add_request(request)


def validate_app_descriptor_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "app_descriptor_id")


def validate_add_app_instance_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "app_descriptor_id", "name")


def validate_app_instance_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "app_instance_id")


def validate_update_app_status_request(request: Mapping[str, Any]) -> None:
    validate_app_instance_id(request)
    APPLICATION_STATUS.from_wire(request.get("status"), "status")


def validate_update_service_status_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(
        request,
        "organization_id",
        "app_instance_id",
        "service_group_instance_id",
        "service_instance_id",
    )
    SERVICE_STATUS.from_wire(request.get("status"), "status")
    for endpoint in request.get("endpoints") or []:
        EndpointInstance.from_wire(endpoint)


def validate_add_service_group_instances_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(
        request, "organization_id", "app_descriptor_id", "app_instance_id", "service_group_id"
    )
    num_instances = request.get("num_instances", 0)
    if not isinstance(num_instances, int) or num_instances <= 0:
        raise InvalidArgumentError("num_instances must be greater than zero")


def validate_add_app_endpoint_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(
        request,
        "organization_id",
        "app_instance_id",
        "service_group_instance_id",
        "service_instance_id",
        "endpoint_instance",
    )
    endpoint = EndpointInstance.from_wire(request["endpoint_instance"])
    if not endpoint.endpoint_instance_id:
        raise InvalidArgumentError("endpoint_instance_id cannot be empty")
    split_fqdn(endpoint.fqdn)
    if "port" in request and not isinstance(request["port"], int):
        raise InvalidArgumentError("invalid port").with_params(request["port"])
    APP_ENDPOINT_PROTOCOL.from_wire(request.get("protocol"), "protocol")


def validate_get_app_endpoints_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "fqdn")


def validate_add_app_zt_network_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "app_instance_id", "network_id")
