"""
Entity model for the system model catalog.

Each module defines the dataclasses of one sub-domain, their enum wire
mappings and the request validators used at the handler boundary.
"""

from .account import Account, AccountState, Project
from .application import AppDescriptor, AppEndpoint, AppInstance, AppZtNetwork
from .application_network import ConnectionInstance, ConnectionInstanceLink
from .asset import Asset
from .cluster import Cluster
from .common import Entity, EnumMapping, InfraStatus, Record
from .device import Device, DeviceGroup
from .node import Node, NodeState
from .organization import Organization
from .role import Role
from .user import User

__all__ = [
    "Account",
    "AccountState",
    "AppDescriptor",
    "AppEndpoint",
    "AppInstance",
    "AppZtNetwork",
    "Asset",
    "Cluster",
    "ConnectionInstance",
    "ConnectionInstanceLink",
    "Device",
    "DeviceGroup",
    "Entity",
    "EnumMapping",
    "InfraStatus",
    "Node",
    "NodeState",
    "Organization",
    "Project",
    "Record",
    "Role",
    "User",
]
