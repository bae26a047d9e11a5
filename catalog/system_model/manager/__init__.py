"""
Domain managers of the system model catalog.

A manager validates a request, checks that the referenced parents exist,
then mutates record tables and relationship indexes. Operations spanning
several of them run as a Saga so that a failure leaves no partial state.

Invariants:
    - Validation happens before any store access
    - Managers hold no state besides their stores and configuration

How to change safely:
    - Every new multi-step mutation needs a compensation for each step
    - Add an integration test with an injected store failure for it
"""

from .account import AccountManager, ProjectManager
from .application import ApplicationManager
from .application_network import ApplicationNetworkManager
from .asset import AssetManager
from .cluster import ClusterManager
from .device import DeviceManager
from .node import NodeManager
from .organization import OrganizationManager
from .saga import Saga
from .user import RoleManager, UserManager

__all__ = [
    "AccountManager",
    "ApplicationManager",
    "ApplicationNetworkManager",
    "AssetManager",
    "ClusterManager",
    "DeviceManager",
    "NodeManager",
    "OrganizationManager",
    "ProjectManager",
    "RoleManager",
    "Saga",
    "UserManager",
]
