"""
System Model - metadata catalog of an edge computing platform.

This package keeps the authoritative records of:
- Organizations, users, roles, accounts and projects
- Clusters and the nodes attached to them
- Assets reported by edge controllers, devices and device groups
- Application descriptors, their instances, endpoints and connections

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────┐
    │   Client    │────▶│ gRPC (JSON) │────▶│  Managers   │
    └─────────────┘     │  handlers   │     │   (sagas)   │
                        └─────────────┘     └──────┬──────┘
                                                   │
                               ┌───────────────────┴───────────────────┐
                               ▼                                       ▼
                        ┌─────────────┐                         ┌─────────────┐
                        │Record tables│                         │Relationship │
                        │             │                         │  indexes    │
                        └──────┬──────┘                         └──────┬──────┘
                               └──────────────┬────────────────────────┘
                                              ▼
                                     SQLite file or memory

Invariants:
    - Every scoped entity references an existing parent when created
    - Relationship indexes agree with the records they list
    - A failed multi-step operation is compensated, never left half done

How to change safely:
    - Entity fields are added with defaults, never removed or renamed
    - Key fields of an entity never change once records are persisted

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
