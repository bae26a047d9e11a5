"""Helpers shared by the managers."""

from __future__ import annotations

import logging
from typing import List, Sequence

from ..errors import NotFoundError
from ..provider import AssociationIndex, RecordStores, RecordTable
from ..provider.base import Key, T

logger = logging.getLogger(__name__)


class Manager:
    """Base class of the stateless domain managers.

    Attributes:
        stores: Record tables and relationship indexes
    """

    def __init__(self, stores: RecordStores) -> None:
        self.stores = stores

    async def require_organization(self, organization_id: str) -> None:
        """Raise NotFoundError unless the organization exists."""
        if not await self.stores.organizations.exists(organization_id):
            raise NotFoundError("organization").with_params(organization_id)

    @staticmethod
    async def require_child(index: AssociationIndex, parent: Key, child: str, kind: str) -> None:
        """Raise NotFoundError unless child is listed under parent."""
        if not await index.exists(parent, child):
            raise NotFoundError(kind).with_params(*parent, child)

    @staticmethod
    async def fetch_all(table: RecordTable[T], scope: Sequence[str], ids: Sequence[str]) -> List[T]:
        """Load the records listed by an index, in index order."""
        return [await table.get(*scope, child) for child in ids]
