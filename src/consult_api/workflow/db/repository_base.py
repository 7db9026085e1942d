"""
Base Repository

Connection-scoped base class for the workflow repositories. A repository wraps
the connection of the transaction it belongs to, so every read and write made
by one workflow operation commits or rolls back together.
"""

from typing import Any
from typing import List
from typing import Optional
from typing import Type
from typing import TypeVar

import asyncpg
from pydantic import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


class BaseRepository:
    """
    Base repository with row-to-model helpers.

    Concrete repositories (RequestRepository, AssignmentRepository, etc.) inherit
    from this and add their table's queries.
    """

    model: Type[BaseModel]

    def __init__(self, conn: asyncpg.Connection):
        """
        Initialize base repository.

        Args:
            conn: Connection of the enclosing transaction
        """
        self.conn = conn

    async def _fetch_one(self, query: str, *args: Any) -> Optional[Any]:
        """Run a query returning at most one row and convert it to the repository's model."""
        row = await self.conn.fetchrow(query, *args)
        return self._to_model(row)

    async def _fetch_all(self, query: str, *args: Any) -> List[Any]:
        """Run a query and convert every row to the repository's model."""
        rows = await self.conn.fetch(query, *args)
        return [self._to_model(row) for row in rows]

    def _to_model(self, row: Optional[Any]) -> Optional[Any]:
        if row is None:
            return None
        return self.model.model_validate(dict(row))


def as_model(model: Type[ModelT], row: Optional[Any]) -> Optional[ModelT]:
    """Convert an asyncpg Record (or mapping) to the given model."""
    if row is None:
        return None
    return model.model_validate(dict(row))
