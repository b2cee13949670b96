"""Generic repository pattern for typed backend table access.

``Repository[T]`` wraps one backend table and validates every row into the
pydantic model ``T`` on the way out, so services never handle raw dicts.

Reference:
    - Repository Pattern: https://martinfowler.com/eaaCatalog/repository.html

Example:
    >>> from communityconnect.repository import Repository
    >>> from communityconnect.models import Post, Profile
    >>>
    >>> posts = Repository[Post](backend, "posts", Post)
    >>> profiles = Repository[Profile](backend, "profiles", Profile)
    >>>
    >>> profile = await profiles.get("6f1c...")   # Profile | None
    >>> active = await posts.find_by(status="active", order_by="created_at")
"""

from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from communityconnect.api import BackendError
from communityconnect.interfaces import IDataStore

# =============================================================================
# Type Variables
# =============================================================================

T = TypeVar("T", bound=BaseModel)


# =============================================================================
# Generic Repository
# =============================================================================


class Repository(Generic[T]):
    """Typed access to one backend table.

    Type Parameter:
        T: Pydantic model rows are validated into (Post, Profile, HelpRequest)

    Args:
        store: Tabular data store
        table: Table name
        model: Pydantic model class

    Raises:
        pydantic.ValidationError: When a returned row does not fit ``model``
        BackendError: Propagated from the store
    """

    def __init__(self, store: IDataStore, table: str, model: type[T]):
        self.store = store
        self.table = table
        self.model = model

    def _validate(self, row: Mapping[str, Any]) -> T:
        return self.model.model_validate(row)

    async def get(self, entity_id: str, columns: str = "*") -> T | None:
        """Get entity by ID.

        Returns:
            Entity instance or None if not found
        """
        rows = await self.store.select(
            self.table,
            columns=columns,
            filters={"id": entity_id},
            limit=1,
        )
        return self._validate(rows[0]) if rows else None

    async def find_by(
        self,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        **filters: Any,
    ) -> list[T]:
        """Find entities matching equality filters.

        Example:
            >>> mine = await posts.find_by(
            ...     columns=POST_WITH_AUTHOR,
            ...     order_by="created_at",
            ...     descending=True,
            ...     user_id=user_id,
            ... )
        """
        rows = await self.store.select(
            self.table,
            columns=columns,
            filters=filters,
            order=order_by,
            descending=descending,
            limit=limit,
        )
        return [self._validate(row) for row in rows]

    async def create(self, payload: Mapping[str, Any]) -> T:
        """Insert one row and return it as stored by the backend."""
        rows = await self.store.insert(self.table, dict(payload))
        if not rows:
            raise BackendError(f"Insert into {self.table} returned no rows")
        return self._validate(rows[0])


__all__ = ["Repository"]
