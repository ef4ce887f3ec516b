"""
Versioned persistence primitives for catalog tables.

Every write issued here is a single ``UPDATE ... WHERE`` statement whose
predicate carries the caller's expected version, so the match and the
version bump happen atomically in the database. The affected row count is
returned to the caller instead of raising; 0 means the guard did not
match (wrong id, stale version, or row already deleted).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class VersionedStore:
    """Conditional-write access to one mapped table."""

    # Columns owned by the store; a caller's patch may never set them
    PROTECTED_FIELDS = frozenset({"id", "version", "deleted_at", "created_at", "updated_at"})

    def __init__(self, db: AsyncSession, model):
        self.db = db
        self.model = model
        self._columns = frozenset(attr.key for attr in sa_inspect(model).column_attrs)
        if "deleted_at" not in self._columns:
            raise TypeError(f"{model.__name__} has no deleted_at column")

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    @property
    def is_versioned(self) -> bool:
        return "version" in self._columns

    def _writable_fields(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Validate a caller-supplied field mapping against the table."""
        protected = self.PROTECTED_FIELDS.intersection(fields)
        if protected:
            raise ValueError(
                f"Fields {sorted(protected)} of {self.entity_name} cannot be set by a caller"
            )
        unknown = set(fields) - self._columns
        if unknown:
            raise ValueError(f"Unknown {self.entity_name} fields: {sorted(unknown)}")
        return dict(fields)

    async def find(self, entity_id: int, include_deleted: bool = False):
        """
        Load the current row, or None when absent.

        populate_existing forces a re-read even when the object is already in
        the session, so a record returned after a conditional write is never
        a stale identity-map copy.
        """
        query = (
            select(self.model)
            .where(self.model.id == entity_id)
            .execution_options(populate_existing=True)
        )
        if not include_deleted:
            query = query.where(self.model.deleted_at.is_(None))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create(self, fields: Mapping[str, Any]):
        """Insert a new live row. Versioned rows always start at version 1."""
        values = self._writable_fields(fields)
        if self.is_versioned:
            values["version"] = 1
        instance = self.model(**values, deleted_at=None)
        self.db.add(instance)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    async def conditional_update(
        self,
        entity_id: int,
        expected_version: int,
        patch: Mapping[str, Any],
    ) -> int:
        """
        Apply ``patch`` only if the row still carries ``expected_version``.

        Sets ``version = expected_version + 1`` in the same statement.

        Returns:
            Number of rows affected (0 or 1)
        """
        if not self.is_versioned:
            raise TypeError(f"{self.entity_name} does not support versioned updates")
        values = self._writable_fields(patch)

        stmt = (
            update(self.model)
            .where(
                self.model.id == entity_id,
                self.model.version == expected_version,
                self.model.deleted_at.is_(None),
            )
            .values(**values, version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        logger.debug(
            f"Conditional update {self.entity_name} id={entity_id} "
            f"v{expected_version}: affected={result.rowcount}"
        )
        return result.rowcount

    async def conditional_soft_delete(
        self,
        entity_id: int,
        expected_version: Optional[int],
    ) -> int:
        """
        Mark the row deleted only if it is still live (and, for versioned
        tables, still at ``expected_version``). The version keeps increasing
        on delete.

        Returns:
            Number of rows affected (0 or 1)
        """
        conditions = [self.model.id == entity_id, self.model.deleted_at.is_(None)]
        values: dict[str, Any] = {"deleted_at": datetime.now(timezone.utc)}

        if self.is_versioned:
            if expected_version is None:
                raise ValueError(f"{self.entity_name} soft delete requires an expected version")
            conditions.append(self.model.version == expected_version)
            values["version"] = expected_version + 1
        elif expected_version is not None:
            raise ValueError(f"{self.entity_name} is not versioned")

        stmt = (
            update(self.model)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        logger.debug(
            f"Conditional soft delete {self.entity_name} id={entity_id} "
            f"v{expected_version}: affected={result.rowcount}"
        )
        return result.rowcount

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
