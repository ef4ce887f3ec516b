"""Idempotent, race-safe logical deletion."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError, OperationalError

from services.errors import ConflictError, NotFoundError
from services.versioned_store import VersionedStore

logger = logging.getLogger(__name__)


@dataclass
class DeleteResult:
    """Outcome of a successful remove() call."""
    entity_id: int
    deleted_at: datetime
    already_deleted: bool = False


class SoftDeleteController:
    """
    Marks rows deleted exactly once.

    Unlike updates, reaching the target state is not a conflict: removing an
    already-deleted row succeeds without touching it. A row that changed
    between the read and the guarded write is still a ConflictError.
    """

    def __init__(self, store: VersionedStore):
        self.store = store

    async def remove(self, entity_id: int) -> DeleteResult:
        name = self.store.entity_name
        record = await self.store.find(entity_id, include_deleted=True)
        if record is None:
            raise NotFoundError(name, entity_id)

        if record.deleted_at is not None:
            logger.debug(f"{name} id={entity_id} already deleted; nothing to do")
            return DeleteResult(
                entity_id=entity_id,
                deleted_at=record.deleted_at,
                already_deleted=True,
            )

        expected_version = record.version if self.store.is_versioned else None
        try:
            affected = await self.store.conditional_soft_delete(entity_id, expected_version)
            if affected == 1:
                await self.store.commit()
        except (IntegrityError, OperationalError) as e:
            await self.store.rollback()
            raise ConflictError(
                f"Conflict while deleting {name}. Please retry.",
                entity=name,
                entity_id=entity_id,
                expected_version=expected_version,
            ) from e

        if affected == 0:
            await self.store.rollback()
            logger.warning(
                f"Soft delete conflict on {name} id={entity_id} "
                f"(expected version {expected_version})"
            )
            raise ConflictError(
                f"{name} was modified or deleted by another process. "
                "Please refresh and try again.",
                entity=name,
                entity_id=entity_id,
                expected_version=expected_version,
            )

        deleted = await self.store.find(entity_id, include_deleted=True)
        logger.info(f"Soft-deleted {name} id={entity_id}")
        return DeleteResult(entity_id=entity_id, deleted_at=deleted.deleted_at)
