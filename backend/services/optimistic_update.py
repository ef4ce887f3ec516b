"""Compare-and-swap updates for versioned catalog entities."""

import logging
from typing import Any, Mapping

from sqlalchemy.exc import IntegrityError, OperationalError

from services.errors import ConflictError, NotFoundError
from services.versioned_store import VersionedStore

logger = logging.getLogger(__name__)


class OptimisticUpdateController:
    """
    Update-if-unchanged for one entity type.

    The read of the current version and the conditional write are two
    statements; the write re-validates the version inside the database, so
    a writer that lands in between turns this call into a ConflictError
    rather than a lost update.
    """

    def __init__(self, store: VersionedStore):
        self.store = store

    async def update(self, entity_id: int, patch: Mapping[str, Any]):
        """
        Apply ``patch`` to the live entity and return the refreshed record.

        Raises:
            NotFoundError: No live entity with this id
            ConflictError: A concurrent write won, or a uniqueness
                constraint rejected the patch
        """
        name = self.store.entity_name
        record = await self.store.find(entity_id)
        if record is None:
            logger.warning(f"Update of missing {name} id={entity_id}")
            raise NotFoundError(name, entity_id)

        expected_version = record.version
        try:
            affected = await self.store.conditional_update(entity_id, expected_version, patch)
            if affected == 1:
                await self.store.commit()
        except (IntegrityError, OperationalError) as e:
            await self.store.rollback()
            logger.warning(
                f"Update of {name} id={entity_id} rejected by the database: "
                f"{type(e).__name__}"
            )
            raise ConflictError(
                f"{name} could not be updated as given. Please refresh and try again.",
                entity=name,
                entity_id=entity_id,
                expected_version=expected_version,
            ) from e

        if affected == 0:
            await self.store.rollback()
            logger.warning(
                f"Optimistic lock conflict on {name} id={entity_id} "
                f"(expected version {expected_version})"
            )
            raise ConflictError(
                f"{name} was modified by another user. Please refresh and try again.",
                entity=name,
                entity_id=entity_id,
                expected_version=expected_version,
            )

        # The write is committed; a delete landing afterwards must not hide it
        updated = await self.store.find(entity_id, include_deleted=True)
        logger.info(f"Updated {name} id={entity_id} to version {updated.version}")
        return updated
