"""Per-entity catalog services wiring the store to both controllers."""

import logging
from typing import Any, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.album import Album
from models.band import Band
from models.country import Country
from models.event import Event
from models.member import Member
from models.song import Song
from services.errors import ConflictError, NotFoundError
from services.optimistic_update import OptimisticUpdateController
from services.soft_delete import DeleteResult, SoftDeleteController
from services.versioned_store import VersionedStore

logger = logging.getLogger(__name__)


class CatalogService:
    """Create, read, update and soft-delete for one catalog entity type."""

    def __init__(self, db: AsyncSession, model):
        self.store = VersionedStore(db, model)
        self.deleter = SoftDeleteController(self.store)
        self.updater = (
            OptimisticUpdateController(self.store) if self.store.is_versioned else None
        )

    async def create(self, fields: Mapping[str, Any]):
        try:
            instance = await self.store.create(fields)
            await self.store.commit()
        except IntegrityError as e:
            await self.store.rollback()
            raise ConflictError(
                f"{self.store.entity_name} already exists or references a missing record",
                entity=self.store.entity_name,
            ) from e
        logger.info(f"Created {self.store.entity_name} id={instance.id}")
        return instance

    async def get(self, entity_id: int):
        """Return the live entity or raise NotFoundError."""
        instance = await self.store.find(entity_id)
        if instance is None:
            raise NotFoundError(self.store.entity_name, entity_id)
        return instance

    async def update(self, entity_id: int, patch: Mapping[str, Any]):
        if self.updater is None:
            raise TypeError(f"{self.store.entity_name} does not support versioned updates")
        return await self.updater.update(entity_id, patch)

    async def remove(self, entity_id: int) -> DeleteResult:
        return await self.deleter.remove(entity_id)


def bands(db: AsyncSession) -> CatalogService:
    return CatalogService(db, Band)


def albums(db: AsyncSession) -> CatalogService:
    return CatalogService(db, Album)


def events(db: AsyncSession) -> CatalogService:
    return CatalogService(db, Event)


def songs(db: AsyncSession) -> CatalogService:
    return CatalogService(db, Song)


def members(db: AsyncSession) -> CatalogService:
    return CatalogService(db, Member)


def countries(db: AsyncSession) -> CatalogService:
    return CatalogService(db, Country)
