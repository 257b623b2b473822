"""SQLAlchemy-backed record store.

Every ``put``/``delete`` runs in its own committed transaction, so readers
only ever observe whole records.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from keylock.common.database import DatabaseManager
from keylock.common.exceptions import StorageError
from keylock.licensing.records import DistributionMeta, LicenseRecord, parse_timestamp
from keylock.storage.base import LicenseStore
from keylock.storage.models import DistributionRow, LicenseRow

logger = logging.getLogger(__name__)

DISTRIBUTION_ROW_ID = 1


def _row_to_record(row: LicenseRow) -> LicenseRecord:
    # SQLite drops tzinfo; parse_timestamp restores UTC.
    return LicenseRecord(
        owner=row.owner,
        active=row.active,
        created_at=parse_timestamp(row.created_at),
        expiry_date=parse_timestamp(row.expiry_date),
        bound_environment_id=row.bound_environment_id,
        bound_sub_resource_id=row.bound_sub_resource_id,
        first_activation=parse_timestamp(row.first_activation),
        last_verified=parse_timestamp(row.last_verified),
        verification_count=row.verification_count or 0,
        notes=row.notes or "",
    )


def _apply_record(row: LicenseRow, record: LicenseRecord) -> None:
    row.owner = record.owner
    row.active = record.active
    row.created_at = record.created_at
    row.expiry_date = record.expiry_date
    row.bound_environment_id = record.bound_environment_id
    row.bound_sub_resource_id = record.bound_sub_resource_id
    row.first_activation = record.first_activation
    row.last_verified = record.last_verified
    row.verification_count = record.verification_count
    row.notes = record.notes


class SqlLicenseStore(LicenseStore):
    """Record store on top of an async SQLAlchemy engine."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def load_or_initialize(self, default_meta: DistributionMeta | None = None) -> None:
        meta = default_meta or DistributionMeta()
        try:
            await self.db.init()
            await self.db.ensure_schema()
            async with self.db.transaction() as session:
                existing = await session.get(DistributionRow, DISTRIBUTION_ROW_ID)
                if existing is None:
                    session.add(DistributionRow(
                        id=DISTRIBUTION_ROW_ID,
                        current_version=meta.current_version,
                        force_update=meta.force_update,
                        update_message=meta.update_message,
                    ))
                    logger.info("Initialized distribution metadata at %s", meta.current_version)
        except SQLAlchemyError as exc:
            logger.exception("Failed to initialize SQL license store")
            raise StorageError(f"Cannot initialize database: {exc}") from exc

    async def get(self, key: str) -> LicenseRecord | None:
        try:
            async with self.db.transaction() as session:
                row = await session.get(LicenseRow, key)
                return _row_to_record(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Cannot read license {key}: {exc}") from exc

    async def put(self, key: str, record: LicenseRecord) -> None:
        try:
            async with self.db.transaction() as session:
                row = await session.get(LicenseRow, key)
                if row is None:
                    row = LicenseRow(key=key)
                    session.add(row)
                _apply_record(row, record)
        except SQLAlchemyError as exc:
            logger.exception("Failed to write license", extra={"license_key": key})
            raise StorageError(f"Cannot write license {key}: {exc}") from exc

    async def delete(self, key: str) -> bool:
        try:
            async with self.db.transaction() as session:
                row = await session.get(LicenseRow, key)
                if row is None:
                    return False
                await session.delete(row)
                return True
        except SQLAlchemyError as exc:
            logger.exception("Failed to delete license", extra={"license_key": key})
            raise StorageError(f"Cannot delete license {key}: {exc}") from exc

    async def list_all(self) -> list[tuple[str, LicenseRecord]]:
        try:
            async with self.db.transaction() as session:
                result = await session.execute(select(LicenseRow))
                return [(row.key, _row_to_record(row)) for row in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise StorageError(f"Cannot list licenses: {exc}") from exc

    async def get_distribution(self) -> DistributionMeta:
        try:
            async with self.db.transaction() as session:
                row = await session.get(DistributionRow, DISTRIBUTION_ROW_ID)
        except SQLAlchemyError as exc:
            raise StorageError(f"Cannot read distribution metadata: {exc}") from exc
        if row is None:
            raise StorageError("Distribution metadata missing: call load_or_initialize() first")
        return DistributionMeta(
            current_version=row.current_version,
            force_update=row.force_update,
            update_message=row.update_message or "",
        )

    async def put_distribution(self, meta: DistributionMeta) -> None:
        try:
            async with self.db.transaction() as session:
                row = await session.get(DistributionRow, DISTRIBUTION_ROW_ID)
                if row is None:
                    row = DistributionRow(id=DISTRIBUTION_ROW_ID)
                    session.add(row)
                row.current_version = meta.current_version
                row.force_update = meta.force_update
                row.update_message = meta.update_message
        except SQLAlchemyError as exc:
            logger.exception("Failed to write distribution metadata")
            raise StorageError(f"Cannot write distribution metadata: {exc}") from exc

    async def close(self) -> None:
        await self.db.close()
