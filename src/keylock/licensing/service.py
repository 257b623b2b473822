"""Licensing service: verification entry point and administrative operations."""

import logging
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Optional

from keylock.common.config import KeylockSettings
from keylock.common.exceptions import LicenseNotFoundError, StorageError
from keylock.distribution.registry import VersionRegistry
from keylock.licensing import engine
from keylock.licensing.binding import BindingManager
from keylock.licensing.engine import VerificationRequest, Verdict
from keylock.licensing.keygen import generate_key
from keylock.licensing.records import DistributionMeta, LicenseRecord

logger = logging.getLogger(__name__)

MAX_KEY_ATTEMPTS = 5


@dataclass(frozen=True)
class LicenseStats:
    total: int
    active: int
    bound: int


class LicensingService:
    """Core licensing operations."""

    def __init__(
        self,
        settings: KeylockSettings,
        binding: BindingManager,
        registry: VersionRegistry,
    ):
        self.settings = settings
        self.binding = binding
        self.registry = registry

    @property
    def store(self):
        return self.binding.store

    # ── Verification ──

    async def verify(
        self,
        license_key: Optional[str],
        environment_id: Optional[str],
        sub_resource_id: Optional[str] = None,
    ) -> Verdict:
        """Verify a key for a caller environment; never raises for a verdict."""
        if not license_key or not environment_id:
            logger.warning("Verification rejected: missing parameters")
            return engine.reject(engine.MISSING_PARAMETERS)

        request = VerificationRequest(
            environment_id=str(environment_id),
            sub_resource_id=str(sub_resource_id) if sub_resource_id else None,
        )
        try:
            return await self.binding.submit(license_key, request)
        except StorageError:
            logger.exception("Verification not committed", extra={"license_key": license_key})
            return engine.reject(engine.STORAGE_FAILURE)

    # ── Administration ──

    async def create_license(
        self,
        owner: Optional[str] = None,
        expiry_days: Optional[int] = 0,
        notes: Optional[str] = None,
    ) -> tuple[str, LicenseRecord]:
        """Create a license and generate its key. Returns (key, record).

        ``expiry_days`` of 0 or None creates a lifetime license.
        """
        now = self.binding.clock()
        expiry_date = None
        if expiry_days and expiry_days > 0:
            expiry_date = now + timedelta(days=int(expiry_days))

        record = LicenseRecord(
            owner=owner or "Unknown",
            active=True,
            created_at=now,
            expiry_date=expiry_date,
            notes=notes or "",
        )

        for _ in range(MAX_KEY_ATTEMPTS):
            key = generate_key(
                self.settings.key_prefix,
                groups=self.settings.key_groups,
                group_bytes=self.settings.key_group_bytes,
            )
            if await self.binding.insert(key, record):
                logger.info("License created", extra={"license_key": key, "owner": record.owner})
                return key, record
            logger.warning("Generated key collided, regenerating", extra={"license_key": key})

        raise StorageError(f"Could not allocate a unique key after {MAX_KEY_ATTEMPTS} attempts")

    async def get_license(self, license_key: str) -> LicenseRecord:
        record = await self.binding.read(license_key)
        if record is None:
            raise LicenseNotFoundError()
        return record

    async def list_licenses(self) -> list[tuple[str, LicenseRecord]]:
        """Snapshot every record, each read under its own key lock."""
        result = []
        for key, _ in await self.store.list_all():
            record = await self.binding.read(key)
            if record is not None:
                result.append((key, record))
        result.sort(key=lambda item: item[1].created_at, reverse=True)
        return result

    async def toggle_license(self, license_key: str) -> LicenseRecord:
        updated = await self.binding.admin_mutate(
            license_key, lambda rec: replace(rec, active=not rec.active)
        )
        logger.info("License toggled (active=%s)", updated.active, extra={"license_key": license_key})
        return updated

    async def reset_binding(self, license_key: str) -> LicenseRecord:
        updated = await self.binding.admin_mutate(
            license_key,
            lambda rec: replace(
                rec,
                bound_environment_id=None,
                bound_sub_resource_id=None,
                first_activation=None,
            ),
        )
        logger.info("Binding reset", extra={"license_key": license_key})
        return updated

    async def delete_license(self, license_key: str) -> None:
        await self.binding.admin_mutate(license_key, lambda rec: None)
        logger.info("License deleted", extra={"license_key": license_key})

    async def stats(self) -> LicenseStats:
        records = [record for _, record in await self.store.list_all()]
        return LicenseStats(
            total=len(records),
            active=sum(1 for r in records if r.active),
            bound=sum(1 for r in records if r.is_bound),
        )

    # ── Distribution ──

    async def get_distribution(self) -> DistributionMeta:
        return await self.registry.get()

    async def update_distribution(
        self,
        version: str,
        force_update: bool = False,
        update_message: Optional[str] = None,
    ) -> DistributionMeta:
        return await self.registry.set(version, force_update, update_message)
