"""Binding manager: per-key serialization of record mutations.

Every read-modify-write of a license record, whether a verification or an
administrative change, runs inside that key's critical section. Two
concurrent first verifications of an unbound key are therefore ordered:
the second one loads the record the first one bound and is judged against
it. Different keys never wait on each other.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from keylock.common.exceptions import LicenseNotFoundError
from keylock.distribution.registry import VersionRegistry
from keylock.licensing import engine
from keylock.licensing.engine import VerificationRequest, Verdict
from keylock.licensing.records import LicenseRecord, utcnow
from keylock.storage.base import LicenseStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
AdminFn = Callable[[LicenseRecord], Optional[LicenseRecord]]


class _LockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.holders = 0


class KeyedLocks:
    """Lazily created asyncio locks, one per key, dropped once idle."""

    def __init__(self):
        self._entries: dict[str, _LockEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def is_locked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _LockEntry()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]


class BindingManager:
    """Runs verifications and admin mutations under per-key exclusion."""

    def __init__(
        self,
        store: LicenseStore,
        registry: VersionRegistry,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.registry = registry
        self.clock = clock
        self.locks = KeyedLocks()

    async def submit(self, key: str, request: VerificationRequest) -> Verdict:
        """Verify ``key`` for ``request`` and persist the resulting mutation.

        ``StorageError`` from the write propagates: the caller must not
        report success for a mutation that was not committed.
        """
        async with self.locks.hold(key):
            record = await self.store.get(key)
            meta = await self.registry.get()
            verdict = engine.verify(record, request, meta, self.clock())
            if verdict.updated is not None:
                await self.store.put(key, verdict.updated)

        context = {
            "license_key": key,
            "environment_id": request.environment_id,
            "sub_resource_id": request.sub_resource_id,
            "code": verdict.code,
        }
        if verdict.valid:
            if verdict.bound:
                logger.info("License bound to environment", extra=context)
            logger.info("License verified", extra={**context, "owner": verdict.owner})
        else:
            logger.warning("Verification rejected", extra=context)
        return verdict

    async def admin_mutate(self, key: str, fn: AdminFn) -> Optional[LicenseRecord]:
        """Apply ``fn`` to the stored record under the key's lock.

        ``fn`` returns the replacement record, or ``None`` to delete it.
        Raises ``LicenseNotFoundError`` when the key is absent.
        """
        async with self.locks.hold(key):
            record = await self.store.get(key)
            if record is None:
                raise LicenseNotFoundError()
            updated = fn(record)
            if updated is None:
                await self.store.delete(key)
            else:
                await self.store.put(key, updated)
            return updated

    async def insert(self, key: str, record: LicenseRecord) -> bool:
        """Store a brand-new record. Returns False if the key is taken."""
        async with self.locks.hold(key):
            if await self.store.contains(key):
                return False
            await self.store.put(key, record)
            return True

    async def read(self, key: str) -> Optional[LicenseRecord]:
        """Read one record without racing an in-flight mutation of it."""
        async with self.locks.hold(key):
            return await self.store.get(key)
