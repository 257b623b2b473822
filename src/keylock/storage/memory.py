"""In-memory record store for tests and throwaway deployments."""

from keylock.common.exceptions import StorageError
from keylock.licensing.records import DistributionMeta, LicenseRecord
from keylock.storage.base import LicenseStore


class MemoryLicenseStore(LicenseStore):
    """Dict-backed store. Set ``fail_writes`` to simulate an I/O fault."""

    def __init__(self):
        self._records: dict[str, LicenseRecord] | None = None
        self._meta: DistributionMeta | None = None
        self.fail_writes = False
        self.writes = 0

    def _require_loaded(self) -> dict[str, LicenseRecord]:
        if self._records is None:
            raise StorageError("Store not initialized: call load_or_initialize() first")
        return self._records

    def _check_writable(self) -> None:
        if self.fail_writes:
            raise StorageError("Simulated write failure")

    async def load_or_initialize(self, default_meta: DistributionMeta | None = None) -> None:
        if self._records is None:
            self._records = {}
        if self._meta is None:
            self._meta = default_meta or DistributionMeta()

    async def get(self, key: str) -> LicenseRecord | None:
        return self._require_loaded().get(key)

    async def put(self, key: str, record: LicenseRecord) -> None:
        records = self._require_loaded()
        self._check_writable()
        records[key] = record
        self.writes += 1

    async def delete(self, key: str) -> bool:
        records = self._require_loaded()
        if key not in records:
            return False
        self._check_writable()
        del records[key]
        self.writes += 1
        return True

    async def list_all(self) -> list[tuple[str, LicenseRecord]]:
        return list(self._require_loaded().items())

    async def get_distribution(self) -> DistributionMeta:
        self._require_loaded()
        return self._meta

    async def put_distribution(self, meta: DistributionMeta) -> None:
        self._require_loaded()
        self._check_writable()
        self._meta = meta
        self.writes += 1
