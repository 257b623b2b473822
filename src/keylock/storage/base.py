"""Record store contract shared by every storage backend."""

from abc import ABC, abstractmethod

from keylock.licensing.records import DistributionMeta, LicenseRecord


class LicenseStore(ABC):
    """Durable mapping of license key to record, plus distribution metadata.

    Stores give last-writer-wins semantics only. Serializing concurrent
    read-modify-write cycles on one key is the binding manager's job.
    A failed write raises ``StorageError`` and leaves the previously
    committed state visible.
    """

    @abstractmethod
    async def load_or_initialize(self, default_meta: DistributionMeta | None = None) -> None:
        """Create an empty record set and default metadata if none exists.

        Idempotent; never overwrites existing data.
        """

    @abstractmethod
    async def get(self, key: str) -> LicenseRecord | None:
        ...

    @abstractmethod
    async def put(self, key: str, record: LicenseRecord) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a record. Returns False if the key was absent."""

    @abstractmethod
    async def list_all(self) -> list[tuple[str, LicenseRecord]]:
        ...

    @abstractmethod
    async def get_distribution(self) -> DistributionMeta:
        ...

    @abstractmethod
    async def put_distribution(self, meta: DistributionMeta) -> None:
        ...

    async def contains(self, key: str) -> bool:
        return await self.get(key) is not None

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
