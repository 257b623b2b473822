"""Version broadcast registry.

Holds the current distributable version and force-update flag that every
successful verification reports back to clients.
"""

import asyncio
import logging

from keylock.common.exceptions import ValidationError
from keylock.licensing.records import DistributionMeta
from keylock.storage.base import LicenseStore

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_MESSAGE = "Update available"


class VersionRegistry:
    """Store-backed holder of the distribution metadata."""

    def __init__(self, store: LicenseStore):
        self.store = store
        self._lock = asyncio.Lock()

    async def get(self) -> DistributionMeta:
        return await self.store.get_distribution()

    async def set(
        self,
        version: str,
        force_update: bool = False,
        update_message: str | None = None,
    ) -> DistributionMeta:
        """Publish a new version. Only the version string is validated."""
        version = (version or "").strip()
        if not version:
            raise ValidationError("Version must be a non-empty string")

        meta = DistributionMeta(
            current_version=version,
            force_update=bool(force_update),
            update_message=update_message or DEFAULT_UPDATE_MESSAGE,
        )
        async with self._lock:
            await self.store.put_distribution(meta)
        logger.info(
            "Distribution version set to %s (force_update=%s)",
            meta.current_version, meta.force_update,
        )
        return meta


def parse_version(version: str) -> tuple:
    """Split a dotted version into comparable parts.

    Numeric parts compare numerically and sort before textual ones, so
    ``1.10.0`` > ``1.9.2``.
    """
    parts = []
    for piece in version.strip().replace("-", ".").split("."):
        if piece.isdigit():
            parts.append((0, int(piece), ""))
        else:
            parts.append((1, 0, piece))
    return tuple(parts)
