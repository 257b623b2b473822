"""Record store backends."""

from keylock.storage.base import LicenseStore
from keylock.storage.memory import MemoryLicenseStore
from keylock.storage.json_file import JsonFileLicenseStore

__all__ = ["LicenseStore", "MemoryLicenseStore", "JsonFileLicenseStore"]
