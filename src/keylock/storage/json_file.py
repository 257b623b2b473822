"""Single-document JSON record store with atomic replace.

Layout on disk::

    {
      "records": {"MUSIC-...": {...}, ...},
      "currentVersion": "1.0.0",
      "forceUpdate": false,
      "updateMessage": "Update available"
    }

Each mutation serializes the whole document to a temporary file in the
same directory, fsyncs it and renames it over the previous file, so a
crash mid-write leaves either the old or the new document, never a torn
one. The in-memory view is only swapped after the rename succeeds.

The file is shared with other processes (the CLI edits it while the server
runs). Every operation compares the file's inode, mtime and size with the
ones seen at the last load or write, and reloads the document first when
another writer has replaced it.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from keylock.common.exceptions import StorageError
from keylock.licensing.records import DistributionMeta, LicenseRecord
from keylock.storage.base import LicenseStore

logger = logging.getLogger(__name__)


class JsonFileLicenseStore(LicenseStore):
    """Record store persisted as one JSON file."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._records: dict[str, LicenseRecord] | None = None
        self._meta: DistributionMeta | None = None
        self._stamp: tuple[int, int, int] | None = None

    # ── Persistence primitives ──

    def _file_stamp(self) -> tuple[int, int, int] | None:
        try:
            st = os.stat(self.path)
        except OSError:
            return None
        return (st.st_ino, st.st_mtime_ns, st.st_size)

    def _read_document(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            logger.exception("Failed to read license file %s", self.path)
            raise StorageError(f"Cannot read license file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"License file {self.path} is not a JSON object")
        # Legacy files name the record map "licenses".
        if "records" not in data and "licenses" in data:
            data["records"] = data.pop("licenses")
        return data

    def _write_document(
        self, records: dict[str, LicenseRecord], meta: DistributionMeta
    ) -> None:
        document = {"records": {k: r.to_dict() for k, r in records.items()}}
        document.update(meta.to_dict())
        payload = json.dumps(document, indent=2)

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
            self._stamp = self._file_stamp()
        except OSError as exc:
            logger.exception("Failed to write license file %s", self.path)
            raise StorageError(f"Cannot write license file {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temp file %s", tmp_name)

    def _load_from_disk(self) -> None:
        # Stamp first: a write racing the read shows up as a change next time.
        stamp = self._file_stamp()
        data = self._read_document()
        try:
            records = {
                key: LicenseRecord.from_dict(value)
                for key, value in (data.get("records") or {}).items()
            }
        except (TypeError, ValueError, AttributeError) as exc:
            raise StorageError(f"License file {self.path} holds a malformed record: {exc}") from exc
        self._records = records
        self._meta = DistributionMeta.from_dict(data)
        self._stamp = stamp

    def _require_loaded(self) -> tuple[dict[str, LicenseRecord], DistributionMeta]:
        if self._records is None or self._meta is None:
            raise StorageError("Store not initialized: call load_or_initialize() first")
        stamp = self._file_stamp()
        if stamp is not None and stamp != self._stamp:
            logger.info("License file %s changed on disk, reloading", self.path)
            self._load_from_disk()
        return self._records, self._meta

    # ── Contract ──

    async def load_or_initialize(self, default_meta: DistributionMeta | None = None) -> None:
        if self._records is not None:
            return
        if not self.path.exists():
            records: dict[str, LicenseRecord] = {}
            meta = default_meta or DistributionMeta()
            self._write_document(records, meta)
            self._records = records
            self._meta = meta
            logger.info("Initialized empty license file at %s", self.path)
        else:
            self._load_from_disk()
            logger.info("Loaded %d licenses from %s", len(self._records), self.path)

    async def get(self, key: str) -> LicenseRecord | None:
        records, _ = self._require_loaded()
        return records.get(key)

    async def put(self, key: str, record: LicenseRecord) -> None:
        records, meta = self._require_loaded()
        updated = dict(records)
        updated[key] = record
        self._write_document(updated, meta)
        self._records = updated

    async def delete(self, key: str) -> bool:
        records, meta = self._require_loaded()
        if key not in records:
            return False
        updated = dict(records)
        del updated[key]
        self._write_document(updated, meta)
        self._records = updated
        return True

    async def list_all(self) -> list[tuple[str, LicenseRecord]]:
        records, _ = self._require_loaded()
        return list(records.items())

    async def get_distribution(self) -> DistributionMeta:
        _, meta = self._require_loaded()
        return meta

    async def put_distribution(self, meta: DistributionMeta) -> None:
        records, _ = self._require_loaded()
        self._write_document(records, meta)
        self._meta = meta
