"""Tests for record store backends: memory, JSON file and SQL."""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from keylock.common.config import KeylockSettings
from keylock.common.database import DatabaseManager
from keylock.common.exceptions import StorageError
from keylock.licensing.records import DistributionMeta, LicenseRecord
from keylock.storage.json_file import JsonFileLicenseStore
from keylock.storage.memory import MemoryLicenseStore
from keylock.storage.sql import SqlLicenseStore


CREATED = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


def sample_record(**overrides) -> LicenseRecord:
    defaults = {
        "owner": "Alice",
        "created_at": CREATED,
        "expiry_date": CREATED + timedelta(days=30),
        "bound_environment_id": "12345",
        "bound_sub_resource_id": "678",
        "first_activation": CREATED + timedelta(hours=1),
        "last_verified": CREATED + timedelta(hours=2),
        "verification_count": 7,
        "notes": "Discord: alice",
    }
    defaults.update(overrides)
    return LicenseRecord(**defaults)


@pytest.fixture(params=["memory", "json", "sql"])
async def store(request, tmp_path):
    if request.param == "memory":
        s = MemoryLicenseStore()
    elif request.param == "json":
        s = JsonFileLicenseStore(tmp_path / "licenses.json")
    else:
        settings = KeylockSettings(db_url=f"sqlite+aiosqlite:///{tmp_path / 'db' / 'keylock.db'}")
        s = SqlLicenseStore(DatabaseManager(settings))
    await s.load_or_initialize()
    yield s
    await s.close()


class TestStoreContract:
    async def test_get_missing(self, store):
        assert await store.get("MUSIC-00000000-00000000-00000000") is None

    async def test_contains(self, store):
        assert await store.contains("K1") is False
        await store.put("K1", sample_record())
        assert await store.contains("K1") is True

    async def test_put_then_get(self, store):
        record = sample_record()
        await store.put("K1", record)
        assert await store.get("K1") == record

    async def test_put_overwrites(self, store):
        await store.put("K1", sample_record())
        await store.put("K1", sample_record(owner="Bob", verification_count=8))
        fetched = await store.get("K1")
        assert fetched.owner == "Bob"
        assert fetched.verification_count == 8

    async def test_optional_fields_round_trip_as_none(self, store):
        record = LicenseRecord(owner="Carol", created_at=CREATED)
        await store.put("K2", record)
        fetched = await store.get("K2")
        assert fetched.expiry_date is None
        assert fetched.bound_environment_id is None
        assert fetched.first_activation is None
        assert fetched.verification_count == 0

    async def test_delete(self, store):
        await store.put("K1", sample_record())
        assert await store.delete("K1") is True
        assert await store.get("K1") is None

    async def test_delete_missing(self, store):
        assert await store.delete("nope") is False

    async def test_list_all(self, store):
        await store.put("K1", sample_record())
        await store.put("K2", sample_record(owner="Bob"))
        listed = dict(await store.list_all())
        assert set(listed) == {"K1", "K2"}
        assert listed["K2"].owner == "Bob"

    async def test_default_distribution(self, store):
        meta = await store.get_distribution()
        assert meta.current_version == "1.0.0"
        assert meta.force_update is False

    async def test_put_distribution(self, store):
        meta = DistributionMeta("2.0.0", True, "Please update")
        await store.put_distribution(meta)
        assert await store.get_distribution() == meta

    async def test_initialize_is_idempotent(self, store):
        await store.put("K1", sample_record())
        await store.put_distribution(DistributionMeta("3.1.0"))
        await store.load_or_initialize(DistributionMeta("9.9.9"))
        assert await store.get("K1") is not None
        assert (await store.get_distribution()).current_version == "3.1.0"


class TestMemoryStore:
    async def test_requires_initialization(self):
        with pytest.raises(StorageError):
            await MemoryLicenseStore().get("K")

    async def test_failed_write_leaves_state(self):
        s = MemoryLicenseStore()
        await s.load_or_initialize()
        await s.put("K", sample_record())
        s.fail_writes = True
        with pytest.raises(StorageError):
            await s.put("K", sample_record(owner="Mallory"))
        with pytest.raises(StorageError):
            await s.delete("K")
        assert (await s.get("K")).owner == "Alice"


class TestJsonFileStore:
    async def test_creates_file_with_defaults(self, tmp_path):
        path = tmp_path / "nested" / "licenses.json"
        s = JsonFileLicenseStore(path)
        await s.load_or_initialize(DistributionMeta("1.2.3", update_message="Hi"))
        data = json.loads(path.read_text())
        assert data == {
            "records": {},
            "currentVersion": "1.2.3",
            "forceUpdate": False,
            "updateMessage": "Hi",
        }

    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "licenses.json"
        first = JsonFileLicenseStore(path)
        await first.load_or_initialize()
        await first.put("K1", sample_record())

        second = JsonFileLicenseStore(path)
        await second.load_or_initialize()
        assert await second.get("K1") == sample_record()

    async def test_document_layout(self, tmp_path):
        path = tmp_path / "licenses.json"
        s = JsonFileLicenseStore(path)
        await s.load_or_initialize()
        await s.put("K1", sample_record())
        data = json.loads(path.read_text())
        rec = data["records"]["K1"]
        assert rec["boundEnvironmentId"] == "12345"
        assert rec["verificationCount"] == 7
        assert rec["expiryDate"].startswith("2025-03-31")

    async def test_existing_file_not_overwritten(self, tmp_path):
        path = tmp_path / "licenses.json"
        path.write_text(json.dumps({
            "records": {"K1": sample_record().to_dict()},
            "currentVersion": "4.0.0",
            "forceUpdate": True,
            "updateMessage": "Now",
        }))
        s = JsonFileLicenseStore(path)
        await s.load_or_initialize()
        assert (await s.get("K1")).owner == "Alice"
        assert (await s.get_distribution()).force_update is True

    async def test_reads_legacy_document(self, tmp_path):
        path = tmp_path / "licenses.json"
        path.write_text(json.dumps({
            "licenses": {
                "MUSIC-AAAAAAAA-BBBBBBBB-CCCCCCCC": {
                    "owner": "Legacy",
                    "active": True,
                    "createdAt": "2024-01-01T00:00:00.000Z",
                    "expiryDate": None,
                    "universeId": 555,
                    "placeId": 777,
                    "firstActivation": "2024-01-02T00:00:00.000Z",
                    "lastVerified": None,
                    "verificationCount": 3,
                    "notes": "",
                }
            },
            "scriptVersion": "1.4.0",
            "forceUpdate": False,
        }))
        s = JsonFileLicenseStore(path)
        await s.load_or_initialize()
        rec = await s.get("MUSIC-AAAAAAAA-BBBBBBBB-CCCCCCCC")
        assert rec.bound_environment_id == "555"
        assert rec.bound_sub_resource_id == "777"
        assert rec.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert (await s.get_distribution()).current_version == "1.4.0"

    async def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "licenses.json"
        path.write_text("{not json")
        with pytest.raises(StorageError):
            await JsonFileLicenseStore(path).load_or_initialize()
        assert path.read_text() == "{not json"

    async def test_failed_replace_keeps_previous_state(self, tmp_path, monkeypatch):
        path = tmp_path / "licenses.json"
        s = JsonFileLicenseStore(path)
        await s.load_or_initialize()
        await s.put("K1", sample_record())
        before = path.read_text()

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        with pytest.raises(StorageError):
            await s.put("K2", sample_record(owner="Bob"))

        assert await s.get("K2") is None
        assert path.read_text() == before
        leftovers = [p for p in tmp_path.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []


class TestJsonFileSharedPath:
    """Two stores on one file, as with `keylock serve` plus CLI edits."""

    @pytest.fixture
    async def pair(self, tmp_path):
        path = tmp_path / "licenses.json"
        server = JsonFileLicenseStore(path)
        await server.load_or_initialize()
        cli = JsonFileLicenseStore(path)
        await cli.load_or_initialize()
        return server, cli, path

    async def test_write_keeps_other_writers_records(self, pair):
        server, cli, path = pair
        await cli.put("MUSIC-CLI", sample_record(owner="FromCli"))
        await server.put("MUSIC-SRV", sample_record(owner="FromServer"))
        on_disk = json.loads(path.read_text())["records"]
        assert sorted(on_disk) == ["MUSIC-CLI", "MUSIC-SRV"]

    async def test_reader_sees_other_writers_changes(self, pair):
        server, cli, _ = pair
        await cli.put("MUSIC-CLI", sample_record())
        assert (await server.get("MUSIC-CLI")).owner == "Alice"
        assert [k for k, _ in await server.list_all()] == ["MUSIC-CLI"]

        await cli.put("MUSIC-CLI", sample_record(active=False))
        assert (await server.get("MUSIC-CLI")).active is False

        assert await cli.delete("MUSIC-CLI") is True
        assert await server.get("MUSIC-CLI") is None

    async def test_distribution_change_visible(self, pair):
        server, cli, _ = pair
        await cli.put_distribution(DistributionMeta("3.0.0", force_update=True))
        assert (await server.get_distribution()).current_version == "3.0.0"
        await server.put("K1", sample_record())
        assert (await cli.get_distribution()).force_update is True
