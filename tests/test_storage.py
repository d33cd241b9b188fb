# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""Tests for the storage collaborators."""

import threading

import pytest

from skillhub.storage import (
    FileService,
    InMemoryFileRegistry,
    InMemoryObjectStorage,
    DuplicateRecordError,
    InMemorySkillStore,
    LocalObjectStorage,
    ObjectNotFoundError,
    SkillRecordTable,
    SkillSource,
    SQLiteSkillStore,
    StorageError,
    create_record_store,
)


@pytest.fixture(params=["memory", "sqlite-memory", "sqlite-file"])
def record_store(request, tmp_path):
    if request.param == "memory":
        yield InMemorySkillStore("user_1")
    elif request.param == "sqlite-memory":
        with SQLiteSkillStore("user_1") as store:
            yield store
    else:
        with SQLiteSkillStore("user_1", path=str(tmp_path / "db" / "skills.db")) as store:
            yield store


# ==================== record stores ====================

def test_create_and_find(record_store):
    record = record_store.create(
        identifier="github.acme.tools",
        name="tools",
        description="Tooling",
        content="# Tools",
        manifest={"name": "tools", "description": "Tooling", "x-extra": [1, 2]},
        source=SkillSource.MARKET,
        resource_ids={"a.txt": "file_1"},
        archive_hash="f" * 64,
    )

    assert record.id.startswith("skill_")
    assert record.user_id == "user_1"

    found = record_store.find_by_id(record.id)
    assert found.identifier == "github.acme.tools"
    assert found.manifest["x-extra"] == [1, 2]
    assert found.resource_ids == {"a.txt": "file_1"}
    assert found.source == SkillSource.MARKET
    assert found.archive_hash == "f" * 64

    assert record_store.find_by_identifier("github.acme.tools").id == record.id
    assert record_store.find_by_identifier("missing") is None
    assert record_store.find_by_id("skill_missing") is None


def test_duplicate_identifier(record_store):
    record_store.create(identifier="dup", name="a")
    with pytest.raises(DuplicateRecordError):
        record_store.create(identifier="dup", name="b")


def test_update(record_store):
    record = record_store.create(identifier="x", name="old", manifest={"name": "old"})
    updated = record_store.update(
        record.id,
        name="new",
        manifest={"name": "new", "version": "1"},
        resource_ids={"r.txt": "file_9"},
    )

    assert updated.id == record.id
    assert updated.name == "new"
    assert updated.manifest == {"name": "new", "version": "1"}
    assert updated.resource_ids == {"r.txt": "file_9"}
    assert updated.updated_at >= record.updated_at
    assert record_store.find_by_id(record.id).name == "new"


def test_update_rejects_unknown_fields(record_store):
    record = record_store.create(identifier="x", name="n")
    with pytest.raises(StorageError, match="identifier"):
        record_store.update(record.id, identifier="y")


def test_update_missing_record(record_store):
    with pytest.raises(ObjectNotFoundError):
        record_store.update("skill_missing", name="x")


def test_delete(record_store):
    record = record_store.create(identifier="x", name="n")
    assert record_store.delete(record.id) is True
    assert record_store.delete(record.id) is False
    assert record_store.find_all() == []


def test_list_by_source_and_search(record_store):
    record_store.create(identifier="user.1", name="Notes", source=SkillSource.USER)
    record_store.create(identifier="github.acme.pdf", name="pdf", description="PDF forms", source=SkillSource.MARKET)

    assert [r.identifier for r in record_store.list_by_source(SkillSource.MARKET)] == ["github.acme.pdf"]
    assert [r.identifier for r in record_store.list_by_source("user")] == ["user.1"]
    assert [r.identifier for r in record_store.search("forms")] == ["github.acme.pdf"]
    assert len(record_store.find_all()) == 2


def test_records_are_isolated_per_user():
    shared = SkillRecordTable()
    alice = InMemorySkillStore("alice", shared=shared)
    bob = InMemorySkillStore("bob", shared=shared)

    record = alice.create(identifier="same", name="a")
    bob.create(identifier="same", name="b")

    assert bob.find_by_id(record.id) is None
    assert bob.delete(record.id) is False
    assert [r.name for r in alice.find_all()] == ["a"]
    assert len(shared) == 2


def test_shared_table_serializes_duplicate_creates():
    """Stores sharing one table agree on identifier uniqueness under concurrency."""
    table = SkillRecordTable()
    stores = [InMemorySkillStore("alice", shared=table) for _ in range(2)]
    created = []
    duplicates = []
    barrier = threading.Barrier(16)

    def worker(i):
        barrier.wait()
        try:
            created.append(stores[i % 2].create(identifier="same", name=f"n{i}"))
        except DuplicateRecordError:
            duplicates.append(i)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(created) == 1
    assert len(duplicates) == 15
    assert len(stores[0].find_all()) == len(stores[1].find_all()) == 1


def test_sqlite_users_share_file(tmp_path):
    path = str(tmp_path / "skills.db")
    with SQLiteSkillStore("alice", path=path) as alice, SQLiteSkillStore("bob", path=path) as bob:
        record = alice.create(identifier="same", name="a")
        bob.create(identifier="same", name="b")
        assert bob.find_by_id(record.id) is None
        assert bob.find_by_identifier("same").name == "b"


def test_sqlite_persists_across_instances(tmp_path):
    path = str(tmp_path / "skills.db")
    with SQLiteSkillStore("user_1", path=path) as store:
        record = store.create(identifier="x", name="n", manifest={"gitUrl": "https://github.com/a/b"})

    with SQLiteSkillStore("user_1", path=path) as store:
        assert store.find_by_id(record.id).manifest == {"gitUrl": "https://github.com/a/b"}


def test_sqlite_thread_local_connections(tmp_path):
    store = SQLiteSkillStore("user_1", path=str(tmp_path / "skills.db"))
    errors = []

    def worker(i):
        try:
            store.create(identifier=f"id.{i}", name=f"n{i}")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(store.find_all()) == 4
    store.close()


def test_create_record_store():
    assert isinstance(create_record_store("memory", user_id="u"), InMemorySkillStore)
    assert isinstance(create_record_store("sqlite", user_id="u"), SQLiteSkillStore)
    with pytest.raises(ValueError):
        create_record_store("memory")
    with pytest.raises(ValueError, match="Unknown storage type"):
        create_record_store("redis", user_id="u")


# ==================== object storage ====================

def test_in_memory_object_storage():
    storage = InMemoryObjectStorage()
    storage.put("a/b.txt", b"hello", "text/plain")

    assert storage.exists("a/b.txt")
    assert storage.get("a/b.txt") == b"hello"
    assert storage.content_type("a/b.txt") == "text/plain"
    assert storage.keys() == ["a/b.txt"]
    assert storage.delete("a/b.txt") is True
    assert storage.delete("a/b.txt") is False
    with pytest.raises(ObjectNotFoundError):
        storage.get("a/b.txt")


def test_local_object_storage(tmp_path):
    storage = LocalObjectStorage(tmp_path / "store")
    storage.put("skills/zip/abc.zip", b"PK", "application/zip")

    assert (tmp_path / "store" / "objects" / "skills" / "zip" / "abc.zip").read_bytes() == b"PK"
    assert (tmp_path / "store" / "meta" / "skills" / "zip" / "abc.zip.json").is_file()
    assert storage.get("skills/zip/abc.zip") == b"PK"
    assert storage.content_type("skills/zip/abc.zip") == "application/zip"
    assert storage.exists("skills/zip/abc.zip")

    assert storage.delete("skills/zip/abc.zip") is True
    assert not storage.exists("skills/zip/abc.zip")
    assert storage.content_type("skills/zip/abc.zip") is None
    with pytest.raises(ObjectNotFoundError):
        storage.get("skills/zip/abc.zip")


@pytest.mark.parametrize("key", ["../escape.txt", "a/../../escape.txt", ""])
def test_local_object_storage_rejects_bad_keys(tmp_path, key):
    storage = LocalObjectStorage(tmp_path / "store")
    with pytest.raises(StorageError):
        storage.put(key, b"x", "text/plain")


def test_local_object_storage_accepts_json_named_keys(tmp_path):
    """Keys that look like metadata files are ordinary objects."""
    storage = LocalObjectStorage(tmp_path / "store")
    storage.put("res/config.json", b"{}", "application/json")
    storage.put("res/config.meta.json", b"{\"a\": 1}", "text/plain")

    assert storage.get("res/config.meta.json") == b'{"a": 1}'
    assert storage.content_type("res/config.meta.json") == "text/plain"
    assert storage.get("res/config.json") == b"{}"
    assert storage.content_type("res/config.json") == "application/json"

    assert storage.delete("res/config.meta.json") is True
    assert storage.get("res/config.json") == b"{}"


def test_local_object_storage_wraps_os_errors(tmp_path):
    storage = LocalObjectStorage(tmp_path / "store")
    storage.put("blocker", b"file", "text/plain")
    with pytest.raises(StorageError):
        storage.put("blocker/child.txt", b"x", "text/plain")


# ==================== file registry / service ====================

def test_registry_deduplicates_by_hash():
    registry = InMemoryFileRegistry()
    first = registry.create("h1", "text/plain", "a.txt", 1, "k/a.txt")
    second = registry.create("h1", "text/plain", "b.txt", 1, "k/b.txt")
    third = registry.create("h2", "text/plain", "c.txt", 1, "k/c.txt")

    assert first == second != third
    assert registry.find_by_id(first).url == "k/a.txt"
    assert registry.delete(first) is True
    assert registry.find_by_id(first) is None
    assert registry.create("h1", "text/plain", "a.txt", 1, "k/a.txt") != first


def test_download_file_to_local_cleans_up(tmp_path):
    service = FileService(InMemoryObjectStorage(), InMemoryFileRegistry(), temp_dir=tmp_path)
    file_id = service.upload_file("skill.zip", b"PK\x03\x04", "application/zip")

    with service.download_file_to_local(file_id) as path:
        assert path.parent == tmp_path
        assert path.name.startswith("skill_upload_")
        assert path.suffix == ".zip"
        assert path.read_bytes() == b"PK\x03\x04"
    assert not path.exists()

    with pytest.raises(RuntimeError):
        with service.download_file_to_local(file_id) as path:
            raise RuntimeError("boom")
    assert not path.exists()
    assert list(tmp_path.iterdir()) == []


def test_download_file_to_local_missing_record(tmp_path):
    service = FileService(InMemoryObjectStorage(), InMemoryFileRegistry(), temp_dir=tmp_path)
    with pytest.raises(ObjectNotFoundError):
        with service.download_file_to_local("file_missing"):
            pass
