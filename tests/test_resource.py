# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""Tests for resource storage and the resource tree."""

import hashlib
import itertools

import pytest

from skillhub.skills import SkillResourceError, SkillResourceService, build_tree, guess_content_type
from skillhub.storage import FileService, InMemoryFileRegistry, InMemoryObjectStorage, StorageError

ARCHIVE_HASH = "a" * 64


@pytest.fixture
def service(file_service):
    return SkillResourceService(file_service)


# ==================== build_tree ====================

def test_build_tree_structure():
    tree = build_tree(["b/c.txt", "a.txt", "b/a.txt"])

    assert [(n.name, n.type) for n in tree] == [("a.txt", "file"), ("b", "directory")]
    assert tree[0].children is None

    directory = tree[1]
    assert directory.path == "b"
    assert directory.is_directory
    assert [(n.name, n.path) for n in directory.children] == [("a.txt", "b/a.txt"), ("c.txt", "b/c.txt")]


def test_build_tree_is_order_independent():
    paths = ["scripts/run.py", "assets/img/x.png", "README.md", "assets/y.svg"]
    expected = [node.model_dump() for node in build_tree(paths)]
    for permutation in itertools.permutations(paths):
        assert [node.model_dump() for node in build_tree(list(permutation))] == expected


def test_build_tree_nested_directories():
    tree = build_tree(["a/b/c/d.txt"])
    node = tree[0]
    for name in ("a", "b", "c"):
        assert node.name == name and node.type == "directory"
        node = node.children[0]
    assert node.path == "a/b/c/d.txt"
    assert node.type == "file"


def test_build_tree_empty():
    assert build_tree([]) == []


def test_guess_content_type():
    assert guess_content_type("assets/x.png") == "image/png"
    assert guess_content_type("notes.txt") == "text/plain"
    assert guess_content_type("data.unknownext") == "application/octet-stream"
    assert guess_content_type("Makefile") == "application/octet-stream"


# ==================== store / read ====================

def test_store_resources_uses_content_addressed_keys(service, object_storage, registry):
    ids = service.store_resources(ARCHIVE_HASH, {
        "assets/x.png": b"\x89PNG",
        "notes.txt": b"hello",
    })

    assert set(ids) == {"assets/x.png", "notes.txt"}
    key = f"skills/source_files/{ARCHIVE_HASH}/assets/x.png"
    assert object_storage.get(key) == b"\x89PNG"
    assert object_storage.content_type(key) == "image/png"

    record = registry.find_by_id(ids["notes.txt"])
    assert record.file_hash == hashlib.sha256(b"hello").hexdigest()
    assert record.file_type == "text/plain"
    assert record.name == "notes.txt"
    assert record.size == 5
    assert record.url == f"skills/source_files/{ARCHIVE_HASH}/notes.txt"


def test_identical_content_reuses_file_record(service, registry):
    ids = service.store_resources(ARCHIVE_HASH, {"a.txt": b"same", "b/a.txt": b"same"})
    assert ids["a.txt"] == ids["b/a.txt"]
    assert len(registry) == 1


def test_custom_prefix(file_service, object_storage):
    service = SkillResourceService(file_service, source_files_prefix="tenant/files/")
    service.store_resources(ARCHIVE_HASH, {"x.txt": b"x"})
    assert object_storage.exists(f"tenant/files/{ARCHIVE_HASH}/x.txt")


class _FailingStorage(InMemoryObjectStorage):
    def put(self, key, data, content_type):
        if key.endswith("broken.txt"):
            raise StorageError("upload failed")
        super().put(key, data, content_type)


def test_failure_aborts_remaining_without_rollback():
    """Already-stored resources stay; later ones are never attempted."""
    storage = _FailingStorage()
    service = SkillResourceService(FileService(storage, InMemoryFileRegistry()))

    with pytest.raises(StorageError):
        service.store_resources(ARCHIVE_HASH, {
            "first.txt": b"1",
            "broken.txt": b"2",
            "third.txt": b"3",
        })

    prefix = f"skills/source_files/{ARCHIVE_HASH}"
    assert storage.exists(f"{prefix}/first.txt")
    assert not storage.exists(f"{prefix}/third.txt")


def test_read_resource(service):
    ids = service.store_resources(ARCHIVE_HASH, {"references/FORMS.md": "# Forms".encode("utf-8")})
    assert service.read_resource(ids, "references/FORMS.md") == b"# Forms"
    assert service.read_resource_text(ids, "references/FORMS.md") == "# Forms"


def test_read_resource_unknown_path(service):
    with pytest.raises(SkillResourceError, match="Resource not found"):
        service.read_resource({"a.txt": "file_1"}, "b.txt")


def test_read_resource_orphaned_id(service):
    with pytest.raises(SkillResourceError, match="File record not found"):
        service.read_resource({"a.txt": "file_missing"}, "a.txt")


def test_read_resource_missing_object(service, object_storage):
    ids = service.store_resources(ARCHIVE_HASH, {"a.txt": b"a"})
    object_storage.delete(f"skills/source_files/{ARCHIVE_HASH}/a.txt")
    with pytest.raises(SkillResourceError):
        service.read_resource(ids, "a.txt")


def test_read_resource_text_rejects_binary(service):
    ids = service.store_resources(ARCHIVE_HASH, {"x.bin": b"\xff\xfe\x00"})
    with pytest.raises(SkillResourceError):
        service.read_resource_text(ids, "x.bin")


def test_list_resources(service):
    tree = service.list_resources({"b.txt": "file_2", "a/x.txt": "file_1"})
    assert [n.name for n in tree] == ["a", "b.txt"]
