# Copyright 2026 China Mobile Information Technology Co., Ltd.
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures: in-memory collaborators and in-memory ZIP builders."""

import io
import zipfile
from unittest.mock import MagicMock

import pytest

from skillhub.github import GitHubClient
from skillhub.skills import SkillImporter, SkillManager
from skillhub.storage import (
    FileService,
    InMemoryFileRegistry,
    InMemoryObjectStorage,
    InMemorySkillStore,
)


def skill_md(name="test", description="d", body="# Instructions\n\nDo things.", extra=""):
    """Render a SKILL.md document."""
    return f"---\nname: {name}\ndescription: {description}\n{extra}---\n\n{body}\n"


def build_zip(entries):
    """Build a ZIP archive in memory from a path -> str/bytes mapping (order preserved)."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for path, data in entries.items():
            if isinstance(data, str):
                data = data.encode("utf-8")
            zf.writestr(path, data)
    return buffer.getvalue()


@pytest.fixture
def make_zip():
    return build_zip


@pytest.fixture
def make_skill_md():
    return skill_md


@pytest.fixture
def object_storage():
    return InMemoryObjectStorage()


@pytest.fixture
def registry():
    return InMemoryFileRegistry()


@pytest.fixture
def file_service(object_storage, registry, tmp_path):
    temp_dir = tmp_path / "staging"
    temp_dir.mkdir()
    return FileService(object_storage, registry, temp_dir=temp_dir)


@pytest.fixture
def store():
    return InMemorySkillStore("user_1")


@pytest.fixture
def github_client():
    """A real client whose network call is replaced by a mock."""
    client = GitHubClient(user_agent="SkillHub-Test")
    client.download_archive = MagicMock()
    return client


@pytest.fixture
def importer(store, file_service, github_client):
    return SkillImporter(store, file_service, github=github_client)


@pytest.fixture
def manager(store, file_service):
    return SkillManager(store, file_service)
